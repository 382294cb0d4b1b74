"""
Estimation engines for clustering, classification and choice modelling.

Each module contains the fitting logic for one engine, along with the helper
functions specific to it.

Available Models:
- K-means (kmeans.py): Iterative centroid clustering with WCSS/silhouette sweeps
- K-NN (knn.py): Nearest-neighbour classification with an accuracy sweep over k
- MNL (mnl.py): Multinomial logit log-likelihood and maximum likelihood fit
- Posterior (posterior.py): Normal priors and the MNL log-posterior
- MCMC (mcmc.py): Random-walk Metropolis-Hastings sampler and chain summaries
- Bayesian MNL (bayesian.py): NUTS cross-check with PyMC
"""

# K-means exports
from .kmeans import (
    KMeansIteration,
    KMeansResult,
    assign_clusters,
    update_centroids,
    compute_wcss,
    compute_silhouette,
    fit_kmeans,
    evaluate_cluster_range,
)

# K-NN exports
from .knn import (
    KNNClassifier,
    knn_predict,
    classification_accuracy,
    knn_accuracy_sweep,
    best_k,
)

# MNL exports
from .mnl import (
    MLEResult,
    mnl_log_likelihood,
    mnl_neg_log_likelihood,
    mnl_gradient,
    mnl_hessian,
    mnl_choice_probabilities,
    fit_mnl_mle,
)

# Posterior and sampler exports
from .posterior import NormalPrior, default_prior, log_prior, log_posterior, make_log_posterior
from .mcmc import MCMCChain, metropolis_hastings, run_chains, chains_to_inference_data

# Conditional imports for optional dependencies
from ..config import PYMC_AVAILABLE

if PYMC_AVAILABLE:
    from .bayesian import fit_mnl_pymc

__all__ = [
    'KMeansIteration',
    'KMeansResult',
    'assign_clusters',
    'update_centroids',
    'compute_wcss',
    'compute_silhouette',
    'fit_kmeans',
    'evaluate_cluster_range',
    'KNNClassifier',
    'knn_predict',
    'classification_accuracy',
    'knn_accuracy_sweep',
    'best_k',
    'MLEResult',
    'mnl_log_likelihood',
    'mnl_neg_log_likelihood',
    'mnl_gradient',
    'mnl_hessian',
    'mnl_choice_probabilities',
    'fit_mnl_mle',
    'NormalPrior',
    'default_prior',
    'log_prior',
    'log_posterior',
    'make_log_posterior',
    'MCMCChain',
    'metropolis_hastings',
    'run_chains',
    'chains_to_inference_data',
]

if PYMC_AVAILABLE:
    __all__.append('fit_mnl_pymc')
