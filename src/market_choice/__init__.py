"""
market_choice
=============

Numerical estimation toolkit for segmentation and choice-based conjoint data.

This package provides from-scratch implementations of four estimation engines:

- **K-means clustering**: Iterative centroid refinement with per-iteration
  snapshots, WCSS and silhouette diagnostics across K
- **K-nearest neighbours**: Majority-vote classification with a documented
  tie rule and an accuracy sweep across k
- **Multinomial logit (MNL)**: Choice log-likelihood, maximum likelihood with
  Hessian-based standard errors and confidence intervals
- **Metropolis-Hastings**: Random-walk posterior sampling of MNL part-worths
  with burn-in handling and credible intervals

All randomness is injected through a seed or a ``numpy.random.Generator``.

Quick Start
-----------
```python
from market_choice import fit_mnl_mle, make_log_posterior, metropolis_hastings
from market_choice.data import simulate_conjoint, prepare_conjoint

data = prepare_conjoint(simulate_conjoint(seed=123))

mle = fit_mnl_mle(data)
print(mle.summary())

chain = metropolis_hastings(make_log_posterior(data), initial=[0, 0, 0, 0],
                            proposal_sd=[0.05, 0.05, 0.05, 0.005],
                            n_iter=11000, seed=7,
                            param_names=data.feature_names)
print(chain.summary(burn_in=1000), chain.acceptance_rate)
```

Package Structure
-----------------
- `config`: Settings, logging setup and optional dependency detection
- `exceptions`: Error types raised by the engines
- `data`: Missing-value handling, one-hot encoding, choice tasks, simulators
- `models`: All estimation engines
- `utils`: Random generator injection, validation and parallel helpers
"""

__version__ = "0.1.0"

# Configuration and dependency checking
from .config import (
    PYMC_AVAILABLE,
    ARVIZ_AVAILABLE,
    Settings,
    get_settings,
    configure_logging,
    get_available_backends,
)

from .exceptions import (
    MarketChoiceError,
    DataValidationError,
    ConfigurationError,
    FittingError,
)

from .data import ChoiceData, ChoiceKey, drop_incomplete, encode_categorical

# Import subpackages for easy access
from . import data
from . import models

# Commonly used model functions at top level for convenience
from .models import (
    fit_kmeans,
    evaluate_cluster_range,
    KNNClassifier,
    knn_predict,
    knn_accuracy_sweep,
    best_k,
    mnl_log_likelihood,
    fit_mnl_mle,
    log_posterior,
    make_log_posterior,
    metropolis_hastings,
    run_chains,
)

__all__ = [
    # Version
    '__version__',
    # Config
    'PYMC_AVAILABLE',
    'ARVIZ_AVAILABLE',
    'Settings',
    'get_settings',
    'configure_logging',
    'get_available_backends',
    # Errors
    'MarketChoiceError',
    'DataValidationError',
    'ConfigurationError',
    'FittingError',
    # Data
    'ChoiceData',
    'ChoiceKey',
    'drop_incomplete',
    'encode_categorical',
    # Subpackages
    'data',
    'models',
    # Commonly used functions
    'fit_kmeans',
    'evaluate_cluster_range',
    'KNNClassifier',
    'knn_predict',
    'knn_accuracy_sweep',
    'best_k',
    'mnl_log_likelihood',
    'fit_mnl_mle',
    'log_posterior',
    'make_log_posterior',
    'metropolis_hastings',
    'run_chains',
]
