"""
Bayesian MNL model using PyMC.

This module fits the same Bayesian multinomial logit as the
Metropolis-Hastings sampler, with the same independent Normal priors, but with
PyMC's NUTS sampler. It serves as a cross-check of the random-walk results:
NUTS explores the posterior far more efficiently, so agreement between the two
posterior summaries is good evidence that the random-walk chain has mixed.

The model for task t with alternatives j = 1..J is:

    β_i ~ Normal(0, s_i)
    u_tj = x_tj · β
    chosen_t ~ Categorical(softmax(u_t))

Requires: pymc, pytensor, arviz
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd

from ..config import ARVIZ_AVAILABLE, PYMC_AVAILABLE, az, pm, pt
from ..data import ChoiceData
from .posterior import NormalPrior, default_prior


def fit_mnl_pymc(data: ChoiceData,
                 prior: Optional[NormalPrior] = None,
                 n_samples: int = 1000,
                 n_tune: int = 1000,
                 n_chains: int = 4,
                 target_accept: float = 0.9,
                 random_seed: int = 42) -> Dict:
    """
    Fit the Bayesian MNL model using PyMC with NUTS sampling.

    Args:
        data: Validated choice tasks
        prior: Coefficient priors (default: ``default_prior``)
        n_samples: Number of posterior draws per chain
        n_tune: Number of tuning (warmup) draws per chain
        n_chains: Number of chains
        target_accept: NUTS target acceptance probability
        random_seed: Seed passed to ``pm.sample``

    Returns:
        Dictionary with:
        - summary: DataFrame with mean, sd, q2.5, q97.5 per coefficient
        - beta: (n_features,) posterior means
        - trace: Full ArviZ InferenceData for diagnostics
        - n_divergences: Number of divergent transitions

    Raises:
        ImportError: If PyMC is not available
    """
    if not PYMC_AVAILABLE:
        raise ImportError(
            "PyMC is required for this model. "
            "Install with: pip install pymc arviz"
        )

    if prior is None:
        prior = default_prior(data.n_features)
    locs = np.zeros(prior.dim) if prior.locs is None else np.asarray(prior.locs)
    names = list(data.feature_names)

    with pm.Model(coords={'coef': names}):
        beta = pm.Normal('beta', mu=locs, sigma=np.asarray(prior.scales), dims='coef')

        # Utilities: (n_tasks, n_alternatives)
        utility = pt.tensordot(pt.as_tensor_variable(data.X), beta, axes=[[2], [0]])
        p = pm.math.softmax(utility, axis=1)
        pm.Categorical('obs', p=p, observed=data.chosen)

        trace = pm.sample(
            n_samples,
            tune=n_tune,
            chains=n_chains,
            progressbar=False,
            return_inferencedata=True,
            target_accept=target_accept,
            random_seed=random_seed,
        )

    draws = trace.posterior['beta'].values.reshape(-1, len(names))
    summary = pd.DataFrame({
        'mean': draws.mean(axis=0),
        'sd': draws.std(axis=0, ddof=1),
        'q2.5': np.percentile(draws, 2.5, axis=0),
        'q97.5': np.percentile(draws, 97.5, axis=0),
    }, index=pd.Index(names, name='parameter'))

    result = {
        'summary': summary,
        'beta': summary['mean'].to_numpy(),
        'trace': trace,
        'n_divergences': int(trace.sample_stats['diverging'].sum().values),
    }

    if ARVIZ_AVAILABLE:
        result['rhat'] = az.rhat(trace)['beta'].values

    return result
