"""
Log-posterior for the Bayesian MNL model.

The posterior combines the MNL log-likelihood with independent Normal priors
centred at zero:

    log p(β | data) = log L(β) + Σ_i log N(β_i | 0, s_i)  (+ const)

The default prior uses s = √5 for the brand and ad part-worths and a tighter
s = 1 for the price coefficient (the last coefficient).
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.stats import norm

from ..config import get_settings
from ..data import ChoiceData
from ..exceptions import ConfigurationError
from .mnl import mnl_log_likelihood


@dataclass(frozen=True)
class NormalPrior:
    """Independent N(loc_i, scale_i) priors on each coefficient."""
    scales: tuple
    locs: Optional[tuple] = None

    def __post_init__(self):
        if any(s <= 0 for s in self.scales):
            raise ConfigurationError(f"Prior scales must be positive, got {self.scales}")
        if self.locs is not None and len(self.locs) != len(self.scales):
            raise ConfigurationError("Prior locs and scales must have equal length")

    @property
    def dim(self) -> int:
        return len(self.scales)

    def log_density(self, beta) -> float:
        beta = np.asarray(beta, dtype=float)
        if beta.shape != (self.dim,):
            raise ConfigurationError(
                f"beta must have shape ({self.dim},) to match the prior, got {beta.shape}"
            )
        locs = np.zeros(self.dim) if self.locs is None else np.asarray(self.locs)
        return float(norm.logpdf(beta, loc=locs, scale=np.asarray(self.scales)).sum())


def default_prior(n_params: int = 4) -> NormalPrior:
    """
    Part-worth priors with scale ``prior_scale`` and a price prior with scale
    ``price_prior_scale``; price is the last coefficient.
    """
    settings = get_settings()
    scales = [settings.prior_scale] * (n_params - 1) + [settings.price_prior_scale]
    return NormalPrior(scales=tuple(scales))


def log_prior(beta, prior: Optional[NormalPrior] = None) -> float:
    if prior is None:
        prior = default_prior(len(np.atleast_1d(beta)))
    return prior.log_density(beta)


def log_posterior(beta, data: ChoiceData, prior: Optional[NormalPrior] = None) -> float:
    """Unnormalized log-posterior: MNL log-likelihood plus log-prior."""
    if prior is None:
        prior = default_prior(data.n_features)
    if prior.dim != data.n_features:
        raise ConfigurationError(
            f"Prior has {prior.dim} components, model has {data.n_features} coefficients"
        )
    return mnl_log_likelihood(beta, data) + prior.log_density(beta)


def make_log_posterior(data: ChoiceData,
                       prior: Optional[NormalPrior] = None) -> Callable[[np.ndarray], float]:
    """
    Bind data and prior into a one-argument log-posterior for the sampler.

    The returned function is pure: it depends only on β and the fixed data.
    """
    if prior is None:
        prior = default_prior(data.n_features)
    if prior.dim != data.n_features:
        raise ConfigurationError(
            f"Prior has {prior.dim} components, model has {data.n_features} coefficients"
        )

    def _log_posterior(beta: np.ndarray) -> float:
        return log_posterior(beta, data, prior)

    return _log_posterior
