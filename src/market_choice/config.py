"""
Configuration, logging and optional dependency management for market_choice.

Settings are loaded from environment variables (prefix ``MARKET_CHOICE_``) or a
``.env`` file, with defaults that reproduce the reference analyses. Optional
imports (PyMC, ArviZ) are probed once here and exposed as feature flags so the
core engines keep working when those libraries aren't installed.
"""

import logging
import math
from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Optional PyMC import with error tracking
try:
    import pymc as pm
    import pytensor.tensor as pt
    PYMC_AVAILABLE = True
    PYMC_ERROR = None
except Exception as e:
    PYMC_AVAILABLE = False
    PYMC_ERROR = str(e)
    pm = None
    pt = None

# Optional ArviZ import for chain diagnostics
try:
    import arviz as az
    ARVIZ_AVAILABLE = True
except ImportError:
    ARVIZ_AVAILABLE = False
    az = None


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    """Estimation defaults loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MARKET_CHOICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Randomness
    random_seed: int = 42

    # K-means
    kmeans_max_iter: int = Field(default=10, ge=1)
    kmeans_k_min: int = Field(default=2, ge=1)
    kmeans_k_max: int = Field(default=7, ge=1)

    # K-NN
    knn_max_k: int = Field(default=30, ge=1)

    # Metropolis-Hastings
    mcmc_n_iter: int = Field(default=11000, ge=1)
    mcmc_burn_in: int = Field(default=1000, ge=0)
    mcmc_proposal_sd: Tuple[float, ...] = (0.05, 0.05, 0.05, 0.005)

    # Priors: N(0, prior_scale) for part-worths, N(0, price_prior_scale) for price
    prior_scale: float = Field(default=math.sqrt(5.0), gt=0)
    price_prior_scale: float = Field(default=1.0, gt=0)

    # Confidence intervals
    ci_level_z: float = Field(default=1.96, gt=0)

    # Parallel sweeps / chains
    n_jobs: int = Field(default=1, ge=1)

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the package log format on the root logger.

    Args:
        level: Logging level name. Defaults to ``Settings.log_level``.
    """
    if level is None:
        level = get_settings().log_level
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=LOG_FORMAT)


def get_available_backends() -> list:
    """
    Return the estimation backends usable with the installed dependencies.

    The NumPy/SciPy engines are always available; the PyMC cross-check and
    ArviZ diagnostics are only listed when their libraries import cleanly.
    """
    backends = [
        "K-means",
        "K-nearest neighbours",
        "MNL maximum likelihood",
        "MNL Metropolis-Hastings",
    ]

    if ARVIZ_AVAILABLE:
        backends.append("ArviZ chain diagnostics")

    if PYMC_AVAILABLE:
        backends.append("MNL NUTS (PyMC)")

    return backends
