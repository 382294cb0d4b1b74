"""
Tests for settings, logging setup and shared utilities.
"""

import logging

import numpy as np
import pytest

from market_choice.config import (
    LOG_FORMAT,
    Settings,
    configure_logging,
    get_available_backends,
    get_settings,
)
from market_choice.exceptions import (
    ConfigurationError,
    DataValidationError,
    FittingError,
    MarketChoiceError,
)
from market_choice.utils import as_generator, run_parallel, spawn_generators, validate_points


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------


def test_default_settings():
    settings = Settings()
    assert settings.random_seed == 42
    assert settings.kmeans_max_iter == 10
    assert settings.knn_max_k == 30
    assert settings.mcmc_n_iter == 11000
    assert settings.mcmc_burn_in == 1000
    assert settings.mcmc_proposal_sd == (0.05, 0.05, 0.05, 0.005)
    assert settings.prior_scale == pytest.approx(5 ** 0.5)
    assert settings.price_prior_scale == 1.0
    assert settings.ci_level_z == 1.96


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MARKET_CHOICE_RANDOM_SEED", "7")
    monkeypatch.setenv("MARKET_CHOICE_MCMC_BURN_IN", "250")
    settings = get_settings()
    assert settings.random_seed == 7
    assert settings.mcmc_burn_in == 250


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_available_backends_always_include_core_engines():
    backends = get_available_backends()
    for name in ("K-means", "K-nearest neighbours", "MNL maximum likelihood",
                 "MNL Metropolis-Hastings"):
        assert name in backends


def test_configure_logging_sets_format(monkeypatch):
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))
    configure_logging("debug")
    assert captured['level'] == logging.DEBUG
    assert captured['format'] == LOG_FORMAT


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------


def test_exception_hierarchy():
    assert issubclass(DataValidationError, MarketChoiceError)
    assert issubclass(DataValidationError, ValueError)
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(FittingError, RuntimeError)
    assert not issubclass(FittingError, DataValidationError)


# ------------------------------------------------------------------
# Utilities
# ------------------------------------------------------------------


def test_unseeded_generator_uses_settings_seed():
    a = as_generator(None).random(3)
    b = np.random.default_rng(42).random(3)
    np.testing.assert_array_equal(a, b)


def test_generator_passes_through():
    rng = np.random.default_rng(0)
    assert as_generator(rng) is rng


def test_spawned_generators_are_independent_and_reproducible():
    first = [g.random() for g in spawn_generators(1, 3)]
    second = [g.random() for g in spawn_generators(1, 3)]
    assert first == second
    assert len(set(first)) == 3


def test_validate_points():
    X = validate_points([[1, 2], [3, 4]])
    assert X.dtype == float
    with pytest.raises(DataValidationError):
        validate_points([1, 2, 3])
    with pytest.raises(DataValidationError):
        validate_points(np.empty((0, 2)))
    with pytest.raises(DataValidationError):
        validate_points([[1.0, np.inf]])


@pytest.mark.parametrize("n_jobs", [1, 4])
def test_run_parallel_preserves_order(n_jobs):
    assert run_parallel(lambda x: x * x, [3, 1, 2], n_jobs=n_jobs) == [9, 1, 4]
