"""
Pytest configuration and shared fixtures.

This file is automatically discovered by pytest and provides fixtures
available to all test modules.
"""

import numpy as np
import pytest

from market_choice.config import get_settings
from market_choice.data import prepare_conjoint, simulate_boundary_data, simulate_conjoint


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so environment overrides in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def tiny_points():
    """Two obvious clusters of two points each."""
    return np.array([[0.0, 0.0], [0.0, 1.0], [10.0, 10.0], [10.0, 11.0]])


@pytest.fixture
def blobs():
    """
    Three well-separated Gaussian blobs of 20 points each.

    Returns (X, truth) where rows 0-19, 20-39 and 40-59 belong to clusters
    0, 1 and 2.
    """
    rng = np.random.default_rng(2024)
    centers = np.array([[0.0, 0.0], [20.0, 0.0], [0.0, 20.0]])
    X = np.vstack([c + rng.normal(0.0, 0.5, size=(20, 2)) for c in centers])
    truth = np.repeat([0, 1, 2], 20)
    return X, truth


@pytest.fixture(scope="session")
def conjoint_table():
    """Simulated long-format conjoint table (100 respondents x 10 tasks x 3 alternatives)."""
    return simulate_conjoint(n_respondents=100, n_tasks=10, n_alternatives=3, seed=123)


@pytest.fixture(scope="session")
def conjoint_data(conjoint_table):
    """The simulated conjoint table grouped into choice tasks."""
    return prepare_conjoint(conjoint_table)


@pytest.fixture
def boundary_split():
    """Independent train and test draws of the wiggly-boundary data."""
    train = simulate_boundary_data(n=100, seed=1)
    test = simulate_boundary_data(n=100, seed=2)
    return train, test
