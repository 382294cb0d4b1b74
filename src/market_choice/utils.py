"""
Utility functions for market_choice.

This module provides helpers shared by the estimation engines:
- Random generator injection (seed or Generator in, Generator out)
- Independent generator streams for sweeps and multi-chain runs
- Dataset validation for point matrices
- Thread-pool execution of independent runs

These utilities support the engines by handling cross-cutting concerns that
don't belong to any specific model.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar, Union

import numpy as np

from .config import get_settings
from .exceptions import DataValidationError

T = TypeVar("T")
R = TypeVar("R")

SeedLike = Union[None, int, np.random.Generator]


# =============================================================================
# RANDOMNESS
# =============================================================================

def as_generator(seed: SeedLike = None) -> np.random.Generator:
    """
    Turn a seed or generator into a ``numpy.random.Generator``.

    A Generator is returned unchanged so callers can thread one stream through
    several steps. ``None`` falls back to ``Settings.random_seed`` rather than
    OS entropy, which keeps unseeded runs reproducible.
    """
    if isinstance(seed, np.random.Generator):
        return seed
    if seed is None:
        seed = get_settings().random_seed
    return np.random.default_rng(seed)


def spawn_generators(seed: SeedLike, n: int) -> List[np.random.Generator]:
    """
    Create ``n`` statistically independent generators from one seed.

    Used for sweeps and multi-chain runs so that each unit of work owns its
    stream and results don't depend on execution order.
    """
    if isinstance(seed, np.random.Generator):
        return list(seed.spawn(n))
    if seed is None:
        seed = get_settings().random_seed
    return [np.random.default_rng(s) for s in np.random.SeedSequence(seed).spawn(n)]


# =============================================================================
# VALIDATION
# =============================================================================

def validate_points(X, name: str = "X") -> np.ndarray:
    """
    Check that ``X`` is a finite 2D numeric matrix and return it as float.

    Raises:
        DataValidationError: If X is not 2D, is empty, or holds NaN/inf values.
    """
    X = np.asarray(X, dtype=float)
    if X.ndim != 2:
        raise DataValidationError(f"{name} must be a 2D array, got {X.ndim}D array")
    if X.shape[0] == 0:
        raise DataValidationError(f"{name} has no rows")
    if not np.all(np.isfinite(X)):
        raise DataValidationError(
            f"{name} contains missing or non-finite values; drop incomplete rows first"
        )
    return X


# =============================================================================
# PARALLEL EXECUTION
# =============================================================================

def run_parallel(func: Callable[[T], R], items: Sequence[T],
                 n_jobs: Optional[int] = None) -> List[R]:
    """
    Apply ``func`` to every item, optionally in a thread pool.

    Results come back in the order of ``items`` and are only returned once
    every call has finished. With ``n_jobs`` of 1 everything runs inline.
    """
    if n_jobs is None:
        n_jobs = get_settings().n_jobs
    if n_jobs <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        futures = [executor.submit(func, item) for item in items]
        return [future.result() for future in futures]
