"""
K-means Clustering with per-iteration snapshots.

K-means partitions points into K clusters by alternating two steps:
- Assignment step: each point joins the cluster with the nearest centroid
  (squared Euclidean distance; ties go to the lowest cluster index)
- Update step: each centroid moves to the mean of its assigned points

The loop stops when no centroid coordinate changes between iterations, or when
``max_iter`` is reached. Only a local optimum is guaranteed.

A cluster that receives no points keeps its previous centroid. It is not
reseeded, so such a cluster can stay empty for the rest of the run.

Every iteration is captured in an immutable ``KMeansIteration`` snapshot, which
makes the trajectory easy to visualize and lets tests check that WCSS never
increases across an update step.

Key outputs:
- labels: (n_points,) cluster index for each point (0-based)
- centroids: (n_clusters, n_features) final centroid matrix
- history: tuple of per-iteration snapshots
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import silhouette_score

from ..config import get_settings
from ..exceptions import ConfigurationError, DataValidationError
from ..utils import SeedLike, as_generator, run_parallel, spawn_generators, validate_points

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

def _frozen(array: np.ndarray) -> np.ndarray:
    """Return a read-only copy of ``array``."""
    out = np.array(array, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class KMeansIteration:
    """Snapshot of a single K-means iteration."""
    iteration: int
    labels: np.ndarray
    centroids: np.ndarray
    wcss_before_update: float  # assignment scored against the previous centroids
    wcss: float                # assignment scored against the updated centroids

    @property
    def cluster_ids(self) -> np.ndarray:
        """1-based cluster identifiers for user-facing output."""
        return self.labels + 1


@dataclass
class KMeansResult:
    """Result of a K-means run."""
    labels: np.ndarray
    centroids: np.ndarray
    wcss: float
    n_iter: int
    converged: bool
    initial_centroids: np.ndarray
    history: Tuple[KMeansIteration, ...] = field(default_factory=tuple)

    @property
    def n_clusters(self) -> int:
        return self.centroids.shape[0]

    @property
    def cluster_ids(self) -> np.ndarray:
        """1-based cluster identifiers for user-facing output."""
        return self.labels + 1

    def cluster_sizes(self) -> np.ndarray:
        """Number of points in each cluster, including empty ones."""
        return np.bincount(self.labels, minlength=self.n_clusters)


# =============================================================================
# ALGORITHM STEPS
# =============================================================================

def squared_distances(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Squared Euclidean distance from every point to every centroid.

    Args:
        X: (n_points, n_features) data matrix
        centroids: (n_clusters, n_features) centroid matrix

    Returns:
        (n_points, n_clusters) matrix of squared distances
    """
    diffs = X[:, None, :] - centroids[None, :, :]
    return np.einsum("nkd,nkd->nk", diffs, diffs)


def assign_clusters(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Assignment step: index of the nearest centroid for each point.

    ``np.argmin`` returns the first minimum, so a point equidistant from two
    centroids joins the one with the lower index.
    """
    return np.argmin(squared_distances(X, centroids), axis=1)


def update_centroids(X: np.ndarray, labels: np.ndarray,
                     centroids: np.ndarray) -> np.ndarray:
    """
    Update step: move each centroid to the mean of its assigned points.

    Returns a new array; ``centroids`` is left untouched. Clusters with no
    assigned points keep their previous centroid.
    """
    new_centroids = np.array(centroids, dtype=float, copy=True)
    for k in range(centroids.shape[0]):
        members = X[labels == k]
        if len(members) > 0:
            new_centroids[k] = members.mean(axis=0)
    return new_centroids


def compute_wcss(X: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> float:
    """
    Within-cluster sum of squared distances.

    Args:
        X: (n_points, n_features) data matrix
        labels: (n_points,) 0-based cluster index per point
        centroids: (n_clusters, n_features) centroid matrix

    Returns:
        Sum over points of the squared distance to their own centroid
    """
    diffs = X - centroids[labels]
    return float(np.sum(diffs * diffs))


def compute_silhouette(X: np.ndarray, labels: np.ndarray) -> float:
    """
    Mean silhouette coefficient over all points.

    For each point, a is the mean distance to the other members of its cluster
    and b is the mean distance to the members of the nearest other cluster; the
    coefficient is (b - a) / max(a, b). Euclidean distance is used, matching
    the metric the clustering minimizes.

    Returns NaN when the labelling has fewer than 2 or more than n - 1
    distinct clusters, where the coefficient is undefined.
    """
    n_labels = len(np.unique(labels))
    if n_labels < 2 or n_labels > len(X) - 1:
        return float("nan")
    return float(silhouette_score(X, labels, metric="euclidean"))


def initialize_centroids(X: np.ndarray, n_clusters: int,
                         rng: np.random.Generator) -> np.ndarray:
    """
    Pick ``n_clusters`` distinct rows of ``X`` uniformly without replacement.
    """
    idx = rng.choice(X.shape[0], size=n_clusters, replace=False)
    return X[idx].copy()


# =============================================================================
# MAIN FITTING FUNCTION
# =============================================================================

def fit_kmeans(X, n_clusters: int, max_iter: Optional[int] = None,
               seed: SeedLike = None,
               initial_centroids: Optional[np.ndarray] = None,
               on_iteration: Optional[Callable[[KMeansIteration], None]] = None
               ) -> KMeansResult:
    """
    Fit K-means by iterative centroid refinement.

    Convergence is declared when the updated centroids are exactly equal to the
    previous ones. Running out of iterations is not an error: the last state is
    returned with ``converged=False``.

    ``n_iter`` counts every assignment/update pass, including the final pass
    that only confirms the centroids no longer move. A run whose partition is
    settled after the first pass therefore reports ``n_iter == 2``.

    Args:
        X: (n_points, n_features) data matrix without missing values
        n_clusters: Number of clusters K (1 <= K <= n_points)
        max_iter: Maximum iterations (default: ``Settings.kmeans_max_iter``)
        seed: Seed or Generator used to sample the initial centroids
        initial_centroids: Optional (K, n_features) starting centroids; when
                           given, no random sampling takes place
        on_iteration: Optional callback receiving each iteration snapshot,
                      e.g. for plotting the trajectory

    Returns:
        KMeansResult with final labels, centroids, WCSS and iteration history

    Raises:
        ConfigurationError: If K or max_iter is out of range
        DataValidationError: If X or initial_centroids are malformed
    """
    X = validate_points(X)
    n_points, n_features = X.shape

    if max_iter is None:
        max_iter = get_settings().kmeans_max_iter
    if max_iter < 1:
        raise ConfigurationError(f"max_iter must be >= 1, got {max_iter}")

    if initial_centroids is not None:
        centroids = validate_points(initial_centroids, name="initial_centroids")
        if centroids.shape[1] != n_features:
            raise DataValidationError(
                f"initial_centroids have {centroids.shape[1]} features, "
                f"data has {n_features}"
            )
        if n_clusters is not None and centroids.shape[0] != n_clusters:
            raise ConfigurationError(
                f"Got {centroids.shape[0]} initial centroids for n_clusters={n_clusters}"
            )
        n_clusters = centroids.shape[0]
    else:
        if n_clusters < 1:
            raise ConfigurationError(f"n_clusters must be >= 1, got {n_clusters}")
        if n_clusters > n_points:
            raise ConfigurationError(
                f"n_clusters ({n_clusters}) cannot exceed number of points ({n_points})"
            )
        centroids = initialize_centroids(X, n_clusters, as_generator(seed))

    start = _frozen(centroids)
    history = []
    converged = False

    for iteration in range(1, max_iter + 1):
        labels = assign_clusters(X, centroids)
        wcss_before = compute_wcss(X, labels, centroids)

        new_centroids = update_centroids(X, labels, centroids)
        snapshot = KMeansIteration(
            iteration=iteration,
            labels=_frozen(labels),
            centroids=_frozen(new_centroids),
            wcss_before_update=wcss_before,
            wcss=compute_wcss(X, labels, new_centroids),
        )
        history.append(snapshot)
        if on_iteration is not None:
            on_iteration(snapshot)

        if np.array_equal(new_centroids, centroids):
            converged = True
            centroids = new_centroids
            break
        centroids = new_centroids

    n_iter = len(history)
    if converged:
        logger.info(f"K-means (K={n_clusters}) converged at iteration {n_iter}")
    else:
        logger.warning(
            f"K-means (K={n_clusters}) did not converge within {max_iter} iterations"
        )

    final = history[-1]
    return KMeansResult(
        labels=final.labels,
        centroids=final.centroids,
        wcss=final.wcss,
        n_iter=n_iter,
        converged=converged,
        initial_centroids=start,
        history=tuple(history),
    )


# =============================================================================
# MODEL SELECTION DIAGNOSTICS
# =============================================================================

def evaluate_cluster_range(X, k_values: Optional[Iterable[int]] = None,
                           max_iter: Optional[int] = None,
                           seed: SeedLike = None,
                           n_jobs: Optional[int] = None) -> pd.DataFrame:
    """
    Run K-means for each K and report WCSS and mean silhouette.

    Each K gets its own generator spawned from ``seed``, so serial and parallel
    execution give identical numbers. The table is read-only diagnostics for
    an elbow / silhouette comparison; no K is selected here.

    Args:
        X: (n_points, n_features) data matrix
        k_values: Cluster counts to evaluate (default: ``kmeans_k_min`` to
                  ``kmeans_k_max`` from settings)
        max_iter: Maximum iterations per run
        seed: Base seed or Generator
        n_jobs: Number of worker threads

    Returns:
        DataFrame indexed by ``k`` with columns ``wcss``, ``silhouette``,
        ``n_iter`` and ``converged``
    """
    X = validate_points(X)
    if k_values is None:
        settings = get_settings()
        k_values = range(settings.kmeans_k_min, settings.kmeans_k_max + 1)
    k_values = list(k_values)
    if not k_values:
        raise ConfigurationError("k_values must contain at least one cluster count")

    rngs = spawn_generators(seed, len(k_values))

    def run(item):
        k, rng = item
        result = fit_kmeans(X, k, max_iter=max_iter, seed=rng)
        return {
            'k': k,
            'wcss': result.wcss,
            'silhouette': compute_silhouette(X, result.labels),
            'n_iter': result.n_iter,
            'converged': result.converged,
        }

    rows = run_parallel(run, list(zip(k_values, rngs)), n_jobs=n_jobs)
    return pd.DataFrame(rows).set_index('k')
