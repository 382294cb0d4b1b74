"""
K-Nearest Neighbours classification.

KNN is a lazy learner: fitting only stores the labelled training points, and
prediction for a query point is the majority label among its k nearest
training points (Euclidean distance).

Deterministic ordering rules:
- Neighbour selection uses a stable sort, so training points at equal distance
  keep their original order.
- Label votes are counted over the neighbours in distance order. When several
  labels share the top count, the one whose nearest occurrence is closest to
  the query wins (``Counter.most_common`` orders equal counts by first
  appearance).
"""

import logging
from collections import Counter
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from ..config import get_settings
from ..exceptions import ConfigurationError, DataValidationError
from ..utils import validate_points

logger = logging.getLogger(__name__)


def _check_positive_k(k) -> int:
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k <= 0:
        raise ConfigurationError(f"k must be a positive integer, got {k!r}")
    return int(k)


def _check_k(k, n_train: int) -> int:
    k = _check_positive_k(k)
    if k > n_train:
        raise ConfigurationError(
            f"k ({k}) cannot exceed the number of training points ({n_train})"
        )
    return k


def _check_labels(X: np.ndarray, y, name: str) -> np.ndarray:
    y = np.asarray(y)
    if y.ndim != 1:
        raise DataValidationError(f"{name} must be a 1D array, got {y.ndim}D array")
    if y.shape[0] != X.shape[0]:
        raise DataValidationError(
            f"{name} has {y.shape[0]} labels for {X.shape[0]} points"
        )
    return y


def euclidean_distances(X_query: np.ndarray, X_train: np.ndarray) -> np.ndarray:
    """(n_query, n_train) matrix of Euclidean distances."""
    diffs = X_query[:, None, :] - X_train[None, :, :]
    return np.sqrt(np.einsum("qnd,qnd->qn", diffs, diffs))


def nearest_neighbors(X_query: np.ndarray, X_train: np.ndarray, k: int) -> np.ndarray:
    """
    Indices of the k nearest training points for every query point.

    Returns:
        (n_query, k) index matrix, each row ordered by increasing distance
    """
    distances = euclidean_distances(X_query, X_train)
    return np.argsort(distances, axis=1, kind="stable")[:, :k]


def majority_vote(neighbor_labels) -> object:
    """
    Most frequent label among neighbours given in distance order.

    Ties go to the tied label that appears first in ``neighbor_labels``.
    """
    return Counter(neighbor_labels).most_common(1)[0][0]


def knn_predict(X_train, y_train, X_query, k: int) -> np.ndarray:
    """
    Predict labels for query points from their k nearest training points.

    Args:
        X_train: (n_train, n_features) training points
        y_train: (n_train,) training labels
        X_query: (n_query, n_features) points to classify
        k: Number of neighbours (1 <= k <= n_train)

    Returns:
        (n_query,) array of predicted labels

    Raises:
        ConfigurationError: If k is not a positive integer or exceeds n_train
        DataValidationError: If shapes are inconsistent
    """
    X_train = validate_points(X_train, name="X_train")
    y_train = _check_labels(X_train, y_train, "y_train")
    k = _check_k(k, X_train.shape[0])

    X_query = validate_points(X_query, name="X_query")
    if X_query.shape[1] != X_train.shape[1]:
        raise DataValidationError(
            f"X_query has {X_query.shape[1]} features, X_train has {X_train.shape[1]}"
        )

    neighbors = nearest_neighbors(X_query, X_train, k)
    predictions = [majority_vote(y_train[row].tolist()) for row in neighbors]
    return np.asarray(predictions, dtype=y_train.dtype)


class KNNClassifier:
    """
    K-nearest neighbours classifier.

    Attributes:
        k: Number of neighbours to consider
        X_train: Stored training points
        y_train: Stored training labels
        classes_: Sorted unique training labels
    """

    def __init__(self, k: int = 5):
        self.k = _check_positive_k(k)
        self.X_train: Optional[np.ndarray] = None
        self.y_train: Optional[np.ndarray] = None
        self.classes_: Optional[np.ndarray] = None

    def fit(self, X_train, y_train) -> "KNNClassifier":
        """Store the training data; k is checked against its size here."""
        X_train = validate_points(X_train, name="X_train")
        y_train = _check_labels(X_train, y_train, "y_train")
        _check_k(self.k, X_train.shape[0])

        self.X_train = X_train
        self.y_train = y_train
        self.classes_ = np.unique(y_train)
        return self

    def predict(self, X) -> np.ndarray:
        if self.X_train is None:
            raise ConfigurationError("KNNClassifier must be fit before predict")
        return knn_predict(self.X_train, self.y_train, X, self.k)

    def score(self, X, y) -> float:
        """Fraction of points in X whose predicted label equals y."""
        y = np.asarray(y)
        return classification_accuracy(y, self.predict(X))


def classification_accuracy(y_true, y_pred) -> float:
    """Fraction of predictions equal to the true label."""
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)
    if y_true.shape != y_pred.shape:
        raise DataValidationError(
            f"y_true has shape {y_true.shape}, y_pred has shape {y_pred.shape}"
        )
    return float(np.mean(y_true == y_pred))


# =============================================================================
# MODEL SELECTION
# =============================================================================

def knn_accuracy_sweep(X_train, y_train, X_test, y_test,
                       k_values: Optional[Iterable[int]] = None) -> pd.DataFrame:
    """
    Test-set accuracy for each k.

    Distances are computed once and reused for every k, since the stable
    neighbour ordering for k is a prefix of the ordering for any larger k.

    Args:
        X_train, y_train: Labelled training data
        X_test, y_test: Held-out evaluation data
        k_values: Neighbour counts to evaluate (default: 1..knn_max_k)

    Returns:
        DataFrame indexed by ``k`` with an ``accuracy`` column
    """
    X_train = validate_points(X_train, name="X_train")
    y_train = _check_labels(X_train, y_train, "y_train")
    X_test = validate_points(X_test, name="X_test")
    y_test = _check_labels(X_test, y_test, "y_test")

    if k_values is None:
        k_values = range(1, get_settings().knn_max_k + 1)
    k_values = [_check_k(k, X_train.shape[0]) for k in k_values]
    if not k_values:
        raise ConfigurationError("k_values must contain at least one neighbour count")

    order = nearest_neighbors(X_test, X_train, max(k_values))
    rows = []
    for k in k_values:
        predictions = [majority_vote(y_train[row[:k]].tolist()) for row in order]
        rows.append({'k': k, 'accuracy': classification_accuracy(y_test, predictions)})

    return pd.DataFrame(rows).set_index('k')


def best_k(accuracy_table: pd.DataFrame) -> Tuple[int, float]:
    """
    The k with the highest accuracy; the first such row on ties.

    Args:
        accuracy_table: Output of ``knn_accuracy_sweep``

    Returns:
        Tuple of (k, accuracy)
    """
    idx = int(np.argmax(accuracy_table['accuracy'].to_numpy()))
    k = int(accuracy_table.index[idx])
    accuracy = float(accuracy_table['accuracy'].iloc[idx])
    logger.info(f"Best k = {k} with accuracy {accuracy:.3f}")
    return k, accuracy
