"""
Tests for the K-nearest neighbours classifier.
"""

import numpy as np
import pandas as pd
import pytest

from market_choice.exceptions import ConfigurationError, DataValidationError
from market_choice.models.knn import (
    KNNClassifier,
    best_k,
    classification_accuracy,
    knn_accuracy_sweep,
    knn_predict,
    majority_vote,
)


@pytest.fixture
def four_points():
    X = np.array([[0.0, 0.0], [0.0, 1.0], [5.0, 5.0], [5.0, 6.0]])
    y = np.array(["a", "a", "b", "b"])
    return X, y


# ------------------------------------------------------------------
# Prediction rules
# ------------------------------------------------------------------


def test_k1_matches_nearest_training_label(four_points):
    X, y = four_points
    queries = np.array([[0.2, 0.1], [4.9, 5.2], [2.0, 2.0], [0.0, 3.0]])

    predicted = knn_predict(X, y, queries, k=1)

    distances = np.linalg.norm(queries[:, None, :] - X[None, :, :], axis=2)
    expected = y[np.argmin(distances, axis=1)]
    np.testing.assert_array_equal(predicted, expected)


def test_majority_wins(four_points):
    X, y = four_points
    # two "a" neighbours at distance ~1 beat one "b"
    assert knn_predict(X, y, [[0.0, 0.5]], k=3)[0] == "a"


def test_label_tie_goes_to_nearest_occurrence():
    X = np.array([[1.0, 0.0], [-2.0, 0.0]])

    y = np.array(["b", "a"])
    assert knn_predict(X, y, [[0.0, 0.0]], k=2)[0] == "b"

    y = np.array(["a", "b"])
    assert knn_predict(X, y, [[0.0, 0.0]], k=2)[0] == "a"


def test_equal_distances_keep_training_order():
    X = np.array([[1.0, 0.0], [-1.0, 0.0], [0.0, 5.0]])
    y = np.array(["x", "y", "y"])
    assert knn_predict(X, y, [[0.0, 0.0]], k=1)[0] == "x"


def test_majority_vote_first_seen_on_ties():
    assert majority_vote([3, 1, 1, 3]) == 3
    assert majority_vote([1, 3, 3, 1, 2]) == 1
    assert majority_vote([2, 1, 1]) == 1


def test_numeric_labels_keep_dtype(four_points):
    X, _ = four_points
    y = np.array([0, 0, 1, 1])
    predicted = knn_predict(X, y, [[5.0, 5.5]], k=1)
    assert predicted.dtype == y.dtype
    assert predicted[0] == 1


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


@pytest.mark.parametrize("k", [0, -1, 5, 1.5, True])
def test_bad_k_rejected(four_points, k):
    X, y = four_points
    with pytest.raises(ConfigurationError):
        knn_predict(X, y, [[0.0, 0.0]], k=k)


def test_k_checked_before_query_validation(four_points):
    X, y = four_points
    # the query is malformed too, but the k precondition is reported first
    with pytest.raises(ConfigurationError):
        knn_predict(X, y, [[np.nan, 0.0]], k=10)


def test_shape_mismatches(four_points):
    X, y = four_points
    with pytest.raises(DataValidationError):
        knn_predict(X, y[:3], [[0.0, 0.0]], k=1)
    with pytest.raises(DataValidationError):
        knn_predict(X, y, [[0.0, 0.0, 0.0]], k=1)


# ------------------------------------------------------------------
# KNNClassifier
# ------------------------------------------------------------------


def test_classifier_fit_predict_score(four_points):
    X, y = four_points
    clf = KNNClassifier(k=1).fit(X, y)

    np.testing.assert_array_equal(clf.classes_, ["a", "b"])
    np.testing.assert_array_equal(clf.predict(X), y)
    assert clf.score(X, y) == 1.0


def test_classifier_rejects_k_larger_than_training_set(four_points):
    X, y = four_points
    with pytest.raises(ConfigurationError):
        KNNClassifier(k=10).fit(X, y)


@pytest.mark.parametrize("k", [0, -1, 2.5, True])
def test_classifier_rejects_invalid_k_at_construction(k):
    with pytest.raises(ConfigurationError, match="positive integer"):
        KNNClassifier(k=k)


def test_classifier_predict_before_fit():
    with pytest.raises(ConfigurationError):
        KNNClassifier(k=1).predict([[0.0, 0.0]])


def test_classification_accuracy():
    assert classification_accuracy([1, 0, 1, 1], [1, 1, 1, 0]) == 0.5
    with pytest.raises(DataValidationError):
        classification_accuracy([1, 0], [1])


# ------------------------------------------------------------------
# Accuracy sweep
# ------------------------------------------------------------------


def test_sweep_default_range(boundary_split):
    train, test = boundary_split
    table = knn_accuracy_sweep(train[["x1", "x2"]], train["y"],
                               test[["x1", "x2"]], test["y"])

    assert list(table.index) == list(range(1, 31))
    assert table["accuracy"].between(0, 1).all()
    # the boundary is learnable: the best k should beat a coin flip
    assert table["accuracy"].max() > 0.6


def test_sweep_matches_direct_prediction(boundary_split):
    train, test = boundary_split
    X_train, y_train = train[["x1", "x2"]].to_numpy(), train["y"].to_numpy()
    X_test, y_test = test[["x1", "x2"]].to_numpy(), test["y"].to_numpy()

    table = knn_accuracy_sweep(X_train, y_train, X_test, y_test, k_values=[1, 4, 7])

    for k in (1, 4, 7):
        direct = classification_accuracy(y_test, knn_predict(X_train, y_train, X_test, k))
        assert table.loc[k, "accuracy"] == pytest.approx(direct)


def test_sweep_k1_on_training_data_is_perfect(boundary_split):
    train, _ = boundary_split
    X, y = train[["x1", "x2"]], train["y"]
    table = knn_accuracy_sweep(X, y, X, y, k_values=[1])
    assert table.loc[1, "accuracy"] == 1.0


def test_sweep_rejects_k_above_training_size(four_points):
    X, y = four_points
    with pytest.raises(ConfigurationError):
        knn_accuracy_sweep(X, y, X, y, k_values=range(1, 6))


def test_best_k_first_maximum():
    table = pd.DataFrame({'k': [1, 2, 3], 'accuracy': [0.8, 0.9, 0.9]}).set_index('k')
    assert best_k(table) == (2, 0.9)
