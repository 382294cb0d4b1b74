"""
Tests for data preparation and simulators.
"""

import numpy as np
import pandas as pd
import pytest

from market_choice.data import (
    CONJOINT_FEATURES,
    ChoiceData,
    ChoiceKey,
    drop_incomplete,
    encode_categorical,
    prepare_conjoint,
    simulate_boundary_data,
    simulate_conjoint,
)
from market_choice.exceptions import DataValidationError


def _long_table():
    """Two tasks of three alternatives, rows deliberately out of order."""
    return pd.DataFrame({
        'resp':   [2, 1, 1, 2, 1, 2],
        'task':   [1, 1, 1, 1, 1, 1],
        'x':      [4.0, 1.0, 2.0, 5.0, 3.0, 6.0],
        'choice': [0, 0, 1, 0, 0, 1],
    })


# ------------------------------------------------------------------
# Point data
# ------------------------------------------------------------------


def test_drop_incomplete_removes_rows_with_any_missing():
    df = pd.DataFrame({
        'bill_length_mm': [39.1, np.nan, 40.3, 36.7],
        'flipper_length_mm': [181.0, 186.0, np.nan, 193.0],
        'species': ['Adelie'] * 4,
    })
    X = drop_incomplete(df, ['bill_length_mm', 'flipper_length_mm'])
    np.testing.assert_array_equal(X, [[39.1, 181.0], [36.7, 193.0]])


def test_drop_incomplete_missing_column():
    with pytest.raises(DataValidationError):
        drop_incomplete(pd.DataFrame({'a': [1.0]}), ['a', 'b'])


def test_encode_categorical_drops_reference_level():
    df = pd.DataFrame({'brand': ['N', 'P', 'H'], 'price': [8, 12, 16]})
    encoded = encode_categorical(df, ['brand'], {'brand': 'H'})

    assert list(encoded.columns) == ['brand_N', 'brand_P', 'price']
    np.testing.assert_array_equal(encoded['brand_N'], [1.0, 0.0, 0.0])
    np.testing.assert_array_equal(encoded['brand_P'], [0.0, 1.0, 0.0])


def test_encode_categorical_unknown_reference():
    df = pd.DataFrame({'ad': ['Yes', 'No']})
    with pytest.raises(DataValidationError):
        encode_categorical(df, ['ad'], {'ad': 'Maybe'})


def test_encode_categorical_rejects_missing_category():
    df = pd.DataFrame({'brand': ['N', np.nan, 'P', 'H']})
    with pytest.raises(DataValidationError, match="missing values"):
        encode_categorical(df, ['brand'], {'brand': 'H'})


def test_prepare_conjoint_rejects_missing_brand(conjoint_table):
    df = conjoint_table.copy()
    df['brand'] = df['brand'].astype(object)
    df.loc[df.index[1], 'brand'] = np.nan
    with pytest.raises(DataValidationError):
        prepare_conjoint(df)


# ------------------------------------------------------------------
# ChoiceData
# ------------------------------------------------------------------


def test_from_long_groups_by_respondent_and_task():
    data = ChoiceData.from_long(_long_table(), ['x'])

    assert data.keys == (ChoiceKey(1, 1), ChoiceKey(2, 1))
    np.testing.assert_array_equal(data.X[:, :, 0], [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    np.testing.assert_array_equal(data.chosen, [1, 2])
    assert data.n_tasks == 2
    assert data.n_alternatives == 3
    assert data.feature_names == ('x',)


def test_from_long_rejects_two_chosen():
    df = _long_table()
    df.loc[1, 'choice'] = 1
    with pytest.raises(DataValidationError, match="exactly one chosen"):
        ChoiceData.from_long(df, ['x'])


def test_from_long_rejects_no_chosen():
    df = _long_table()
    df.loc[5, 'choice'] = 0
    with pytest.raises(DataValidationError, match="exactly one chosen"):
        ChoiceData.from_long(df, ['x'])


@pytest.mark.parametrize("flags", [[0.5, 0.5, 0.0], [2, -1, 0]])
def test_from_long_rejects_non_binary_flags(flags):
    df = _long_table()
    df['choice'] = df['choice'].astype(float)
    df.loc[[1, 2, 4], 'choice'] = flags  # the resp 1 task
    with pytest.raises(DataValidationError, match="0/1 flags"):
        ChoiceData.from_long(df, ['x'])


def test_from_long_rejects_unequal_task_sizes():
    df = _long_table().iloc[:-1]
    df = df.copy()
    df.loc[3, 'choice'] = 1  # keep one choice in the shortened task
    with pytest.raises(DataValidationError, match="equal numbers"):
        ChoiceData.from_long(df, ['x'])


def test_from_long_rejects_missing_values():
    df = _long_table()
    df.loc[0, 'x'] = np.nan
    with pytest.raises(DataValidationError):
        ChoiceData.from_long(df, ['x'])


def test_from_arrays_checks_shapes():
    with pytest.raises(DataValidationError):
        ChoiceData.from_arrays(np.zeros((2, 3, 1)), [0, 1, 2])
    with pytest.raises(DataValidationError):
        ChoiceData.from_arrays(np.zeros((2, 3, 1)), [0, 3])


# ------------------------------------------------------------------
# Simulators
# ------------------------------------------------------------------


def test_simulate_conjoint_layout(conjoint_table):
    assert len(conjoint_table) == 100 * 10 * 3
    assert list(conjoint_table.columns) == ['resp', 'task', 'brand', 'ad', 'price', 'choice']
    per_task = conjoint_table.groupby(['resp', 'task'])['choice'].sum()
    assert (per_task == 1).all()
    assert set(conjoint_table['price']) <= set(range(8, 33, 4))


def test_simulate_conjoint_is_reproducible():
    a = simulate_conjoint(n_respondents=3, n_tasks=2, seed=5)
    b = simulate_conjoint(n_respondents=3, n_tasks=2, seed=5)
    pd.testing.assert_frame_equal(a, b)


def test_prepare_conjoint_features(conjoint_data):
    assert list(conjoint_data.feature_names) == CONJOINT_FEATURES
    assert conjoint_data.X.shape == (1000, 3, 4)
    # indicator columns are 0/1
    assert set(np.unique(conjoint_data.X[:, :, :3])) <= {0.0, 1.0}


def test_simulate_boundary_data_labels():
    df = simulate_boundary_data(n=200, seed=3)
    assert df[['x1', 'x2']].abs().max().max() <= 3
    expected = (df['x2'] > np.sin(4 * df['x1']) + df['x1']).astype(int)
    pd.testing.assert_series_equal(df['y'], expected, check_names=False)
