"""
Data preparation for the estimation engines.

This module converts tables that callers have already loaded into the arrays
the engines expect:
- Point matrices with incomplete rows removed
- One-hot indicator columns with a dropped reference level
- ``ChoiceData``: long-format conjoint rows grouped into validated choice tasks

It also holds the simulators used to build reproducible example datasets:
a streaming-service conjoint study and a two-feature classification problem
with a non-linear decision boundary.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import DataValidationError
from .utils import SeedLike, as_generator

logger = logging.getLogger(__name__)


# =============================================================================
# POINT DATA
# =============================================================================

def drop_incomplete(df: pd.DataFrame, columns: Sequence[str]) -> np.ndarray:
    """
    Select numeric feature columns and drop rows with any missing value.

    Args:
        df: Input table
        columns: Feature columns to keep, in order

    Returns:
        (n_complete_rows, len(columns)) float matrix
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataValidationError(f"Columns not found: {missing}")

    subset = df.loc[:, list(columns)]
    complete = subset.dropna()
    n_dropped = len(subset) - len(complete)
    if n_dropped:
        logger.info(f"Dropped {n_dropped} of {len(subset)} rows with missing values")
    return complete.to_numpy(dtype=float)


def encode_categorical(df: pd.DataFrame, columns: Sequence[str],
                       reference: Dict[str, str]) -> pd.DataFrame:
    """
    Replace categorical columns with indicator columns minus a reference level.

    Indicator columns are named ``<column>_<level>`` and placed where the
    source column was, in sorted level order.

    Missing categories are rejected rather than encoded as the reference
    level.

    Args:
        df: Input table
        columns: Categorical columns to encode
        reference: Mapping from column name to the level that gets no indicator

    Returns:
        A new DataFrame with the encoded columns
    """
    out = df.copy()
    for column in columns:
        if column not in out.columns:
            raise DataValidationError(f"Column not found: {column!r}")
        if out[column].isna().any():
            raise DataValidationError(
                f"Column {column!r} has missing values; drop or impute them before encoding"
            )

        ref = reference.get(column)
        levels = sorted(out[column].unique().tolist())
        if ref is not None and ref not in levels:
            raise DataValidationError(
                f"Reference level {ref!r} does not occur in column {column!r}"
            )

        position = out.columns.get_loc(column)
        values = out.pop(column)
        for offset, level in enumerate(lv for lv in levels if lv != ref):
            out.insert(position + offset, f"{column}_{level}",
                       (values == level).astype(float))
    return out


# =============================================================================
# CHOICE DATA
# =============================================================================

class ChoiceKey(NamedTuple):
    """Identifies one choice task."""
    respondent: object
    task: object


@dataclass(frozen=True)
class ChoiceData:
    """
    Choice tasks of equal size in array form.

    Attributes:
        X: (n_tasks, n_alternatives, n_features) alternative attributes
        chosen: (n_tasks,) index of the chosen alternative within each task
        keys: Task identifiers, aligned with the first axis of X
        feature_names: Names of the attribute columns
    """
    X: np.ndarray
    chosen: np.ndarray
    keys: tuple
    feature_names: tuple

    def __post_init__(self):
        if self.X.ndim != 3:
            raise DataValidationError(
                f"X must have shape (n_tasks, n_alternatives, n_features), got {self.X.shape}"
            )
        if self.chosen.shape != (self.X.shape[0],):
            raise DataValidationError(
                f"chosen must have shape ({self.X.shape[0]},), got {self.chosen.shape}"
            )
        if np.any(self.chosen < 0) or np.any(self.chosen >= self.X.shape[1]):
            raise DataValidationError("chosen indices must lie within each task")
        if len(self.feature_names) != self.X.shape[2]:
            raise DataValidationError(
                f"Got {len(self.feature_names)} feature names for {self.X.shape[2]} features"
            )

    @property
    def n_tasks(self) -> int:
        return self.X.shape[0]

    @property
    def n_alternatives(self) -> int:
        return self.X.shape[1]

    @property
    def n_features(self) -> int:
        return self.X.shape[2]

    @classmethod
    def from_arrays(cls, X, chosen, feature_names: Optional[Sequence[str]] = None,
                    keys: Optional[Sequence[ChoiceKey]] = None) -> "ChoiceData":
        X = np.asarray(X, dtype=float)
        chosen = np.asarray(chosen, dtype=int)
        if feature_names is None:
            feature_names = [f"x{i + 1}" for i in range(X.shape[-1])]
        if keys is None:
            keys = [ChoiceKey(0, t) for t in range(X.shape[0])]
        return cls(X=X, chosen=chosen, keys=tuple(keys),
                   feature_names=tuple(feature_names))

    @classmethod
    def from_long(cls, df: pd.DataFrame, feature_columns: Sequence[str],
                  respondent_column: str = "resp", task_column: str = "task",
                  chosen_column: str = "choice") -> "ChoiceData":
        """
        Build choice tasks from one-row-per-alternative data.

        Rows are grouped by the (respondent, task) key after a stable sort, so
        alternatives keep their original order within each task.

        Raises:
            DataValidationError: If columns are missing, attributes contain
                missing values, chosen flags are not 0/1, tasks differ in
                size, or a task does not have exactly one chosen alternative
        """
        required = [respondent_column, task_column, chosen_column, *feature_columns]
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise DataValidationError(f"Columns not found: {missing}")
        if df.empty:
            raise DataValidationError("Choice table has no rows")
        if df[required].isna().any().any():
            raise DataValidationError("Choice table contains missing values")

        ordered = df.sort_values([respondent_column, task_column], kind="mergesort")
        group_keys = [respondent_column, task_column]

        sizes = ordered.groupby(group_keys, sort=False).size()
        if sizes.nunique() != 1:
            counts = sizes.value_counts().to_dict()
            raise DataValidationError(
                f"Choice tasks must have equal numbers of alternatives, got sizes {counts}"
            )

        if not ordered[chosen_column].isin([0, 1]).all():
            raise DataValidationError(
                f"Column {chosen_column!r} must contain only 0/1 flags"
            )

        n_chosen = ordered.groupby(group_keys, sort=False)[chosen_column].sum()
        bad = n_chosen[n_chosen != 1]
        if len(bad):
            offenders = [ChoiceKey(*key) for key in bad.index[:5]]
            raise DataValidationError(
                f"{len(bad)} choice task(s) do not have exactly one chosen "
                f"alternative, e.g. {offenders}"
            )

        n_tasks = len(sizes)
        n_alts = int(sizes.iloc[0])
        X = ordered[list(feature_columns)].to_numpy(dtype=float).reshape(
            n_tasks, n_alts, len(feature_columns)
        )
        flags = ordered[chosen_column].to_numpy().reshape(n_tasks, n_alts)
        keys = [ChoiceKey(*key) for key in sizes.index]

        logger.debug(f"Built {n_tasks} choice tasks with {n_alts} alternatives each")
        return cls.from_arrays(X, np.argmax(flags, axis=1),
                               feature_names=feature_columns, keys=keys)


# =============================================================================
# SIMULATED DATA
# =============================================================================

BRANDS = ("N", "P", "H")  # Netflix, Prime, Hulu
ADS = ("Yes", "No")
PRICES = tuple(range(8, 33, 4))

TRUE_PART_WORTHS = {
    'brand': {"N": 1.0, "P": 0.5, "H": 0.0},
    'ad': {"Yes": -0.8, "No": 0.0},
    'price': -0.1,
}

CONJOINT_FEATURES = ["brand_N", "brand_P", "ad_Yes", "price"]


def simulate_conjoint(n_respondents: int = 100, n_tasks: int = 10,
                      n_alternatives: int = 3, seed: SeedLike = None) -> pd.DataFrame:
    """
    Simulate a streaming-service conjoint study.

    Each respondent sees ``n_tasks`` tasks of ``n_alternatives`` offerings
    drawn at random from brand x ad x price profiles and picks the one with the
    highest utility ``part-worths + Gumbel error``.

    Returns:
        Long-format DataFrame with columns resp, task, brand, ad, price, choice
    """
    rng = as_generator(seed)
    b_util = TRUE_PART_WORTHS['brand']
    a_util = TRUE_PART_WORTHS['ad']

    frames: List[pd.DataFrame] = []
    for resp in range(1, n_respondents + 1):
        for task in range(1, n_tasks + 1):
            brand = rng.choice(BRANDS, size=n_alternatives)
            ad = rng.choice(ADS, size=n_alternatives)
            price = rng.choice(PRICES, size=n_alternatives)
            utility = (np.array([b_util[b] for b in brand])
                       + np.array([a_util[a] for a in ad])
                       + TRUE_PART_WORTHS['price'] * price
                       + rng.gumbel(size=n_alternatives))
            choice = np.zeros(n_alternatives, dtype=int)
            choice[np.argmax(utility)] = 1
            frames.append(pd.DataFrame({
                'resp': resp,
                'task': task,
                'brand': brand,
                'ad': ad,
                'price': price,
                'choice': choice,
            }))

    return pd.concat(frames, ignore_index=True)


def prepare_conjoint(df: pd.DataFrame, brand_reference: str = "H",
                     ad_reference: str = "No") -> ChoiceData:
    """
    Encode a brand/ad/price conjoint table and group it into choice tasks.

    Brand and ad become indicator columns against the given reference levels;
    price stays numeric.
    """
    encoded = encode_categorical(df, ["brand", "ad"],
                                 {'brand': brand_reference, 'ad': ad_reference})
    features = [c for c in encoded.columns if c.startswith("brand_")]
    features += [c for c in encoded.columns if c.startswith("ad_")]
    features.append("price")
    return ChoiceData.from_long(encoded, features)


def simulate_boundary_data(n: int = 100, seed: SeedLike = None) -> pd.DataFrame:
    """
    Two-feature classification data with a wiggly decision boundary.

    x1 and x2 are uniform on [-3, 3]; the label is 1 when x2 lies above the
    curve ``sin(4 * x1) + x1`` and 0 otherwise.

    Returns:
        DataFrame with columns x1, x2, y
    """
    rng = as_generator(seed)
    x1 = rng.uniform(-3, 3, size=n)
    x2 = rng.uniform(-3, 3, size=n)
    boundary = np.sin(4 * x1) + x1
    return pd.DataFrame({'x1': x1, 'x2': x2, 'y': (x2 > boundary).astype(int)})
