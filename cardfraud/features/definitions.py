"""
Row-wise feature computations.

Every function here is a pure function of a single row's raw fields, so it is
safe to run identically on train, validation and test. The only learned
quantity (training mean/std of Amount for amount_std) is passed in by the
caller, never computed from the frame being transformed.
"""
import re
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd


# Canonical category levels (ordering is the indicator column ordering).
# Rows that fall in no bin (missing or out-of-range raw values) get UNKNOWN_LEVEL.
UNKNOWN_LEVEL = "Unknown"
TIME_OF_DAY_LEVELS: Tuple[str, ...] = ("Night", "Morning", "Afternoon", "Evening", UNKNOWN_LEVEL)
AMOUNT_CATEGORY_LEVELS: Tuple[str, ...] = (
    "Zero", "Very_Small", "Small", "Medium", "Large", "Very_Large", UNKNOWN_LEVEL,
)
CATEGORY_LEVELS: Dict[str, Tuple[str, ...]] = {
    "time_of_day": TIME_OF_DAY_LEVELS,
    "amount_category": AMOUNT_CATEGORY_LEVELS,
}

TIME_FEATURES = ["time_hours", "hour_of_day", "day_of_dataset", "time_of_day"]
AMOUNT_FEATURES = ["amount_log", "amount_sqrt", "amount_category", "amount_std"]

COMPONENT_PATTERN = re.compile(r"^V[0-9]+$")

SECONDS_PER_HOUR = 3600


def compute_time_features(elapsed_seconds: pd.Series) -> pd.DataFrame:
    """
    Decompose elapsed seconds since the first transaction.

    - time_hours:      seconds / 3600
    - hour_of_day:     floor(hours) mod 24
    - day_of_dataset:  floor(hours / 24)
    - time_of_day:     Night [0,6) | Morning [6,12) | Afternoon [12,18) | Evening [18,24)
                       | Unknown (missing Time)
    """
    hours = elapsed_seconds.astype(float) / SECONDS_PER_HOUR
    hour_of_day = np.floor(hours) % 24

    conditions = [
        (hour_of_day >= 0) & (hour_of_day < 6),
        (hour_of_day >= 6) & (hour_of_day < 12),
        (hour_of_day >= 12) & (hour_of_day < 18),
        (hour_of_day >= 18) & (hour_of_day < 24),
    ]
    time_of_day = pd.Series(
        np.select(conditions, TIME_OF_DAY_LEVELS[:-1], default=UNKNOWN_LEVEL),
        index=elapsed_seconds.index,
        dtype=object,
    )

    return pd.DataFrame(
        {
            "time_hours": hours,
            "hour_of_day": hour_of_day,
            "day_of_dataset": np.floor(hours / 24),
            "time_of_day": time_of_day,
        },
        index=elapsed_seconds.index,
    )


def categorize_amount(amount: pd.Series) -> pd.Series:
    """
    Six-way magnitude bin: Zero / (0,10] / (10,50] / (50,200] / (200,1000] / above.
    Missing or negative amounts are Unknown.
    """
    amount = amount.astype(float)
    conditions = [
        amount == 0,
        (amount > 0) & (amount <= 10),
        (amount > 10) & (amount <= 50),
        (amount > 50) & (amount <= 200),
        (amount > 200) & (amount <= 1000),
        amount > 1000,
    ]
    return pd.Series(
        np.select(conditions, AMOUNT_CATEGORY_LEVELS[:-1], default=UNKNOWN_LEVEL),
        index=amount.index,
        dtype=object,
    )


def compute_amount_features(amount: pd.Series, train_mean: float, train_std: float) -> pd.DataFrame:
    """
    Amount transforms.

    Args:
        amount: Raw amounts
        train_mean: Mean of Amount on the TRAINING partition
        train_std: Sample std of Amount on the TRAINING partition
    """
    amount = amount.astype(float)

    if train_std > 0 and np.isfinite(train_std):
        amount_std = (amount - train_mean) / train_std
    else:
        amount_std = pd.Series(0.0, index=amount.index)

    return pd.DataFrame(
        {
            "amount_log": np.log1p(amount),
            "amount_sqrt": np.sqrt(amount),
            "amount_category": categorize_amount(amount),
            "amount_std": amount_std,
        },
        index=amount.index,
    )


def compute_interaction_features(
    amount: pd.Series, df: pd.DataFrame, components: Sequence[str]
) -> pd.DataFrame:
    """Pairwise products amount * component, named amount_x_<component>."""
    return pd.DataFrame(
        {f"amount_x_{col}": amount.astype(float) * df[col].astype(float) for col in components},
        index=df.index,
    )


def find_components(columns: Sequence[str]) -> List[str]:
    """Anonymized component columns (V1, V2, ...) in column order."""
    return [col for col in columns if COMPONENT_PATTERN.match(str(col))]


def select_components_by_correlation(
    df: pd.DataFrame, candidates: Sequence[str], label_column: str, n: int
) -> List[str]:
    """
    Top-n components by absolute Pearson correlation with the label.
    Components with undefined correlation (constant columns) rank last.
    """
    label = df[label_column].astype(float)
    scores = {
        col: abs(df[col].astype(float).corr(label)) for col in candidates
    }
    ranked = sorted(
        candidates,
        key=lambda col: (np.nan_to_num(scores[col], nan=-1.0), -list(candidates).index(col)),
        reverse=True,
    )
    return ranked[:n]
