"""
Stratified three-way splitting with class-balance verification.

This module is the first defense against leakage: every downstream fit
(feature statistics, models) must only ever see the train partition.

Key Guarantees:
1. Partitions are disjoint and exhaustive (no row lost or duplicated)
2. Each class is partitioned independently in the requested proportions
3. Same seed + same data -> identical partitions

Stratification primitives are binary, so the three-way split is built from
two sequential stratified splits:
    data      -> train (train_p)       | remainder (1 - train_p)
    remainder -> validation (adjusted) | test
where adjusted = val_p / (val_p + test_p). Using raw val_p on the smaller
remainder would under-allocate validation.
"""
import logging
import warnings
from typing import Mapping, Sequence, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict
from sklearn.model_selection import train_test_split

from cardfraud.config import validate_proportions
from cardfraud.exceptions import ConfigError, SplitDistributionWarning
from cardfraud.ingestion.schema import (
    DEFAULT_LABEL_COLUMN,
    PARTITION_ROLES,
    DataSplit,
    Partition,
    validate_dataset,
)

logger = logging.getLogger(__name__)

DEFAULT_PROPORTIONS = (0.6, 0.2, 0.2)
DEFAULT_TOLERANCE_PCT = 0.5


class SplitVerification(BaseModel):
    """Outcome of verify_split()."""
    distribution: pd.DataFrame
    overall_fraud_pct: float
    max_difference: float
    tolerance: float
    within_tolerance: bool

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


def _stratified_binary_split(
    df: pd.DataFrame,
    first_fraction: float,
    label_column: str,
    rng: np.random.RandomState,
):
    """Split df in two, each class sampled independently without replacement."""
    try:
        first, second = train_test_split(
            df,
            train_size=first_fraction,
            stratify=df[label_column],
            random_state=rng,
            shuffle=True,
        )
    except ValueError as e:
        # Raised when a class has too few rows to appear on both sides
        raise ConfigError(f"Cannot stratify {len(df):,} rows on '{label_column}': {e}") from e
    return first, second


def split(
    dataset: pd.DataFrame,
    proportions: Sequence[float] = DEFAULT_PROPORTIONS,
    seed: int = 42,
    label_column: str = DEFAULT_LABEL_COLUMN,
) -> DataSplit:
    """
    Create a stratified train/validation/test split.

    Args:
        dataset: Labeled DataFrame (not modified)
        proportions: (train_p, val_p, test_p), positive and summing to 1.0
        seed: Seed for the single random stream shared by both splits
        label_column: Binary label used for stratification

    Returns:
        DataSplit(train, validation, test) of Partitions

    Raises:
        ConfigError: Invalid proportions, or a class too small to stratify
        SchemaError: Label column missing or not binary

    Example:
        >>> splits = split(df, proportions=(0.6, 0.2, 0.2), seed=42)
        >>> len(splits.train) + len(splits.validation) + len(splits.test) == len(df)
        True
    """
    train_p, val_p, test_p = validate_proportions(proportions)
    validate_dataset(dataset, label_column)

    # Seeded once; both splits draw from the same stream
    rng = np.random.RandomState(seed)

    train_df, remainder = _stratified_binary_split(dataset, train_p, label_column, rng)

    val_prop_adjusted = val_p / (val_p + test_p)
    val_df, test_df = _stratified_binary_split(remainder, val_prop_adjusted, label_column, rng)

    splits = DataSplit(
        train=Partition(role="train", data=train_df.copy(), label_column=label_column),
        validation=Partition(role="validation", data=val_df.copy(), label_column=label_column),
        test=Partition(role="test", data=test_df.copy(), label_column=label_column),
    )

    total = len(dataset)
    logger.info("Data split complete (seed=%s)", seed)
    for part in splits:
        logger.info(
            "  %-10s %8d rows (%.2f%%), fraud %.4f%%",
            part.role, len(part), len(part) / total * 100, part.fraud_pct,
        )

    return splits


def _as_partitions(splits, label_column: str):
    if isinstance(splits, DataSplit):
        return list(splits)

    if not isinstance(splits, Mapping):
        raise ConfigError(f"Expected a DataSplit or mapping, got {type(splits).__name__}")

    missing = [role for role in PARTITION_ROLES if role not in splits]
    if missing:
        raise ConfigError(f"splits must contain 'train', 'validation' and 'test'; missing {missing}")

    partitions = []
    for role in PARTITION_ROLES:
        part = splits[role]
        if isinstance(part, pd.DataFrame):
            part = Partition(role=role, data=part, label_column=label_column)
        partitions.append(part)
    return partitions


def verify_split(
    splits: Union[DataSplit, Mapping],
    tolerance: float = DEFAULT_TOLERANCE_PCT,
    label_column: str = DEFAULT_LABEL_COLUMN,
    verbose: bool = False,
) -> SplitVerification:
    """
    Verify that stratification preserved the class distribution.

    Compares each partition's fraud percentage with the overall percentage
    (computed from the union of the partitions). Drift beyond `tolerance`
    percentage points is reported as a SplitDistributionWarning; it never
    raises.

    Args:
        splits: DataSplit, or mapping with 'train'/'validation'/'test'
            (Partitions or DataFrames)
        tolerance: Allowed drift in percentage points (default 0.5)
        label_column: Binary label column
        verbose: Print the distribution table

    Returns:
        SplitVerification with the distribution table and drift summary
    """
    partitions = _as_partitions(splits, label_column)

    rows = []
    for part in partitions:
        rows.extend(_class_distribution(part.data[label_column], part.role.capitalize()))

    all_labels = pd.concat([part.data[label_column] for part in partitions], ignore_index=True)
    overall_rows = _class_distribution(all_labels, "Overall")

    distribution = pd.DataFrame(rows).sort_values(["split", "class"]).reset_index(drop=True)
    distribution = pd.concat([distribution, pd.DataFrame(overall_rows)], ignore_index=True)

    overall_fraud_pct = _fraud_pct(all_labels)
    max_difference = max(abs(part.fraud_pct - overall_fraud_pct) for part in partitions)
    within_tolerance = max_difference <= tolerance

    if verbose:
        print(f"\n{'='*70}")
        print(f"CLASS DISTRIBUTION VERIFICATION")
        print(f"{'='*70}")
        print(distribution.to_string(index=False))
        print(f"{'='*70}\n")

    if within_tolerance:
        logger.info(
            "Class distribution preserved across splits (max difference: %.4f pp)",
            max_difference,
        )
    else:
        message = (
            f"Class distribution differs across splits: max difference "
            f"{max_difference:.4f} pp exceeds tolerance {tolerance} pp"
        )
        logger.warning(message)
        warnings.warn(message, SplitDistributionWarning)

    return SplitVerification(
        distribution=distribution,
        overall_fraud_pct=round(overall_fraud_pct, 4),
        max_difference=round(max_difference, 4),
        tolerance=tolerance,
        within_tolerance=within_tolerance,
    )


def _fraud_pct(labels: pd.Series) -> float:
    if len(labels) == 0:
        return 0.0
    return float((labels == 1).sum()) / len(labels) * 100


def _class_distribution(labels: pd.Series, split_name: str):
    counts = labels.value_counts().sort_index()
    total = counts.sum()
    return [
        {
            "split": split_name,
            "class": int(cls),
            "count": int(n),
            "percentage": round(n / total * 100, 4),
        }
        for cls, n in counts.items()
    ]
