"""
Data model for the credit card transaction table.

Record    -> Transaction (one validated row)
Dataset   -> pandas DataFrame with a fixed column schema + binary label
Partition -> a Dataset tagged with its role (train / validation / test)
"""
from typing import List, Literal, NamedTuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator

from cardfraud.exceptions import SchemaError


DEFAULT_LABEL_COLUMN = "Class"
PARTITION_ROLES = ("train", "validation", "test")


class Transaction(BaseModel):
    # --- 1. RAW CARD FIELDS ---
    # Time is seconds elapsed since the first transaction in the dataset.
    Time: float = Field(..., allow_inf_nan=False)
    Amount: float = Field(..., allow_inf_nan=False)

    # --- 2. LABEL ---
    Class: int

    # --- 3. ANONYMIZED COMPONENTS ---
    # V1..V28 (PCA outputs) are not typed out one by one.
    # extra="allow" lets them ride along as additional fields.
    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("Time", "Amount")
    @classmethod
    def must_be_non_negative(cls, v):
        if v < 0:
            raise ValueError("Time and Amount cannot be negative")
        return v

    @field_validator("Class", mode="before")
    @classmethod
    def label_must_be_binary(cls, v):
        if v not in (0, 1):
            raise ValueError(f"Class must be 0 or 1, got {v!r}")
        return int(v)


class Partition(BaseModel):
    """
    One side of a split. Keeps the original row index so partitions from the
    same split can be checked for overlap.
    """
    role: Literal["train", "validation", "test"]
    data: pd.DataFrame
    label_column: str = DEFAULT_LABEL_COLUMN

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def __len__(self) -> int:
        return len(self.data)

    @property
    def fraud_count(self) -> int:
        return int((self.data[self.label_column] == 1).sum())

    @property
    def fraud_pct(self) -> float:
        """Percentage of rows labeled fraud (0 for an empty partition)."""
        if len(self.data) == 0:
            return 0.0
        return self.fraud_count / len(self.data) * 100


class DataSplit(NamedTuple):
    train: Partition
    validation: Partition
    test: Partition


def validate_dataset(df: pd.DataFrame, label_column: str = DEFAULT_LABEL_COLUMN) -> List[str]:
    """
    Check a raw DataFrame is a usable labeled Dataset.

    Returns:
        The predictor column names (every column except the label)

    Raises:
        SchemaError: If the label column is missing, holds non-binary values,
            or no predictor columns remain
    """
    if not isinstance(df, pd.DataFrame):
        raise SchemaError(f"Expected a pandas DataFrame, got {type(df).__name__}")

    if label_column not in df.columns:
        raise SchemaError(f"Data must contain '{label_column}' column")

    labels = df[label_column]
    if labels.isna().any():
        raise SchemaError(f"'{label_column}' contains null values")

    unexpected = set(pd.unique(labels)) - {0, 1}
    if unexpected:
        raise SchemaError(
            f"'{label_column}' must be binary (0/1), found {sorted(map(str, unexpected))}"
        )

    predictors = [col for col in df.columns if col != label_column]
    if not predictors:
        raise SchemaError("Dataset has no predictor columns")

    return predictors
