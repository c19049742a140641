"""
Label normalization.

Truth and predictions can arrive as 0/1, booleans, "0"/"1" strings or
"Fraud"/"Non-Fraud" names. Both vectors are mapped onto the same two-valued
domain before anything is compared. Comparing a 0/1 vector with a named one
is refused rather than guessed at.
"""
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from cardfraud.exceptions import SchemaError


FRAUD = "Fraud"
NON_FRAUD = "Non-Fraud"
LABEL_LEVELS = (NON_FRAUD, FRAUD)

BINARY = "binary"
NAMED = "named"

_BINARY_STRINGS = {"0": False, "1": True}
_NAMED_STRINGS = {"non-fraud": False, "fraud": True}


def _as_series(values, name: str) -> pd.Series:
    if values is None:
        raise SchemaError(f"{name} is required")
    if isinstance(values, pd.Series):
        return values.reset_index(drop=True)
    return pd.Series(np.asarray(values).ravel())


def detect_encoding(values: pd.Series, name: str = "labels") -> Optional[str]:
    """
    Identify how a label vector is encoded.

    Returns:
        "binary", "named", or None for an empty vector

    Raises:
        SchemaError: Nulls, or values outside every supported encoding
    """
    if len(values) == 0:
        return None

    if values.isna().any():
        raise SchemaError(f"{name} contains null values")

    if pd.api.types.is_bool_dtype(values):
        return BINARY

    if pd.api.types.is_numeric_dtype(values):
        unexpected = set(pd.unique(values)) - {0, 1}
        if unexpected:
            raise SchemaError(f"{name} must be 0/1, found {sorted(map(str, unexpected))}")
        return BINARY

    as_text = set(values.astype(str).str.strip())
    if as_text <= set(_BINARY_STRINGS):
        return BINARY
    if {v.lower() for v in as_text} <= set(_NAMED_STRINGS):
        return NAMED

    raise SchemaError(
        f"{name} has unrecognized values {sorted(as_text)[:5]}; "
        f"expected 0/1, booleans or {LABEL_LEVELS}"
    )


def to_fraud_mask(values: pd.Series, encoding: Optional[str]) -> np.ndarray:
    """Boolean array, True where the label is fraud."""
    if encoding is None:
        return np.zeros(0, dtype=bool)
    if encoding == BINARY:
        if pd.api.types.is_numeric_dtype(values) or pd.api.types.is_bool_dtype(values):
            return values.astype(int).to_numpy() == 1
        return values.astype(str).str.strip().map(_BINARY_STRINGS).to_numpy(dtype=bool)
    return values.astype(str).str.strip().str.lower().map(_NAMED_STRINGS).to_numpy(dtype=bool)


def fraud_mask(values, name: str = "labels") -> np.ndarray:
    """Normalize a single label vector to a boolean fraud mask."""
    series = _as_series(values, name)
    return to_fraud_mask(series, detect_encoding(series, name))


def normalize_labels(truth, predicted) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalize truth and predicted labels identically.

    Returns:
        (truth_is_fraud, predicted_is_fraud) boolean arrays

    Raises:
        SchemaError: Length mismatch, unknown values, or different encodings
    """
    truth = _as_series(truth, "truth")
    predicted = _as_series(predicted, "predicted_labels")

    if len(truth) != len(predicted):
        raise SchemaError(
            f"Length mismatch: truth={len(truth)}, predicted_labels={len(predicted)}"
        )

    truth_encoding = detect_encoding(truth, "truth")
    predicted_encoding = detect_encoding(predicted, "predicted_labels")

    if truth_encoding is not None and predicted_encoding is not None \
            and truth_encoding != predicted_encoding:
        raise SchemaError(
            f"Label encodings differ: truth is {truth_encoding}, "
            f"predicted_labels is {predicted_encoding}"
        )

    return to_fraud_mask(truth, truth_encoding), to_fraud_mask(predicted, predicted_encoding)


def to_label_names(is_fraud: np.ndarray) -> np.ndarray:
    """Boolean fraud mask -> array of "Fraud"/"Non-Fraud"."""
    return np.where(is_fraud, FRAUD, NON_FRAUD).astype(object)
