"""
Evaluation engine: truth + predictions (+ probabilities, + costs) -> EvaluationResult.

Models are opaque. Anything implementing the Predictor protocol can be
evaluated; the engine never inspects the concrete model type.
"""
import logging
from typing import Mapping, Optional, Protocol, Union, runtime_checkable

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict

from cardfraud.evaluation.labels import fraud_mask, normalize_labels, to_label_names
from cardfraud.evaluation.metrics import (
    ClassificationMetrics,
    ConfusionCounts,
    CostBreakdown,
    CostMatrix,
    calculate_all_metrics,
    calculate_cost_metrics,
    create_confusion_matrix,
)
from cardfraud.exceptions import ConfigError, SchemaError
from cardfraud.ingestion.schema import DEFAULT_LABEL_COLUMN

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5


@runtime_checkable
class Predictor(Protocol):
    """The only capability the engine needs from a model."""

    def predict_labels(self, data: pd.DataFrame):
        ...

    def predict_probabilities(self, data: pd.DataFrame):
        ...


class EvaluationResult(BaseModel):
    """One evaluation call's output. Never mutated after creation."""
    metrics: ClassificationMetrics
    counts: ConfusionCounts
    confusion_matrix: pd.DataFrame
    cost: Optional[CostBreakdown] = None
    predictions: pd.DataFrame
    threshold: Optional[float] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def total_cost(self) -> Optional[float]:
        return self.cost.total_cost if self.cost is not None else None

    def metrics_frame(self) -> pd.DataFrame:
        """Metrics as a single-row DataFrame (AUC columns only when computed)."""
        row = self.metrics.model_dump(exclude_none=True)
        return pd.DataFrame([row])


def _check_probabilities(probabilities, n_rows: int) -> np.ndarray:
    probs = np.asarray(probabilities, dtype=float).ravel()
    if len(probs) != n_rows:
        raise SchemaError(f"Length mismatch: truth={n_rows}, predicted_probabilities={len(probs)}")
    if not np.all(np.isfinite(probs)):
        raise SchemaError("predicted_probabilities contains NaN or infinite values")
    if np.any((probs < 0) | (probs > 1)):
        raise SchemaError("predicted_probabilities must lie in [0, 1]")
    return probs


def evaluate(
    truth,
    predicted_labels=None,
    predicted_probabilities=None,
    cost_matrix: Optional[Union[CostMatrix, Mapping]] = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> EvaluationResult:
    """
    Evaluate one set of predictions.

    Args:
        truth: True labels (0/1, bool, or "Fraud"/"Non-Fraud")
        predicted_labels: Predicted labels, same encoding as truth. If omitted,
            derived as predicted_probabilities >= threshold
        predicted_probabilities: Fraud probabilities in [0, 1] (enables PR/ROC-AUC)
        cost_matrix: CostMatrix or mapping with TP/FP/FN/TN unit costs
        threshold: Decision threshold used when labels are derived

    Returns:
        EvaluationResult

    Raises:
        ConfigError: Neither labels nor probabilities, bad threshold, bad costs
        SchemaError: Length mismatch, unknown or mismatched label encodings,
            probabilities outside [0, 1]

    Example:
        >>> result = evaluate([1, 1, 0, 0], [1, 0, 0, 1], cost_matrix={"TP": 0, "FP": 1, "FN": 5, "TN": 0})
        >>> result.metrics.accuracy, result.total_cost
        (0.5, 6.0)
    """
    if predicted_labels is None and predicted_probabilities is None:
        raise ConfigError("Provide predicted_labels, predicted_probabilities, or both")
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(f"threshold must be in [0, 1], got {threshold}")

    costs = CostMatrix.from_mapping(cost_matrix) if cost_matrix is not None else None

    truth_values = truth.reset_index(drop=True) if isinstance(truth, pd.Series) else pd.Series(np.asarray(truth).ravel())

    probs = None
    if predicted_probabilities is not None:
        probs = _check_probabilities(predicted_probabilities, len(truth_values))

    used_threshold = None
    if predicted_labels is None:
        # Derived labels are already in the normalized domain
        used_threshold = threshold
        truth_is_fraud = fraud_mask(truth_values, "truth")
        predicted_is_fraud = probs >= threshold
    else:
        truth_is_fraud, predicted_is_fraud = normalize_labels(truth_values, predicted_labels)

    counts = ConfusionCounts.from_masks(truth_is_fraud, predicted_is_fraud)
    metrics = calculate_all_metrics(counts, truth_is_fraud, probs)
    cost = calculate_cost_metrics(counts, costs) if costs is not None else None

    predictions = pd.DataFrame(
        {
            "truth": to_label_names(truth_is_fraud),
            "estimate": to_label_names(predicted_is_fraud),
            "probability": probs if probs is not None else np.full(len(truth_is_fraud), np.nan),
        }
    )

    logger.debug(
        "Evaluated %d rows: TP=%d FP=%d FN=%d TN=%d",
        counts.total, counts.tp, counts.fp, counts.fn, counts.tn,
    )

    return EvaluationResult(
        metrics=metrics,
        counts=counts,
        confusion_matrix=create_confusion_matrix(counts),
        cost=cost,
        predictions=predictions,
        threshold=used_threshold,
    )


def evaluate_model(
    model: Predictor,
    data: pd.DataFrame,
    label_column: str = DEFAULT_LABEL_COLUMN,
    cost_matrix: Optional[Union[CostMatrix, Mapping]] = None,
    threshold: Optional[float] = None,
) -> EvaluationResult:
    """
    Score a transformed partition with any Predictor and evaluate it.

    Args:
        model: Object with predict_labels(data) and predict_probabilities(data)
        data: Transformed partition including the label column
        label_column: Truth column (excluded from the model's input)
        cost_matrix: Optional unit costs
        threshold: If given, labels come from probabilities >= threshold
            instead of model.predict_labels

    Raises:
        SchemaError: Label column missing
        ConfigError: model does not implement the Predictor protocol
    """
    if not isinstance(model, Predictor):
        raise ConfigError(
            f"{type(model).__name__} must implement predict_labels() and predict_probabilities()"
        )
    if label_column not in data.columns:
        raise SchemaError(f"Data must contain '{label_column}' column")

    features = data.drop(columns=[label_column])
    truth = data[label_column]
    probabilities = np.asarray(model.predict_probabilities(features), dtype=float)

    if threshold is not None:
        return evaluate(truth, None, probabilities, cost_matrix, threshold=threshold)

    return evaluate(truth, model.predict_labels(features), probabilities, cost_matrix)
