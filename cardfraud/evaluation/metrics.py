"""
Imbalance-Aware Classification Metrics

Why accuracy alone is meaningless here:
- ~99.8% legitimate -> "predict all legitimate" = 99.8% accuracy, 0% fraud caught
- Precision/recall/MCC and the PR curve are what actually move

Everything is a pure function of the 2x2 confusion counts (or, for the AUCs,
of the scores). Fraud is the positive class. Degenerate denominators
return 0 instead of raising so batch reporting across many thresholds or
models never breaks on an edge case.
"""
import math
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sklearn.metrics import auc

from cardfraud.evaluation.labels import FRAUD, NON_FRAUD
from cardfraud.exceptions import ConfigError


# ============================================================================
# CONFUSION COUNTS
# ============================================================================

class ConfusionCounts(BaseModel):
    tp: int = Field(..., ge=0)
    fp: int = Field(..., ge=0)
    fn: int = Field(..., ge=0)
    tn: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.fn + self.tn

    @classmethod
    def from_masks(cls, truth_is_fraud: np.ndarray, predicted_is_fraud: np.ndarray) -> "ConfusionCounts":
        truth_is_fraud = np.asarray(truth_is_fraud, dtype=bool)
        predicted_is_fraud = np.asarray(predicted_is_fraud, dtype=bool)
        return cls(
            tp=int((truth_is_fraud & predicted_is_fraud).sum()),
            fp=int((~truth_is_fraud & predicted_is_fraud).sum()),
            fn=int((truth_is_fraud & ~predicted_is_fraud).sum()),
            tn=int((~truth_is_fraud & ~predicted_is_fraud).sum()),
        )


def _safe_div(numerator: float, denominator: float) -> float:
    return float(numerator) / denominator if denominator > 0 else 0.0


# ============================================================================
# THRESHOLD METRICS
# ============================================================================

def accuracy(c: ConfusionCounts) -> float:
    return _safe_div(c.tp + c.tn, c.total)


def precision(c: ConfusionCounts) -> float:
    return _safe_div(c.tp, c.tp + c.fp)


def recall(c: ConfusionCounts) -> float:
    return _safe_div(c.tp, c.tp + c.fn)


def specificity(c: ConfusionCounts) -> float:
    return _safe_div(c.tn, c.tn + c.fp)


def f1_score(c: ConfusionCounts) -> float:
    # 2TP / (2TP + FP + FN) equals 2PR/(P+R) and stays defined when P+R = 0
    return _safe_div(2 * c.tp, 2 * c.tp + c.fp + c.fn)


def matthews_corrcoef(c: ConfusionCounts) -> float:
    denominator = math.sqrt(
        float(c.tp + c.fp) * float(c.tp + c.fn) * float(c.tn + c.fp) * float(c.tn + c.fn)
    )
    return _safe_div(float(c.tp) * c.tn - float(c.fp) * c.fn, denominator)


# ============================================================================
# RANKING METRICS (threshold sweep)
# ============================================================================

def _threshold_sweep(truth_is_fraud: np.ndarray, probabilities: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cumulative (TP, FP) at every distinct score, thresholds descending.
    Rows with equal scores enter together.
    """
    order = np.argsort(-probabilities, kind="mergesort")
    sorted_scores = probabilities[order]
    sorted_truth = truth_is_fraud[order]

    tps = np.cumsum(sorted_truth)
    fps = np.cumsum(~sorted_truth)

    # Last position of each run of equal scores
    distinct = np.r_[np.flatnonzero(np.diff(sorted_scores)), len(sorted_scores) - 1]
    return tps[distinct].astype(float), fps[distinct].astype(float)


def pr_auc(truth_is_fraud: np.ndarray, probabilities: np.ndarray) -> float:
    """
    Area under the precision-recall curve.

    Curve starts at (recall=0, precision=1), then one point per distinct
    threshold; trapezoidal integration. 0 when there is no fraud.
    """
    truth_is_fraud = np.asarray(truth_is_fraud, dtype=bool)
    probabilities = np.asarray(probabilities, dtype=float)

    n_pos = truth_is_fraud.sum()
    if len(truth_is_fraud) == 0 or n_pos == 0:
        return 0.0

    tps, fps = _threshold_sweep(truth_is_fraud, probabilities)
    recall_curve = np.r_[0.0, tps / n_pos]
    precision_curve = np.r_[1.0, tps / (tps + fps)]
    return float(auc(recall_curve, precision_curve))


def roc_auc(truth_is_fraud: np.ndarray, probabilities: np.ndarray) -> float:
    """
    Area under the ROC curve from (0, 0) through every distinct threshold.
    0 when either class is absent.
    """
    truth_is_fraud = np.asarray(truth_is_fraud, dtype=bool)
    probabilities = np.asarray(probabilities, dtype=float)

    n_pos = truth_is_fraud.sum()
    n_neg = len(truth_is_fraud) - n_pos
    if n_pos == 0 or n_neg == 0:
        return 0.0

    tps, fps = _threshold_sweep(truth_is_fraud, probabilities)
    tpr = np.r_[0.0, tps / n_pos]
    fpr = np.r_[0.0, fps / n_neg]
    return float(auc(fpr, tpr))


class ClassificationMetrics(BaseModel):
    accuracy: float
    precision: float
    recall: float
    f1: float
    mcc: float
    sensitivity: float
    specificity: float
    pr_auc: Optional[float] = None
    roc_auc: Optional[float] = None

    model_config = ConfigDict(frozen=True)


def calculate_all_metrics(
    counts: ConfusionCounts,
    truth_is_fraud: Optional[np.ndarray] = None,
    probabilities: Optional[np.ndarray] = None,
) -> ClassificationMetrics:
    """Threshold metrics always; PR-AUC / ROC-AUC only when probabilities are given."""
    ranking = {}
    if probabilities is not None:
        ranking = {
            "pr_auc": pr_auc(truth_is_fraud, probabilities),
            "roc_auc": roc_auc(truth_is_fraud, probabilities),
        }

    return ClassificationMetrics(
        accuracy=accuracy(counts),
        precision=precision(counts),
        recall=recall(counts),
        f1=f1_score(counts),
        mcc=matthews_corrcoef(counts),
        sensitivity=recall(counts),
        specificity=specificity(counts),
        **ranking,
    )


# ============================================================================
# CONFUSION MATRIX TABLE
# ============================================================================

def create_confusion_matrix(counts: ConfusionCounts) -> pd.DataFrame:
    """
    Long-format confusion matrix with each cell's share of all observations.

    Columns: truth, prediction, count, percentage (rounded to 2 decimals)
    """
    cells = [
        (NON_FRAUD, NON_FRAUD, counts.tn),
        (FRAUD, NON_FRAUD, counts.fn),
        (NON_FRAUD, FRAUD, counts.fp),
        (FRAUD, FRAUD, counts.tp),
    ]
    total = counts.total
    return pd.DataFrame(
        [
            {
                "truth": truth,
                "prediction": prediction,
                "count": n,
                "percentage": round(_safe_div(n, total) * 100, 2),
            }
            for truth, prediction, n in cells
        ]
    )


# ============================================================================
# COST-SENSITIVE EVALUATION
# ============================================================================

class CostMatrix(BaseModel):
    """
    Per-outcome unit costs. All four are required.

    Example:
        >>> CostMatrix(TP=0, FP=1, FN=5, TN=0)
    """
    tp: float = Field(..., alias="TP")
    fp: float = Field(..., alias="FP")
    fn: float = Field(..., alias="FN")
    tn: float = Field(..., alias="TN")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def from_mapping(cls, mapping) -> "CostMatrix":
        """
        Build from a dict keyed TP/FP/FN/TN (either case).

        Raises:
            ConfigError: Missing or non-numeric cost fields
        """
        if isinstance(mapping, cls):
            return mapping
        if not hasattr(mapping, "items"):
            raise ConfigError(f"cost_matrix must be a mapping or CostMatrix, got {type(mapping).__name__}")

        normalized = {str(key).upper(): value for key, value in mapping.items()}
        missing = [key for key in ("TP", "FP", "FN", "TN") if key not in normalized]
        if missing:
            raise ConfigError(f"cost_matrix missing fields: {missing}")

        try:
            return cls(**{key: normalized[key] for key in ("TP", "FP", "FN", "TN")})
        except ValidationError as e:
            raise ConfigError(f"Invalid cost_matrix: {e}") from e


class CostBreakdown(BaseModel):
    total_cost: float
    breakdown: pd.DataFrame

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


def calculate_cost_metrics(counts: ConfusionCounts, cost_matrix: CostMatrix) -> CostBreakdown:
    """
    Total cost = sum(count_k * cost_k) over TP, FP, FN, TN.

    Breakdown columns: outcome, count, unit_cost, subtotal; last row is Total
    (unit_cost NaN).
    """
    outcomes = [
        ("TP", counts.tp, cost_matrix.tp),
        ("FP", counts.fp, cost_matrix.fp),
        ("FN", counts.fn, cost_matrix.fn),
        ("TN", counts.tn, cost_matrix.tn),
    ]
    rows = [
        {"outcome": name, "count": n, "unit_cost": unit, "subtotal": n * unit}
        for name, n, unit in outcomes
    ]
    total_cost = float(sum(row["subtotal"] for row in rows))
    rows.append(
        {"outcome": "Total", "count": counts.total, "unit_cost": np.nan, "subtotal": total_cost}
    )

    return CostBreakdown(total_cost=total_cost, breakdown=pd.DataFrame(rows))
