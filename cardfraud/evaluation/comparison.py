"""
Model comparison and reporting.

Thin aggregation over EvaluationResult objects: no metric is computed here
that the engine did not already compute.
"""
from typing import Mapping, Optional, Sequence, Union

import pandas as pd

from cardfraud.evaluation.engine import EvaluationResult, evaluate
from cardfraud.evaluation.metrics import CostMatrix
from cardfraud.exceptions import ConfigError


DEFAULT_THRESHOLDS = (0.3, 0.4, 0.5, 0.6, 0.7)


def compare_models(
    results: Sequence[EvaluationResult],
    model_names: Sequence[str],
    sort_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    One row per model, 'model' column first, numeric columns rounded to 4 decimals.

    Args:
        results: EvaluationResults, one per model
        model_names: Names aligned with results
        sort_by: Optional metric column to rank by (descending)

    Raises:
        ConfigError: Length mismatch or unknown sort column

    Example:
        >>> table = compare_models([lr_result, xgb_result], ["Logistic", "XGBoost"], sort_by="pr_auc")
    """
    results = list(results)
    model_names = list(model_names)
    if len(results) != len(model_names):
        raise ConfigError(
            f"Length mismatch: {len(results)} results, {len(model_names)} model names"
        )

    rows = []
    for name, result in zip(model_names, results):
        row = {"model": name, **result.metrics.model_dump(exclude_none=True)}
        if result.total_cost is not None:
            row["total_cost"] = result.total_cost
        rows.append(row)

    comparison = pd.DataFrame(rows, columns=_column_order(rows))

    numeric_cols = comparison.select_dtypes(include="number").columns
    comparison[numeric_cols] = comparison[numeric_cols].round(4)

    if sort_by is not None:
        if sort_by not in comparison.columns:
            raise ConfigError(f"Cannot sort by '{sort_by}'; available: {list(comparison.columns)}")
        comparison = comparison.sort_values(sort_by, ascending=False, kind="mergesort").reset_index(drop=True)

    return comparison


def _column_order(rows):
    columns = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns or ["model"]


def evaluate_thresholds(
    truth,
    probabilities,
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
    cost_matrix: Optional[Union[CostMatrix, Mapping]] = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Evaluate the same scores at several decision thresholds.

    Returns:
        DataFrame with one row per threshold: threshold, tp, fp, fn, tn,
        threshold metrics, and total_cost when costs are given
    """
    rows = []
    for threshold in thresholds:
        result = evaluate(truth, None, probabilities, cost_matrix, threshold=threshold)
        row = {
            "threshold": threshold,
            **result.counts.model_dump(),
            **result.metrics.model_dump(exclude={"pr_auc", "roc_auc"}),
        }
        if result.total_cost is not None:
            row["total_cost"] = result.total_cost
        rows.append(row)

    df = pd.DataFrame(rows)

    if verbose:
        print(f"{'=' * 70}")
        print(f"THRESHOLD TRADE-OFF")
        print(f"{'=' * 70}")
        display_cols = ["threshold", "precision", "recall", "f1", "tp", "fp"]
        if "total_cost" in df.columns:
            display_cols.append("total_cost")
        print(df[display_cols].to_string(index=False))
        print(f"{'=' * 70}\n")

    return df


def print_evaluation_summary(result: EvaluationResult, model_name: str) -> None:
    """Print metrics, the confusion matrix and the cost breakdown for one model."""
    print(f"\n{'=' * 70}")
    print(f"EVALUATION SUMMARY: {model_name}")
    print(f"{'=' * 70}\n")

    print(f"Metrics:")
    print(result.metrics_frame().round(4).to_string(index=False))

    print(f"\nConfusion Matrix (rows = truth, columns = prediction):")
    wide = result.confusion_matrix.pivot(index="truth", columns="prediction", values="count")
    print(wide.to_string())

    if result.cost is not None:
        print(f"\nCost Analysis:")
        print(result.cost.breakdown.to_string(index=False))
        print(f"\nTotal Cost: ${result.cost.total_cost:,.2f}")

    print(f"{'=' * 70}\n")
