from cardfraud.evaluation.comparison import (
    compare_models,
    evaluate_thresholds,
    print_evaluation_summary,
)
from cardfraud.evaluation.engine import EvaluationResult, Predictor, evaluate, evaluate_model
from cardfraud.evaluation.metrics import ClassificationMetrics, ConfusionCounts, CostMatrix

__all__ = [
    "ClassificationMetrics",
    "ConfusionCounts",
    "CostMatrix",
    "EvaluationResult",
    "Predictor",
    "compare_models",
    "evaluate",
    "evaluate_model",
    "evaluate_thresholds",
    "print_evaluation_summary",
]
