"""
Tests for the evaluation engine contract

Validates:
1. Label normalization (0/1, bool, strings, names) and encoding mismatches
2. Probability-only evaluation with an overridable threshold
3. Model-agnostic evaluation through the Predictor protocol
4. Inputs are never mutated and results are reproducible
"""
import numpy as np
import pandas as pd
import pytest

from cardfraud.evaluation.engine import EvaluationResult, Predictor, evaluate, evaluate_model
from cardfraud.evaluation.labels import normalize_labels
from cardfraud.exceptions import ConfigError, SchemaError


class ScoreModel:
    """Predictor scoring rows by a single column."""

    def __init__(self, column: str, cutoff: float = 0.5):
        self.column = column
        self.cutoff = cutoff
        self.seen_columns = None

    def predict_probabilities(self, data):
        self.seen_columns = list(data.columns)
        return data[self.column].clip(0, 1).values

    def predict_labels(self, data):
        return (self.predict_probabilities(data) >= self.cutoff).astype(int)


class LabelOnlyModel:
    def predict_labels(self, data):
        return np.zeros(len(data), dtype=int)


@pytest.fixture
def scored_frame():
    return pd.DataFrame(
        {
            "score": [0.95, 0.65, 0.45, 0.35, 0.2, 0.05],
            "Class": [1, 1, 1, 0, 0, 0],
        }
    )


# ============================================================================
# TEST 1: Label normalization
# ============================================================================

@pytest.mark.unit
@pytest.mark.parametrize(
    "truth, predicted",
    [
        ([1, 1, 0, 0], [1, 0, 0, 1]),
        ([True, True, False, False], [True, False, False, True]),
        (["1", "1", "0", "0"], ["1", "0", "0", "1"]),
        ([1.0, 1.0, 0.0, 0.0], [1, 0, 0, 1]),
        (["Fraud", "Fraud", "Non-Fraud", "Non-Fraud"], ["fraud", "non-fraud", "Non-Fraud", "FRAUD"]),
        (pd.Series([1, 1, 0, 0], index=[10, 11, 12, 13]), np.array([1, 0, 0, 1])),
    ],
)
def test_equivalent_encodings_give_identical_counts(truth, predicted):
    result = evaluate(truth, predicted)
    assert (result.counts.tp, result.counts.fp, result.counts.fn, result.counts.tn) == (1, 1, 1, 1)


@pytest.mark.unit
def test_bool_and_integer_are_the_same_encoding():
    truth_mask, pred_mask = normalize_labels([True, False], [1, 0])
    np.testing.assert_array_equal(truth_mask, [True, False])
    np.testing.assert_array_equal(pred_mask, [True, False])


@pytest.mark.unit
def test_mismatched_encodings_raise():
    with pytest.raises(SchemaError):
        evaluate([1, 0, 1], ["Fraud", "Non-Fraud", "Fraud"])


@pytest.mark.unit
@pytest.mark.parametrize(
    "truth, predicted",
    [
        ([0, 1, 2], [0, 1, 1]),                 # not binary
        (["yes", "no"], ["yes", "no"]),         # unknown names
        ([1, None, 0], [1, 0, 0]),              # nulls
    ],
)
def test_unrecognized_labels_raise(truth, predicted):
    with pytest.raises(SchemaError):
        evaluate(truth, predicted)


@pytest.mark.unit
def test_length_mismatch_raises():
    with pytest.raises(SchemaError):
        evaluate([1, 0, 1], [1, 0])
    with pytest.raises(SchemaError):
        evaluate([1, 0, 1], predicted_probabilities=[0.2, 0.9])


# ============================================================================
# TEST 2: Probability-only evaluation
# ============================================================================

@pytest.mark.unit
def test_default_threshold_is_half(scored_frame):
    result = evaluate(scored_frame["Class"], predicted_probabilities=scored_frame["score"])

    assert result.threshold == 0.5
    assert (result.counts.tp, result.counts.fn) == (2, 1)


@pytest.mark.unit
@pytest.mark.parametrize(
    "threshold, expected_tp, expected_fp",
    [
        (0.3, 3, 1),
        (0.4, 3, 0),
        (0.5, 2, 0),
        (0.6, 2, 0),
        (0.7, 1, 0),
    ],
)
def test_threshold_override(scored_frame, threshold, expected_tp, expected_fp):
    result = evaluate(
        scored_frame["Class"], predicted_probabilities=scored_frame["score"], threshold=threshold
    )
    assert result.counts.tp == expected_tp
    assert result.counts.fp == expected_fp


@pytest.mark.unit
def test_named_truth_with_probabilities_only():
    truth = ["Fraud", "Non-Fraud", "Fraud", "Non-Fraud"]
    result = evaluate(truth, predicted_probabilities=[0.9, 0.1, 0.4, 0.6])
    assert (result.counts.tp, result.counts.fp, result.counts.fn, result.counts.tn) == (1, 1, 1, 1)


@pytest.mark.unit
def test_explicit_labels_take_precedence_over_threshold():
    result = evaluate([1, 0], predicted_labels=[0, 1], predicted_probabilities=[0.9, 0.1])
    assert result.threshold is None
    assert result.counts.tp == 0
    assert result.metrics.roc_auc == 1.0


@pytest.mark.unit
@pytest.mark.parametrize("threshold", [-0.1, 1.5])
def test_threshold_out_of_range_raises(threshold):
    with pytest.raises(ConfigError):
        evaluate([1, 0], predicted_probabilities=[0.9, 0.1], threshold=threshold)


@pytest.mark.unit
@pytest.mark.parametrize("probs", [[0.5, 1.2], [-0.1, 0.5], [np.nan, 0.5]])
def test_invalid_probabilities_raise(probs):
    with pytest.raises(SchemaError):
        evaluate([1, 0], predicted_probabilities=probs)


@pytest.mark.unit
def test_nothing_to_evaluate_raises():
    with pytest.raises(ConfigError):
        evaluate([1, 0])


# ============================================================================
# TEST 3: Predictor protocol
# ============================================================================

@pytest.mark.unit
def test_evaluate_model_with_any_predictor(scored_frame):
    model = ScoreModel("score")
    assert isinstance(model, Predictor)

    result = evaluate_model(model, scored_frame, cost_matrix={"TP": 0, "FP": 10, "FN": 100, "TN": 0})

    assert "Class" not in model.seen_columns, "Label must not reach the model"
    assert (result.counts.tp, result.counts.fn) == (2, 1)
    assert result.total_cost == 100.0
    assert result.metrics.roc_auc == 1.0


@pytest.mark.unit
def test_evaluate_model_threshold_overrides_model_labels(scored_frame):
    result = evaluate_model(ScoreModel("score", cutoff=0.9), scored_frame, threshold=0.4)
    assert result.counts.tp == 3
    assert result.threshold == 0.4


@pytest.mark.unit
def test_evaluate_model_rejects_incomplete_predictor(scored_frame):
    with pytest.raises(ConfigError):
        evaluate_model(LabelOnlyModel(), scored_frame)


@pytest.mark.unit
def test_evaluate_model_requires_label(scored_frame):
    with pytest.raises(SchemaError):
        evaluate_model(ScoreModel("score"), scored_frame.drop(columns=["Class"]))


# ============================================================================
# TEST 4: Purity
# ============================================================================

@pytest.mark.unit
def test_inputs_not_mutated(scored_frame):
    truth = scored_frame["Class"].copy()
    probs = scored_frame["score"].to_numpy().copy()

    evaluate(truth, predicted_probabilities=probs, threshold=0.4)

    pd.testing.assert_series_equal(truth, scored_frame["Class"])
    np.testing.assert_array_equal(probs, scored_frame["score"].to_numpy())


@pytest.mark.unit
def test_result_is_frozen_and_carries_raw_triples(scored_frame):
    result = evaluate(scored_frame["Class"], predicted_probabilities=scored_frame["score"])

    assert isinstance(result, EvaluationResult)
    with pytest.raises(Exception):
        result.threshold = 0.9

    assert list(result.predictions.columns) == ["truth", "estimate", "probability"]
    assert result.predictions["truth"].tolist()[:3] == ["Fraud", "Fraud", "Fraud"]
    np.testing.assert_allclose(result.predictions["probability"], scored_frame["score"])


@pytest.mark.unit
def test_metrics_frame_has_one_row(scored_frame):
    result = evaluate(scored_frame["Class"], predicted_probabilities=scored_frame["score"])
    frame = result.metrics_frame()

    assert len(frame) == 1
    assert {"accuracy", "precision", "recall", "f1", "mcc", "pr_auc", "roc_auc"} <= set(frame.columns)
