"""
End-to-end test of the preparation run on a synthetic CSV.
"""
import json

import numpy as np
import pandas as pd
import pytest

from cardfraud.config import Settings
from cardfraud.exceptions import ConfigError
from cardfraud.features.pipeline import FittedPipeline
from cardfraud.prepare import run_preparation


@pytest.fixture
def prepared_settings(tmp_path, make_transactions):
    source = tmp_path / "creditcard.csv"
    make_transactions(n_rows=3000, n_fraud=60, n_components=6).to_csv(source, index=False)
    return Settings(
        DATA_PATH=str(source),
        OUTPUT_DIR=str(tmp_path / "processed"),
        RANDOM_SEED=7,
    )


@pytest.mark.integration
def test_run_preparation_writes_artifacts(prepared_settings, capsys):
    outputs = run_preparation(prepared_settings, verbose=True)

    artifacts = outputs["artifacts"]
    assert set(artifacts) == {"train", "validation", "test", "feature_spec"}
    for path in artifacts.values():
        assert path.exists()

    assert "PREPARATION COMPLETE" in capsys.readouterr().out
    assert outputs["verification"].within_tolerance


@pytest.mark.integration
def test_saved_partitions_share_schema(prepared_settings):
    outputs = run_preparation(prepared_settings, verbose=False)

    frames = {role: pd.read_csv(outputs["artifacts"][role]) for role in ("train", "validation", "test")}
    expected = outputs["fitted"].feature_names + ["Class"]

    for role, frame in frames.items():
        assert list(frame.columns) == expected, f"{role} schema differs"
    assert sum(len(frame) for frame in frames.values()) == 3000


@pytest.mark.integration
def test_saved_spec_reloads(prepared_settings):
    outputs = run_preparation(prepared_settings, verbose=False)

    reloaded = FittedPipeline.load(outputs["artifacts"]["feature_spec"])
    assert reloaded.spec == outputs["fitted"].spec

    payload = json.loads(outputs["artifacts"]["feature_spec"].read_text())
    assert payload["label_column"] == "Class"


@pytest.mark.integration
def test_rows_with_invalid_raw_values_never_reach_the_pipeline(tmp_path, make_transactions):
    df = make_transactions(n_rows=3000, n_fraud=60, n_components=6)
    df.loc[[3, 4], "Amount"] = np.nan
    df.loc[5, "Amount"] = -10.0
    df.loc[6, "Time"] = np.nan
    source = tmp_path / "dirty.csv"
    df.to_csv(source, index=False)

    outputs = run_preparation(
        Settings(DATA_PATH=str(source), OUTPUT_DIR=str(tmp_path / "out"), RANDOM_SEED=7),
        verbose=False,
    )

    assert sum(len(part) for part in outputs["splits"]) == 3000 - 4
    assert "amount_category_Unknown" not in outputs["fitted"].feature_names
    assert "time_of_day_Unknown" not in outputs["fitted"].feature_names


@pytest.mark.integration
def test_bad_proportions_in_settings(prepared_settings):
    bad = prepared_settings.model_copy(update={"TRAIN_PROP": 0.5})
    with pytest.raises(ConfigError):
        run_preparation(bad, verbose=False)
