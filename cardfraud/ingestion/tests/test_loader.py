"""
Tests for the ingestion layer: record schema, loading and saving.
"""
import duckdb
import numpy as np
import pandas as pd
import pytest
from pydantic import ValidationError

from cardfraud.exceptions import SchemaError
from cardfraud.ingestion.loader import (
    drop_invalid_rows,
    load_credit_card_data,
    save_splits,
    validate_records,
)
from cardfraud.ingestion.schema import Transaction, validate_dataset
from cardfraud.ingestion.splitter import split


# ============================================================================
# RECORD SCHEMA
# ============================================================================

@pytest.mark.unit
def test_transaction_accepts_components_as_extra_fields():
    txn = Transaction(Time=406.0, Amount=149.62, Class=0, V1=-1.36, V2=-0.07)

    assert txn.Amount == pytest.approx(149.62)
    assert txn.V1 == pytest.approx(-1.36)


@pytest.mark.unit
def test_transaction_is_immutable():
    txn = Transaction(Time=0, Amount=1.0, Class=1)
    with pytest.raises(ValidationError):
        txn.Amount = 2.0


@pytest.mark.unit
@pytest.mark.parametrize(
    "fields",
    [
        {"Time": 0, "Amount": -1.0, "Class": 0},
        {"Time": -5, "Amount": 1.0, "Class": 0},
        {"Time": 0, "Amount": 1.0, "Class": 2},
        {"Time": float("nan"), "Amount": 1.0, "Class": 0},
        {"Time": 0, "Amount": float("nan"), "Class": 0},
        {"Time": 0, "Amount": float("inf"), "Class": 0},
    ],
)
def test_transaction_rejects_invalid_values(fields):
    with pytest.raises(ValidationError):
        Transaction(**fields)


@pytest.mark.unit
def test_validate_records_skips_bad_rows():
    df = pd.DataFrame(
        {
            "Time": [0.0, 10.0, 20.0],
            "V1": [0.1, 0.2, 0.3],
            "Amount": [5.0, -3.0, 12.5],
            "Class": [0, 0, 1],
        }
    )

    records = validate_records(df)

    assert len(records) == 2
    assert [r.Class for r in records] == [0, 1]


@pytest.mark.unit
def test_drop_invalid_rows_removes_missing_and_negative_values():
    df = pd.DataFrame(
        {
            "Time": [0.0, 10.0, np.nan, 30.0, 40.0],
            "V1": [0.1, 0.2, 0.3, 0.4, 0.5],
            "Amount": [5.0, -3.0, 12.5, np.nan, 0.0],
            "Class": [0, 0, 1, 0, 1],
        },
        index=[10, 11, 12, 13, 14],
    )
    before = df.copy()

    kept = drop_invalid_rows(df)

    assert list(kept.index) == [10, 14], "Surviving rows keep their original index"
    pd.testing.assert_frame_equal(df, before)


@pytest.mark.unit
def test_drop_invalid_rows_keeps_clean_data(transactions):
    kept = drop_invalid_rows(transactions)
    assert len(kept) == len(transactions)


@pytest.mark.unit
def test_drop_invalid_rows_with_custom_label(caplog):
    df = pd.DataFrame({"Time": [0.0, 1.0], "Amount": [-1.0, 2.0], "is_fraud": [1, 0]})

    with caplog.at_level("WARNING"):
        kept = drop_invalid_rows(df, label_column="is_fraud")

    assert kept["is_fraud"].tolist() == [0]
    assert "Failed to parse row 0" in caplog.text


@pytest.mark.unit
def test_validate_dataset_returns_predictors(transactions):
    predictors = validate_dataset(transactions)
    assert "Class" not in predictors
    assert len(predictors) == transactions.shape[1] - 1


@pytest.mark.unit
def test_validate_dataset_rejects_non_binary_label(transactions):
    df = transactions.copy()
    df.loc[df.index[0], "Class"] = 3
    with pytest.raises(SchemaError):
        validate_dataset(df)


# ============================================================================
# LOADING / SAVING
# ============================================================================

@pytest.mark.integration
def test_load_csv_round_trip(tmp_path, transactions):
    path = tmp_path / "creditcard.csv"
    transactions.to_csv(path, index=False)

    loaded = load_credit_card_data(path)

    assert loaded.shape == transactions.shape
    assert list(loaded.columns) == list(transactions.columns)


@pytest.mark.integration
def test_load_duckdb_table(tmp_path, transactions):
    path = tmp_path / "transactions.duckdb"
    con = duckdb.connect(str(path))
    con.register("source_df", transactions)
    con.execute("CREATE TABLE transactions AS SELECT * FROM source_df")
    con.close()

    loaded = load_credit_card_data(path, table="transactions")

    assert len(loaded) == len(transactions)
    assert loaded["Class"].sum() == transactions["Class"].sum()


@pytest.mark.integration
def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_credit_card_data(tmp_path / "missing.csv")


@pytest.mark.integration
def test_save_splits_writes_one_file_per_role(tmp_path, transactions):
    splits = split(transactions, seed=0)

    written = save_splits(splits, tmp_path / "out")

    assert set(written) == {"train", "validation", "test"}
    for part in splits:
        saved = pd.read_csv(written[part.role])
        assert len(saved) == len(part)
