"""
Thin I/O layer: read the raw transaction table, write split CSVs.

Supported sources:
- .csv              -> pandas.read_csv
- .duckdb / .db     -> SELECT * FROM <table> (read-only connection)
"""
import logging
from pathlib import Path
from typing import Dict, List, Union

import duckdb
import numpy as np
import pandas as pd
from pydantic import ValidationError

from cardfraud.ingestion.schema import DEFAULT_LABEL_COLUMN, DataSplit, Transaction

logger = logging.getLogger(__name__)

DUCKDB_SUFFIXES = {".duckdb", ".db"}
RAW_FIELDS = ("Time", "Amount")


def load_credit_card_data(data_path: Union[str, Path], table: str = "transactions") -> pd.DataFrame:
    """
    Load the credit card fraud dataset.

    Args:
        data_path: CSV file or DuckDB database
        table: Table to read when data_path is a DuckDB database

    Returns:
        DataFrame with one row per transaction

    Raises:
        FileNotFoundError: If data_path does not exist
    """
    path = Path(data_path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found at: {path}")

    logger.info("Loading data from: %s", path)

    if path.suffix.lower() in DUCKDB_SUFFIXES:
        con = duckdb.connect(str(path), read_only=True)
        try:
            df = con.execute(f'SELECT * FROM "{table}"').df()
        finally:
            con.close()
    else:
        df = pd.read_csv(path)

    logger.info("Data loaded: %d rows x %d columns", len(df), len(df.columns))
    return df


def validate_records(df: pd.DataFrame) -> List[Transaction]:
    """
    Convert a raw DataFrame into a list of strict Transaction objects.
    Rows that fail validation are logged and skipped.
    """
    raw_records = df.to_dict(orient="records")

    valid_transactions = []
    for index, record in zip(df.index, raw_records):
        try:
            valid_transactions.append(Transaction(**record))
        except ValidationError as e:
            logger.warning("Failed to parse row %s: %s", index, e)

    logger.info("Validated %d/%d transactions", len(valid_transactions), len(raw_records))
    return valid_transactions


def drop_invalid_rows(df: pd.DataFrame, label_column: str = DEFAULT_LABEL_COLUMN) -> pd.DataFrame:
    """
    Remove rows whose Time or Amount breaks the Transaction rules
    (missing, non-finite or negative).

    The screen is vectorised; only the flagged rows go through Transaction,
    so each rejection is logged with its validation error. The input is not
    modified and surviving rows keep their original index.
    """
    invalid = pd.Series(False, index=df.index)
    for col in RAW_FIELDS:
        if col in df.columns:
            values = pd.to_numeric(df[col], errors="coerce").astype(float)
            invalid |= ~(np.isfinite(values) & (values >= 0))

    n_invalid = int(invalid.sum())
    if n_invalid == 0:
        return df

    rejected = df.loc[invalid].rename(columns={label_column: "Class"})
    validate_records(rejected)
    logger.warning("Dropped %d/%d rows with invalid Time or Amount", n_invalid, len(df))

    return df.loc[~invalid].copy()


def save_splits(
    splits: DataSplit, output_dir: Union[str, Path], suffix: str = ""
) -> Dict[str, Path]:
    """
    Write each partition to <output_dir>/<role><suffix>.csv.

    Returns:
        Mapping of role -> written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = {}
    for part in splits:
        path = output_dir / f"{part.role}{suffix}.csv"
        part.data.to_csv(path, index=False)
        written[part.role] = path
        logger.info("Saved %-10s -> %s", part.role, path)

    return written
