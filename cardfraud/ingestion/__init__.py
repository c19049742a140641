from cardfraud.ingestion.schema import DataSplit, Partition, Transaction, validate_dataset
from cardfraud.ingestion.splitter import SplitVerification, split, verify_split

__all__ = [
    "DataSplit",
    "Partition",
    "SplitVerification",
    "Transaction",
    "split",
    "validate_dataset",
    "verify_split",
]
