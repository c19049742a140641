"""
Error taxonomy for the preparation and evaluation pipeline.

All errors signal caller misuse and are raised at the point of violation.
Nothing here is transient, so nothing is retried.
"""


class FraudPrepError(Exception):
    """Base class for all cardfraud errors."""


class ConfigError(FraudPrepError, ValueError):
    """Invalid configuration: bad split proportions, missing cost fields, bad threshold."""


class SchemaError(FraudPrepError, ValueError):
    """Missing/mismatched columns or incompatible label encodings."""


class NotFittedError(FraudPrepError, AttributeError):
    """transform() called on a pipeline that has not been fitted."""


class SplitDistributionWarning(UserWarning):
    """A partition's fraud rate drifted from the overall rate beyond tolerance."""
