"""
Configuration management using Pydantic Settings.
Loads from environment variables or .env file.
"""
import logging
import math
from typing import Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict

from cardfraud.exceptions import ConfigError


PROPORTION_TOLERANCE = 1e-6


class Settings(BaseSettings):
    """
    Preparation run configuration loaded from environment variables.

    Usage:
        # .env file
        DATA_PATH=data/creditcard.csv
        TRAIN_PROP=0.7
        VAL_PROP=0.15
        TEST_PROP=0.15

        # In code
        from cardfraud.config import settings
        print(settings.DATA_PATH)
    """
    # Data
    DATA_PATH: str = "data/creditcard.csv"
    DATA_TABLE: str = "transactions"  # Only used for DuckDB sources
    OUTPUT_DIR: str = "data/processed"
    LABEL_COLUMN: str = "Class"

    # Split
    TRAIN_PROP: float = 0.6
    VAL_PROP: float = 0.2
    TEST_PROP: float = 0.2
    RANDOM_SEED: int = 42
    SPLIT_TOLERANCE_PCT: float = 0.5  # percentage points

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_proportions(self) -> Tuple[float, float, float]:
        """Return (train, validation, test) proportions, validated."""
        proportions = (self.TRAIN_PROP, self.VAL_PROP, self.TEST_PROP)
        validate_proportions(proportions)
        return proportions


def validate_proportions(proportions) -> Tuple[float, float, float]:
    """
    Check split proportions: three positive numbers summing to 1.0.

    Raises:
        ConfigError: On wrong arity, non-positive values or a bad sum
    """
    try:
        values = tuple(float(p) for p in proportions)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Proportions must be numeric, got {proportions!r}") from e

    if len(values) != 3:
        raise ConfigError(
            f"Expected 3 proportions (train, validation, test), got {len(values)}"
        )
    if not all(math.isfinite(p) and p > 0 for p in values):
        raise ConfigError(f"All proportions must be finite and positive, got {values}")
    if abs(sum(values) - 1.0) > PROPORTION_TOLERANCE:
        raise ConfigError(f"Proportions must sum to 1.0, got {sum(values):.6f}")

    return values


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Set up root logging from explicit arguments or the global settings."""
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file if log_file is not None else settings.LOG_FILE

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


# Global settings instance
settings = Settings()
