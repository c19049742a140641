"""
Fit-once / apply-many feature pipeline.

Design Contract:
- fit(train) learns EVERYTHING (amount scaling, normalization stats,
  category mappings, zero-variance columns, interaction components) from the
  training partition only, and freezes it into a FeatureSpec.
- transform(partition) applies that FeatureSpec verbatim. Nothing is ever
  recomputed from the partition being transformed, including train itself.
- transform output always has exactly spec.feature_names, in order, followed
  by the label column when the input carries one.

Stages (fixed order, later stages consume earlier derived features):
    1. Temporal decomposition      (stateless)
    2. Amount transforms           (amount_std uses training mean/std)
    3. Amount x component products (components fixed at fit time)
    4. Normalization               (training mean / sample std)
    5. Categorical indicators      (levels fixed at fit time; unseen -> all zeros)
    6. Zero-variance pruning       (columns constant in training, dropped everywhere)
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from cardfraud.exceptions import NotFittedError, SchemaError
from cardfraud.features.definitions import (
    CATEGORY_LEVELS,
    compute_amount_features,
    compute_interaction_features,
    compute_time_features,
    find_components,
    select_components_by_correlation,
)
from cardfraud.ingestion.schema import DEFAULT_LABEL_COLUMN, Partition

logger = logging.getLogger(__name__)

PartitionLike = Union[Partition, pd.DataFrame]


# ============================================================================
# CONFIGURATION & LEARNED STATE
# ============================================================================

class PipelineConfig(BaseModel):
    """Which stages run and on which columns. Chosen by the caller before fit."""
    label_column: str = DEFAULT_LABEL_COLUMN
    time_column: str = "Time"
    amount_column: str = "Amount"

    time_features: bool = True
    amount_features: bool = True
    interaction_features: bool = True
    interaction_components: Optional[Tuple[str, ...]] = None
    n_interactions: int = Field(default=5, ge=1)
    interaction_selection: Literal["first", "correlation"] = "first"

    normalize: bool = True
    drop_zero_variance: bool = True

    model_config = ConfigDict(frozen=True)


class FeatureSpec(BaseModel):
    """
    Everything learned by fit(). Read-only; shared by every transform call.
    """
    label_column: str
    input_columns: Tuple[str, ...]
    time_column: Optional[str] = None
    amount_column: Optional[str] = None
    interaction_components: Tuple[str, ...] = ()
    amount_mean: Optional[float] = None
    amount_scale: Optional[float] = None
    normalization: Dict[str, Tuple[float, float]] = {}
    categorical_levels: Dict[str, Tuple[str, ...]] = {}
    zero_variance: Tuple[str, ...] = ()
    feature_names: Tuple[str, ...]

    model_config = ConfigDict(frozen=True)


# ============================================================================
# STAGE HELPERS (shared by fit and transform)
# ============================================================================

def _as_frame(data: PartitionLike) -> pd.DataFrame:
    if isinstance(data, Partition):
        return data.data
    if isinstance(data, pd.DataFrame):
        return data
    raise SchemaError(f"Expected a Partition or DataFrame, got {type(data).__name__}")


def _derive(
    df: pd.DataFrame,
    input_columns: Sequence[str],
    time_column: Optional[str],
    amount_column: Optional[str],
    amount_mean: Optional[float],
    amount_scale: Optional[float],
    components: Sequence[str],
) -> pd.DataFrame:
    """Stages 1-3: raw predictors plus derived features, before scaling."""
    frames = [df[list(input_columns)]]

    if time_column is not None:
        frames.append(compute_time_features(df[time_column]))

    if amount_column is not None and amount_mean is not None:
        frames.append(compute_amount_features(df[amount_column], amount_mean, amount_scale))

    if components:
        frames.append(compute_interaction_features(df[amount_column], df, components))

    return pd.concat(frames, axis=1)


def _normalize(column: pd.Series, mean: float, std: float) -> pd.Series:
    values = pd.to_numeric(column, errors="raise").astype(float)
    if std > 0:
        return (values - mean) / std
    # Zero variance in training: every value maps to 0
    return pd.Series(0.0, index=column.index)


def _indicators(column: pd.Series, name: str, levels: Sequence[str]) -> pd.DataFrame:
    values = column.astype(str)
    return pd.DataFrame(
        {f"{name}_{level}": (values == level).astype(float) for level in levels},
        index=column.index,
    )


def _encode(
    derived: pd.DataFrame,
    normalization: Dict[str, Tuple[float, float]],
    categorical_levels: Dict[str, Tuple[str, ...]],
    numeric_columns: Sequence[str],
) -> pd.DataFrame:
    """Stages 4-5: numeric columns scaled (if configured), categoricals expanded."""
    parts = {}
    for col in numeric_columns:
        if col in normalization:
            mean, std = normalization[col]
            parts[col] = _normalize(derived[col], mean, std)
        else:
            parts[col] = pd.to_numeric(derived[col], errors="raise").astype(float)

    frames = [pd.DataFrame(parts, index=derived.index)]
    for col, levels in categorical_levels.items():
        frames.append(_indicators(derived[col], col, levels))

    return pd.concat(frames, axis=1)


# ============================================================================
# FITTED PIPELINE
# ============================================================================

class FittedPipeline:
    """
    A FeatureSpec plus the logic to apply it.

    Usage:
        fitted = FeaturePipeline().fit(splits.train)
        X_train = fitted.transform(splits.train)
        X_val = fitted.transform(splits.validation)
    """

    def __init__(self, spec: FeatureSpec):
        self._spec = spec

    @property
    def spec(self) -> FeatureSpec:
        return self._spec

    @property
    def feature_names(self) -> List[str]:
        return list(self._spec.feature_names)

    def transform(self, data: PartitionLike) -> pd.DataFrame:
        """
        Apply the learned FeatureSpec to any partition.

        Raises:
            SchemaError: If the input lacks a column seen at fit time,
                or a numeric column holds non-numeric values
        """
        spec = self._spec
        df = _as_frame(data)

        missing = [col for col in spec.input_columns if col not in df.columns]
        if missing:
            raise SchemaError(f"Input is missing columns seen at fit time: {missing}")

        derived = _derive(
            df,
            spec.input_columns,
            spec.time_column,
            spec.amount_column,
            spec.amount_mean,
            spec.amount_scale,
            spec.interaction_components,
        )
        numeric_columns = [
            col for col in spec.feature_names
            if col in derived.columns and col not in spec.categorical_levels
        ]

        try:
            encoded = _encode(derived, spec.normalization, spec.categorical_levels, numeric_columns)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"Non-numeric values in a numeric feature: {e}") from e

        out = encoded[list(spec.feature_names)]
        if spec.label_column in df.columns:
            out = out.assign(**{spec.label_column: df[spec.label_column].values})

        return out

    def save(self, path: Union[str, Path]) -> Path:
        """Write the FeatureSpec as JSON."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self._spec.model_dump_json(indent=2))
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "FittedPipeline":
        spec = FeatureSpec.model_validate(json.loads(Path(path).read_text()))
        return cls(spec)

    def __repr__(self) -> str:
        return f"FittedPipeline(features={len(self._spec.feature_names)})"


# ============================================================================
# UNFITTED PIPELINE
# ============================================================================

class FeaturePipeline:
    """
    Feature engineering recipe. fit() learns from the training partition and
    returns a FittedPipeline; this object itself never holds learned state.

    Usage:
        pipeline = FeaturePipeline(interaction_selection="correlation")
        fitted, (X_train, X_val, X_test) = pipeline.fit_transform(
            splits.train, splits.validation, splits.test
        )
    """

    def __init__(self, config: Optional[PipelineConfig] = None, **overrides):
        if config is None:
            config = PipelineConfig(**overrides)
        elif overrides:
            config = config.model_copy(update=overrides)
        self.config = config

    def transform(self, data: PartitionLike) -> pd.DataFrame:
        raise NotFittedError(
            "FeaturePipeline is not fitted. Call fit(train) and use the returned FittedPipeline."
        )

    def fit(self, train: PartitionLike) -> FittedPipeline:
        """
        Learn the FeatureSpec from the training partition.

        Raises:
            SchemaError: Empty training data, missing label column, or a
                missing time/amount column for an enabled stage
        """
        cfg = self.config
        df = _as_frame(train)

        if isinstance(train, Partition) and train.role != "train":
            logger.warning("Fitting on a '%s' partition; statistics should come from train", train.role)

        self._check_schema(df)

        input_columns = [col for col in df.columns if col != cfg.label_column]
        time_column = cfg.time_column if cfg.time_features else None

        # Stage 2 state: amount scaling from training rows only
        amount_column = None
        amount_mean = amount_scale = None
        if cfg.amount_features or cfg.interaction_features:
            amount_column = cfg.amount_column
        if cfg.amount_features:
            amount = df[cfg.amount_column].astype(float)
            amount_mean = float(amount.mean())
            amount_scale = float(np.nan_to_num(amount.std(), nan=0.0))

        # Stage 3 state: which components interact with amount
        components = self._choose_components(df) if cfg.interaction_features else []

        derived = _derive(df, input_columns, time_column, amount_column, amount_mean, amount_scale, components)

        categorical_columns = [
            col for col in derived.columns if not pd.api.types.is_numeric_dtype(derived[col])
        ]
        numeric_columns = [col for col in derived.columns if col not in categorical_columns]

        # Stage 4 state
        normalization = {}
        if cfg.normalize:
            for col in numeric_columns:
                values = derived[col].astype(float)
                std = float(np.nan_to_num(values.std(), nan=0.0))
                normalization[col] = (float(values.mean()), std)

        # Stage 5 state
        categorical_levels = {
            col: self._levels_for(col, derived[col]) for col in categorical_columns
        }

        encoded = _encode(derived, normalization, categorical_levels, numeric_columns)

        # Stage 6 state: constant in training (raw values for numerics)
        zero_variance = []
        if cfg.drop_zero_variance:
            for col in encoded.columns:
                source = derived[col] if col in numeric_columns else encoded[col]
                if source.nunique(dropna=False) <= 1:
                    zero_variance.append(col)

        feature_names = [col for col in encoded.columns if col not in zero_variance]

        spec = FeatureSpec(
            label_column=cfg.label_column,
            input_columns=tuple(input_columns),
            time_column=time_column,
            amount_column=amount_column,
            interaction_components=tuple(components),
            amount_mean=amount_mean,
            amount_scale=amount_scale,
            normalization=normalization,
            categorical_levels=categorical_levels,
            zero_variance=tuple(zero_variance),
            feature_names=tuple(feature_names),
        )

        logger.info(
            "FeaturePipeline fitted on %d rows: %d input -> %d features "
            "(%d interactions, %d indicator groups, %d zero-variance dropped)",
            len(df), len(input_columns), len(feature_names),
            len(components), len(categorical_levels), len(zero_variance),
        )
        if zero_variance:
            logger.info("Zero-variance columns dropped: %s", zero_variance)

        return FittedPipeline(spec)

    def fit_transform(self, train: PartitionLike, *others: PartitionLike):
        """
        Fit on train, then transform train and every other partition.

        Returns:
            (fitted, [transformed_train, transformed_other, ...])
        """
        fitted = self.fit(train)
        return fitted, [fitted.transform(part) for part in (train, *others)]

    # ------------------------------------------------------------------------

    def _check_schema(self, df: pd.DataFrame) -> None:
        cfg = self.config

        if cfg.label_column not in df.columns:
            raise SchemaError(f"Target variable '{cfg.label_column}' not found in data")
        if len(df) == 0:
            raise SchemaError("Cannot fit on an empty training partition")

        if cfg.time_features and cfg.time_column not in df.columns:
            raise SchemaError(
                f"Time column '{cfg.time_column}' required for temporal features"
            )
        if (cfg.amount_features or cfg.interaction_features) and cfg.amount_column not in df.columns:
            raise SchemaError(
                f"Amount column '{cfg.amount_column}' required for amount/interaction features"
            )

        if cfg.interaction_features and cfg.interaction_components is not None:
            missing = [col for col in cfg.interaction_components if col not in df.columns]
            if missing:
                raise SchemaError(f"Interaction components not found in data: {missing}")

    def _choose_components(self, df: pd.DataFrame) -> List[str]:
        cfg = self.config

        if cfg.interaction_components is not None:
            return list(cfg.interaction_components)

        candidates = find_components(df.columns)
        if not candidates:
            logger.warning("No anonymized components (V1, V2, ...) found; skipping interactions")
            return []

        if cfg.interaction_selection == "correlation":
            chosen = select_components_by_correlation(df, candidates, cfg.label_column, cfg.n_interactions)
        else:
            chosen = candidates[:cfg.n_interactions]

        logger.info("Interaction components (%s): %s", cfg.interaction_selection, chosen)
        return chosen

    @staticmethod
    def _levels_for(col: str, values: pd.Series) -> Tuple[str, ...]:
        observed = set(values.astype(str))
        if col in CATEGORY_LEVELS:
            return tuple(level for level in CATEGORY_LEVELS[col] if level in observed)
        return tuple(sorted(observed))

    def __repr__(self) -> str:
        return f"FeaturePipeline({self.config!r})"
