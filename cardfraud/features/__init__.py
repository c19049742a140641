from cardfraud.features.pipeline import (
    FeaturePipeline,
    FeatureSpec,
    FittedPipeline,
    PipelineConfig,
)

__all__ = ["FeaturePipeline", "FeatureSpec", "FittedPipeline", "PipelineConfig"]
