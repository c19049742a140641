"""
End-to-end data preparation run.

Pipeline Flow:
1. Load the raw transaction table, dropping rows with invalid Time or Amount
2. Stratified train/validation/test split
3. Verify class balance across partitions
4. Fit the feature pipeline on train ONLY
5. Transform all three partitions with the same FeatureSpec
6. Save transformed partitions + feature_spec.json

Run with:
    python -m cardfraud.prepare
"""
import logging
from pathlib import Path
from typing import Dict, Optional

from cardfraud.config import Settings, configure_logging, settings as default_settings
from cardfraud.features.pipeline import FeaturePipeline, PipelineConfig
from cardfraud.ingestion.loader import drop_invalid_rows, load_credit_card_data, save_splits
from cardfraud.ingestion.schema import DataSplit, Partition
from cardfraud.ingestion.splitter import split, verify_split

logger = logging.getLogger(__name__)


def run_preparation(
    settings: Optional[Settings] = None,
    pipeline_config: Optional[PipelineConfig] = None,
    verbose: bool = True,
) -> Dict:
    """
    Run load -> screen -> split -> verify -> fit -> transform -> save.

    Returns:
        Dict with 'splits' (raw DataSplit), 'verification', 'fitted'
        (FittedPipeline), 'transformed' (DataSplit of transformed partitions)
        and 'artifacts' (written paths)
    """
    settings = settings or default_settings
    output_dir = Path(settings.OUTPUT_DIR)

    if pipeline_config is None:
        pipeline_config = PipelineConfig(label_column=settings.LABEL_COLUMN)

    # Step 1-2
    df = load_credit_card_data(settings.DATA_PATH, table=settings.DATA_TABLE)
    df = drop_invalid_rows(df, label_column=settings.LABEL_COLUMN)
    splits = split(
        df,
        proportions=settings.get_proportions(),
        seed=settings.RANDOM_SEED,
        label_column=settings.LABEL_COLUMN,
    )

    # Step 3
    verification = verify_split(
        splits,
        tolerance=settings.SPLIT_TOLERANCE_PCT,
        label_column=settings.LABEL_COLUMN,
        verbose=verbose,
    )

    # Step 4-5
    fitted, transformed = FeaturePipeline(pipeline_config).fit_transform(
        splits.train, splits.validation, splits.test
    )
    transformed_splits = DataSplit(
        *(
            Partition(role=part.role, data=frame, label_column=settings.LABEL_COLUMN)
            for part, frame in zip(splits, transformed)
        )
    )

    # Step 6
    artifacts = save_splits(transformed_splits, output_dir, suffix="_preprocessed")
    artifacts["feature_spec"] = fitted.save(output_dir / "feature_spec.json")

    if verbose:
        print(f"\n{'='*70}")
        print(f"PREPARATION COMPLETE")
        print(f"{'='*70}")
        for part in transformed_splits:
            print(f"  {part.role:<12} {len(part):>8,} rows x {part.data.shape[1]} columns "
                  f"(fraud {part.fraud_pct:.4f}%)")
        print(f"  Features:    {len(fitted.feature_names)}")
        print(f"  Max class drift: {verification.max_difference:.4f} pp "
              f"({'OK' if verification.within_tolerance else 'EXCEEDS TOLERANCE'})")
        print(f"\nArtifacts saved to: {output_dir}")
        print(f"{'='*70}\n")

    return {
        "splits": splits,
        "verification": verification,
        "fitted": fitted,
        "transformed": transformed_splits,
        "artifacts": artifacts,
    }


# ============================================================================
# ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    configure_logging()
    run_preparation()
