"""
Quality-control checks for the ddCt Calculator.

This module handles validation of plate data including:
- Column presence checks
- Layout problems the pipeline would stop on (duplicate wells, unmapped rows,
  undecodable labels)
- Non-blocking warnings (amplified NTC wells, undetermined or late Ct,
  noisy technical replicates)

Unlike the pipeline, these checks collect every problem instead of stopping
at the first one.
"""

from collections.abc import Sequence

import pandas as pd

from ddct_calculator.config import (
    ERROR_DUPLICATE_WELL,
    ERROR_MISSING_COLUMN,
    ERROR_UNMAPPED_ROW,
    LATE_CT_THRESHOLD,
    MAX_REPLICATE_SD,
    NTC_LABEL,
    REQUIRED_COLUMNS,
    WARN_CONTROL_GROUP_MISSING,
    WARN_HIGH_REPLICATE_SD,
    WARN_LATE_CT,
    WARN_NTC_AMPLIFIED,
    WARN_UNDETERMINED_SAMPLE,
    sentinel_key,
)
from ddct_calculator.errors import MalformedLabelError
from ddct_calculator.io import normalize_dataframe_columns
from ddct_calculator.layout import decode_sample_label
from ddct_calculator.models import MeanCt, PipelineConfig, ValidationResult, WellMeasurement


def validate_columns(df: pd.DataFrame) -> list[str]:
    """
    Validate that all required columns are present.

    Args:
        df: DataFrame with raw or normalized column names

    Returns:
        List of error messages (empty if all columns present)
    """
    columns = set(normalize_dataframe_columns(df).columns)
    return [ERROR_MISSING_COLUMN.format(column=col) for col in REQUIRED_COLUMNS if col not in columns]


def validate_measurements(
    measurements: Sequence[WellMeasurement],
    config: PipelineConfig,
    late_ct_threshold: float = LATE_CT_THRESHOLD,
) -> ValidationResult:
    """
    Check a plate's measurements against the run configuration.

    Args:
        measurements: Per-well readings
        config: Pipeline configuration the plate will be run with
        late_ct_threshold: Ct above which amplification is flagged as late

    Returns:
        ValidationResult with errors, warnings and summary counts
    """
    result = ValidationResult(is_valid=True)
    sentinels = {sentinel_key(label) for label in config.sentinel_labels}

    seen = set()
    groups = set()
    samples = set()
    sentinel_wells = 0

    for m in measurements:
        well = m.well
        label = m.sample_label.strip()

        if well in seen:
            result.add_error(ERROR_DUPLICATE_WELL.format(well=well.label))
        seen.add(well)

        if well.row not in config.primer_assignment:
            result.add_error(ERROR_UNMAPPED_ROW.format(well=well.label, row=well.row))

        if sentinel_key(label) in sentinels:
            sentinel_wells += 1
            if sentinel_key(label) == sentinel_key(NTC_LABEL) and m.ct is not None:
                result.add_warning(WARN_NTC_AMPLIFIED.format(well=well.label, ct=m.ct))
            continue

        try:
            identity = decode_sample_label(label, config.label_delimiter)
        except MalformedLabelError as e:
            result.add_error(f"Well {well.label}: {e}")
        else:
            groups.add(identity.group)
            samples.add(identity.key)

        if m.ct is None:
            result.add_warning(WARN_UNDETERMINED_SAMPLE.format(well=well.label, label=label))
        elif m.ct > late_ct_threshold:
            result.add_warning(
                WARN_LATE_CT.format(well=well.label, ct=m.ct, threshold=late_ct_threshold)
            )

    if groups and config.control_group not in groups:
        result.add_warning(WARN_CONTROL_GROUP_MISSING.format(control_group=config.control_group))

    result.summary = {
        "num_wells": len(measurements),
        "num_sentinel_wells": sentinel_wells,
        "num_samples": len(samples),
        "num_groups": len(groups),
        "groups": sorted(groups),
    }

    return result


def validate_replicate_spread(
    mean_cts: Sequence[MeanCt],
    sd_threshold: float = MAX_REPLICATE_SD,
) -> ValidationResult:
    """
    Flag technical replicates that disagree by more than sd_threshold cycles.

    Args:
        mean_cts: Output of aggregate_replicates
        sd_threshold: Maximum acceptable SD in cycles

    Returns:
        ValidationResult with one warning per noisy key
    """
    result = ValidationResult(is_valid=True)

    noisy = 0
    for m in mean_cts:
        if m.sd_ct > sd_threshold:
            noisy += 1
            result.add_warning(
                WARN_HIGH_REPLICATE_SD.format(
                    group=m.group,
                    replicate=m.replicate,
                    primer=m.primer.value,
                    sd=m.sd_ct,
                    threshold=sd_threshold,
                )
            )

    result.summary = {"num_noisy_replicates": noisy}
    return result


def run_all_validations(
    measurements: Sequence[WellMeasurement],
    config: PipelineConfig,
    mean_cts: Sequence[MeanCt] | None = None,
) -> ValidationResult:
    """
    Run all quality-control checks on a plate.

    Args:
        measurements: Per-well readings
        config: Pipeline configuration
        mean_cts: Aggregated replicates, if already computed

    Returns:
        ValidationResult with errors, warnings, and validity status
    """
    result = validate_measurements(measurements, config)

    if mean_cts is not None:
        result = result.merge(validate_replicate_spread(mean_cts))

    return result
