"""
End-to-end ddCt pipeline.

Runs plate layout mapping -> sample decoding -> replicate aggregation ->
delta-Ct -> control normalization -> relative concentration, each stage
consuming the complete output of the one before. A stage either returns a
fully valid collection or raises; there is no partial output.
"""

from collections.abc import Sequence

import pandas as pd

from ddct_calculator.compute import (
    aggregate_replicates,
    compute_delta_ct,
    compute_relative_concentration,
    normalize_to_control,
    summarize_delta_ct,
    summarize_relative_concentration,
)
from ddct_calculator.errors import QpcrAnalysisError
from ddct_calculator.io import measurements_from_dataframe
from ddct_calculator.layout import decode_samples, map_plate_layout
from ddct_calculator.log import get_logger
from ddct_calculator.models import (
    DeltaCt,
    DeltaDeltaCt,
    GroupRelativeConcentration,
    PipelineConfig,
    PipelineResult,
    RelativeConcentration,
    ResultRecord,
    WellMeasurement,
)

logger = get_logger(__name__)


def build_result_records(
    delta_cts: Sequence[DeltaCt],
    delta_delta_cts: Sequence[DeltaDeltaCt],
    relative_concentrations: Sequence[RelativeConcentration],
    group_relative_concentrations: Sequence[GroupRelativeConcentration],
) -> tuple[ResultRecord, ...]:
    """
    Join per-replicate results of every stage into one reporting row each.

    Args:
        delta_cts: Output of compute_delta_ct
        delta_delta_cts: Output of normalize_to_control
        relative_concentrations: Output of compute_relative_concentration
        group_relative_concentrations: Output of summarize_relative_concentration

    Returns:
        One ResultRecord per biological replicate, in delta_cts order

    Raises:
        ValueError: If the inputs do not cover the same replicates
    """
    ddct_by_key = {(r.group, r.replicate): r for r in delta_delta_cts}
    rel_by_key = {(r.group, r.replicate): r for r in relative_concentrations}
    group_mean = {g.group: g.mean_rel_conc for g in group_relative_concentrations}

    records = []
    for dct in delta_cts:
        key = (dct.group, dct.replicate)
        if key not in ddct_by_key or key not in rel_by_key or dct.group not in group_mean:
            raise ValueError(f"Stage outputs do not cover replicate {dct.group}-{dct.replicate}")

        records.append(
            ResultRecord(
                group=dct.group,
                replicate=dct.replicate,
                reference_mean_ct=dct.reference_mean_ct,
                target_mean_ct=dct.target_mean_ct,
                dct=dct.dct,
                ddct=ddct_by_key[key].ddct,
                rel_conc=rel_by_key[key].rel_conc,
                mean_rel_conc=group_mean[dct.group],
            )
        )

    return tuple(records)


def run_pipeline(
    measurements: Sequence[WellMeasurement],
    config: PipelineConfig,
) -> PipelineResult:
    """
    Compute relative expression for one plate.

    Args:
        measurements: Per-well readings from the loader
        config: Primer assignment, control group, sentinel labels,
            label delimiter and undetermined-Ct policy

    Returns:
        PipelineResult holding every stage's output and the joined records

    Raises:
        UnmappedRowError, DuplicateWellError: From plate layout mapping
        MalformedLabelError: From sample decoding
        UndeterminedCtError, NoAmplificationError: From replicate aggregation
        IncompletePairingError: From delta-Ct pairing
        ControlGroupNotFoundError: From control normalization
    """
    logger.info(
        "Running ddCt pipeline on %d wells (control group '%s')",
        len(measurements),
        config.control_group,
    )

    try:
        tagged = map_plate_layout(measurements, config.primer_assignment)
        decoded = decode_samples(tagged, config.sentinel_labels, config.label_delimiter)
        mean_cts = aggregate_replicates(decoded, config.undetermined_policy)
        delta_cts = compute_delta_ct(mean_cts)
        group_delta_cts = summarize_delta_ct(delta_cts)
        delta_delta_cts = normalize_to_control(delta_cts, config.control_group)
        relative_concentrations = compute_relative_concentration(delta_delta_cts)
        group_relative_concentrations = summarize_relative_concentration(relative_concentrations)
    except QpcrAnalysisError as e:
        logger.error("ddCt pipeline failed: %s", e)
        raise

    records = build_result_records(
        delta_cts, delta_delta_cts, relative_concentrations, group_relative_concentrations
    )

    logger.info(
        "ddCt pipeline finished: %d replicates across %d groups",
        len(records),
        len(group_relative_concentrations),
    )

    return PipelineResult(
        control_group=config.control_group,
        mean_cts=mean_cts,
        delta_cts=delta_cts,
        group_delta_cts=group_delta_cts,
        delta_delta_cts=delta_delta_cts,
        relative_concentrations=relative_concentrations,
        group_relative_concentrations=group_relative_concentrations,
        records=records,
    )


def run_pipeline_from_dataframe(df: pd.DataFrame, config: PipelineConfig) -> PipelineResult:
    """
    Convert a loaded Ct table and run the pipeline on it.

    Args:
        df: Table with Well, Sample Name and Ct columns (aliases accepted)
        config: Pipeline configuration

    Returns:
        PipelineResult
    """
    return run_pipeline(measurements_from_dataframe(df), config)
