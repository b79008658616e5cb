"""
In-memory table adapters for the ddCt Calculator.

This module converts a loaded Ct table (rows = wells) into WellMeasurement
records and turns pipeline results back into DataFrames for reporting.
Reading and writing files is left to the caller.
"""

import math

import pandas as pd

from ddct_calculator.config import (
    ERROR_INVALID_CT,
    OUTPUT_MEAN_CT_COLUMNS,
    OUTPUT_RESULT_COLUMNS,
    REQUIRED_COLUMNS,
    UNDETERMINED_CT_MARKERS,
    column_alias_rank,
    normalize_column_name,
)
from ddct_calculator.log import get_logger
from ddct_calculator.models import MeanCt, PipelineResult, Well, WellMeasurement

logger = get_logger(__name__)


def normalize_dataframe_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize column names in DataFrame using config mappings.

    When several columns map to the same required column, the one whose alias
    comes first in COLUMN_ALIASES is kept (ties go to the leftmost column) and
    the others are dropped, so every required column appears at most once.

    Args:
        df: DataFrame with raw column names

    Returns:
        DataFrame with normalized column names
    """
    candidates: dict[str, list[tuple[int, int]]] = {}
    for position, col in enumerate(df.columns):
        standard = normalize_column_name(str(col))
        if standard in REQUIRED_COLUMNS:
            candidates.setdefault(standard, []).append((column_alias_rank(str(col)), position))

    keep = list(range(len(df.columns)))
    column_mapping = {}
    for standard, ranked in candidates.items():
        winner = min(ranked)[1]
        column_mapping[winner] = standard
        for _, position in ranked:
            if position != winner:
                keep.remove(position)
                logger.debug(
                    "Ignoring column '%s': '%s' already provides %s",
                    df.columns[position], df.columns[winner], standard,
                )

    normalized = df.iloc[:, keep].copy()
    normalized.columns = [column_mapping.get(position, df.columns[position]) for position in keep]
    return normalized


def parse_ct_value(value, row_num: int | None = None) -> float | None:
    """
    Interpret one Ct cell.

    Empty cells, NaN and "Undetermined" (any case) become None; numbers and
    numeric strings become floats.

    Args:
        value: Raw cell value
        row_num: Human-readable row number for error messages

    Returns:
        Ct as float, or None if undetermined

    Raises:
        ValueError: If the cell is neither numeric nor an undetermined marker
    """
    if value is None:
        return None

    if isinstance(value, str):
        text = value.strip()
        if text.lower() in UNDETERMINED_CT_MARKERS:
            return None
        try:
            ct = float(text)
        except ValueError:
            raise ValueError(ERROR_INVALID_CT.format(row=row_num, value=value)) from None
    else:
        if pd.isna(value):
            return None
        try:
            ct = float(value)
        except (TypeError, ValueError):
            raise ValueError(ERROR_INVALID_CT.format(row=row_num, value=value)) from None

    if math.isnan(ct):
        return None
    if math.isinf(ct):
        raise ValueError(ERROR_INVALID_CT.format(row=row_num, value=value))

    return ct


def measurements_from_dataframe(df: pd.DataFrame) -> list[WellMeasurement]:
    """
    Convert a Ct table into well measurements.

    Args:
        df: Table with (aliases of) Well, Sample Name and Ct columns,
            one row per well; extra columns are ignored

    Returns:
        List of WellMeasurement, in table order

    Raises:
        ValueError: If required columns are missing or a cell cannot be parsed
        MalformedWellError: If a well label is not a row letter plus column number
    """
    df = normalize_dataframe_columns(df)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    # Fully empty rows are spreadsheet padding, not wells
    df = df.dropna(how="all", subset=REQUIRED_COLUMNS).reset_index(drop=True)

    measurements = []
    for idx, row in df.iterrows():
        row_num = idx + 1

        sample = row["Sample Name"]
        label = "" if pd.isna(sample) else str(sample).strip()

        measurements.append(
            WellMeasurement(
                well=Well.from_label(row["Well"]),
                sample_label=label,
                ct=parse_ct_value(row["Ct"], row_num),
            )
        )

    return measurements


def measurements_to_dataframe(measurements: list[WellMeasurement]) -> pd.DataFrame:
    """Inverse of measurements_from_dataframe; undetermined Ct becomes NaN."""
    return pd.DataFrame(
        {
            "Well": [m.well.label for m in measurements],
            "Sample Name": [m.sample_label for m in measurements],
            "Ct": [m.ct if m.ct is not None else float("nan") for m in measurements],
        },
        columns=REQUIRED_COLUMNS,
    )


def mean_cts_to_dataframe(mean_cts: tuple[MeanCt, ...] | list[MeanCt]) -> pd.DataFrame:
    """
    Tabulate mean Ct values for reporting.

    Args:
        mean_cts: Output of aggregate_replicates

    Returns:
        DataFrame with OUTPUT_MEAN_CT_COLUMNS
    """
    rows = [
        {
            "Group": m.group,
            "Replicate": m.replicate,
            "Primer": m.primer.value,
            "Mean Ct": m.mean_ct,
            "SD Ct": m.sd_ct,
            "Wells": m.n_wells,
            "Undetermined Wells": m.n_undetermined,
        }
        for m in mean_cts
    ]
    return pd.DataFrame(rows, columns=OUTPUT_MEAN_CT_COLUMNS)


def results_to_dataframe(result: PipelineResult) -> pd.DataFrame:
    """
    Tabulate the joined per-replicate results of a pipeline run.

    Args:
        result: Output of run_pipeline

    Returns:
        DataFrame with OUTPUT_RESULT_COLUMNS, one row per biological replicate
    """
    rows = [
        {
            "Group": r.group,
            "Replicate": r.replicate,
            "Reference Ct": r.reference_mean_ct,
            "Target Ct": r.target_mean_ct,
            "dCt": r.dct,
            "ddCt": r.ddct,
            "Relative Concentration": r.rel_conc,
            "Mean Relative Concentration": r.mean_rel_conc,
        }
        for r in result.records
    ]
    return pd.DataFrame(rows, columns=OUTPUT_RESULT_COLUMNS)


def group_summary_to_dataframe(result: PipelineResult) -> pd.DataFrame:
    """One row per treatment group: mean dCt and mean relative concentration."""
    mean_dct = {s.group: s.mean_dct for s in result.group_delta_cts}
    rows = [
        {
            "Group": s.group,
            "Replicates": s.n_replicates,
            "Mean dCt": mean_dct[s.group],
            "Mean Relative Concentration": s.mean_rel_conc,
            "Control": s.group == result.control_group,
        }
        for s in result.group_relative_concentrations
    ]
    return pd.DataFrame(
        rows, columns=["Group", "Replicates", "Mean dCt", "Mean Relative Concentration", "Control"]
    )
