"""
Unit tests for quality-control checks.

Tests column checks, plate layout problems, and non-blocking warnings.
"""

import pandas as pd

from ddct_calculator.models import MeanCt, PrimerTarget, Well, WellMeasurement, create_pipeline_config
from ddct_calculator.validation import (
    run_all_validations,
    validate_columns,
    validate_measurements,
    validate_replicate_spread,
)


def _m(well: str, label: str, ct: float | None = 20.0) -> WellMeasurement:
    return WellMeasurement(well=Well.from_label(well), sample_label=label, ct=ct)


def _config(**kwargs):
    return create_pipeline_config(
        primer_assignment={"A": "reference", "B": "target"},
        control_group=kwargs.pop("control_group", "Control"),
        **kwargs,
    )


# ============================================================================
# validate_columns Tests
# ============================================================================


def test_validate_columns_all_present():
    df = pd.DataFrame(columns=["Well Position", "Sample Name", "CT"])
    assert validate_columns(df) == []


def test_validate_columns_missing():
    df = pd.DataFrame(columns=["Well", "Target Name"])

    errors = validate_columns(df)

    assert errors == ["Missing required column: Sample Name", "Missing required column: Ct"]


# ============================================================================
# validate_measurements Tests
# ============================================================================


def test_validate_measurements_clean_plate():
    """A clean plate has no errors or warnings."""
    measurements = [
        _m("A1", "Control-1", 18.0),
        _m("B1", "Control-1", 23.0),
        _m("A2", "RNAi1-1", 18.1),
        _m("B2", "RNAi1-1", 25.0),
    ]

    result = validate_measurements(measurements, _config())

    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []
    assert result.summary["num_wells"] == 4
    assert result.summary["num_samples"] == 2
    assert result.summary["groups"] == ["Control", "RNAi1"]


def test_validate_measurements_collects_every_error():
    """Unlike the pipeline, QC reports all problems at once."""
    measurements = [
        _m("A1", "Control-1"),
        _m("A1", "Control-2"),
        _m("C1", "Control-1"),
        _m("B1", "Control1"),
    ]

    result = validate_measurements(measurements, _config())

    assert not result.is_valid
    assert len(result.errors) == 3
    assert any("Well A1 has more than one measurement" in e for e in result.errors)
    assert any("plate row 'C'" in e for e in result.errors)
    assert any("'Control1'" in e for e in result.errors)


def test_validate_measurements_ntc_amplified_warning():
    """An NTC well with a Ct indicates contamination."""
    measurements = [_m("A1", "Control-1"), _m("A2", "NTC", 34.2), _m("A3", "NTC", None)]

    result = validate_measurements(measurements, _config())

    assert result.is_valid
    assert len(result.warnings) == 1
    assert "A2" in result.warnings[0]
    assert "contamination" in result.warnings[0]
    assert result.summary["num_sentinel_wells"] == 2


def test_validate_measurements_lowercase_ntc_matches_layout():
    """QC and sentinel exclusion agree that "ntc" is a no-template control."""
    measurements = [_m("A1", "Control-1"), _m("A2", "ntc", 33.0)]

    result = validate_measurements(measurements, _config())

    assert result.errors == []
    assert result.summary["num_sentinel_wells"] == 1
    assert any("A2" in w and "contamination" in w for w in result.warnings)


def test_validate_measurements_undetermined_and_late_ct():
    measurements = [_m("A1", "Control-1", None), _m("A2", "Control-2", 37.5)]

    result = validate_measurements(measurements, _config())

    assert result.is_valid
    assert any("undetermined" in w for w in result.warnings)
    assert any("late amplification" in w for w in result.warnings)


def test_validate_measurements_missing_control_group():
    measurements = [_m("A1", "Mock-1"), _m("B1", "Mock-1")]

    result = validate_measurements(measurements, _config())

    assert result.is_valid
    assert any("Control group 'Control'" in w for w in result.warnings)


def test_validate_measurements_custom_sentinels_and_delimiter():
    measurements = [_m("A1", "Control_1"), _m("A2", "Blank", None)]

    result = validate_measurements(
        measurements, _config(sentinel_labels={"Blank"}, label_delimiter="_")
    )

    assert result.errors == []
    assert result.warnings == []


# ============================================================================
# validate_replicate_spread Tests
# ============================================================================


def test_validate_replicate_spread_flags_noisy_keys():
    mean_cts = [
        MeanCt(group="Control", replicate="1", primer=PrimerTarget.REFERENCE, mean_ct=18.0, n_wells=3, sd_ct=0.1),
        MeanCt(group="Control", replicate="1", primer=PrimerTarget.TARGET, mean_ct=23.0, n_wells=3, sd_ct=0.9),
    ]

    result = validate_replicate_spread(mean_cts)

    assert len(result.warnings) == 1
    assert "Control-1 (target)" in result.warnings[0]
    assert result.summary["num_noisy_replicates"] == 1


def test_run_all_validations_merges_spread_checks():
    measurements = [_m("A1", "Control-1"), _m("B1", "Control-1")]
    mean_cts = [
        MeanCt(group="Control", replicate="1", primer=PrimerTarget.REFERENCE, mean_ct=18.0, n_wells=3, sd_ct=1.2),
    ]

    result = run_all_validations(measurements, _config(), mean_cts=mean_cts)

    assert result.is_valid
    assert len(result.warnings) == 1
    assert result.summary["num_wells"] == 2
    assert result.summary["num_noisy_replicates"] == 1
