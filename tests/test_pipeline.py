"""
Integration tests for the complete ddCt pipeline.

Tests the full workflow from well measurements through relative concentration.
"""

import logging
from pathlib import Path

import pytest
import pandas as pd

from ddct_calculator.errors import (
    ControlGroupNotFoundError,
    IncompletePairingError,
    MalformedLabelError,
    NoAmplificationError,
    UndeterminedCtError,
    UnmappedRowError,
)
from ddct_calculator.io import measurements_from_dataframe
from ddct_calculator.models import Well, WellMeasurement, create_pipeline_config
from ddct_calculator.pipeline import build_result_records, run_pipeline, run_pipeline_from_dataframe


# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

ROUND_TRIP_ASSIGNMENT = {
    "A": "reference", "B": "reference", "C": "reference", "D": "reference",
    "E": "target", "F": "target", "G": "target", "H": "target",
}


def _round_trip_config(**kwargs):
    return create_pipeline_config(
        primer_assignment=ROUND_TRIP_ASSIGNMENT, control_group="Control", **kwargs
    )


def _round_trip_measurements() -> list[WellMeasurement]:
    df = pd.read_csv(FIXTURES_DIR / "round_trip_plate.csv")
    return measurements_from_dataframe(df)


def _m(well: str, label: str, ct: float | None) -> WellMeasurement:
    return WellMeasurement(well=Well.from_label(well), sample_label=label, ct=ct)


# ============================================================================
# Round-trip Scenario
# ============================================================================


def test_round_trip_plate():
    """8 rows x 3 columns, A-D reference, E-H target, four samples."""
    result = run_pipeline(_round_trip_measurements(), _round_trip_config())

    assert len(result.mean_cts) == 8
    assert len(result.delta_cts) == 4
    assert [(d.group, d.replicate) for d in result.delta_cts] == [
        ("Control", "1"), ("Control", "2"), ("RNAi1", "1"), ("RNAi1", "2"),
    ]

    control_ddct = [r.ddct for r in result.delta_delta_cts if r.group == "Control"]
    assert sum(control_ddct) / len(control_ddct) == pytest.approx(0.0, abs=1e-9)

    summaries = {s.group: s for s in result.group_relative_concentrations}
    assert summaries["Control"].mean_rel_conc == pytest.approx(1.0)
    assert summaries["RNAi1"].mean_rel_conc == pytest.approx(0.25)
    assert result.groups == ["Control", "RNAi1"]


def test_round_trip_values():
    """Mean Ct, dCt and ddCt match hand-calculated values."""
    result = run_pipeline(_round_trip_measurements(), _round_trip_config())

    records = {(r.group, r.replicate): r for r in result.records}
    rnai = records[("RNAi1", "1")]
    assert rnai.reference_mean_ct == pytest.approx(18.1)
    assert rnai.target_mean_ct == pytest.approx(25.1)
    assert rnai.dct == pytest.approx(-7.0)
    assert rnai.ddct == pytest.approx(2.0)
    assert rnai.rel_conc == pytest.approx(0.25)
    assert rnai.mean_rel_conc == pytest.approx(0.25)


def test_ntc_never_reaches_output():
    """NTC and empty wells appear in no MeanCt or DeltaCt."""
    result = run_pipeline(_round_trip_measurements(), _round_trip_config())

    groups = {m.group for m in result.mean_cts} | {d.group for d in result.delta_cts}
    assert "NTC" not in groups
    assert groups == {"Control", "RNAi1"}
    assert all(m.n_wells == 3 for m in result.mean_cts)


def test_pipeline_is_deterministic():
    """Identical input gives bit-identical output."""
    first = run_pipeline(_round_trip_measurements(), _round_trip_config())
    second = run_pipeline(_round_trip_measurements(), _round_trip_config())

    assert first == second
    assert first.model_dump() == second.model_dump()


def test_pipeline_input_order_does_not_change_results():
    measurements = _round_trip_measurements()

    forward = run_pipeline(measurements, _round_trip_config())
    backward = run_pipeline(list(reversed(measurements)), _round_trip_config())

    assert forward == backward


def test_run_pipeline_from_dataframe():
    df = pd.read_csv(FIXTURES_DIR / "round_trip_plate.csv")

    result = run_pipeline_from_dataframe(df, _round_trip_config())

    assert len(result.records) == 4


# ============================================================================
# Error Scenarios
# ============================================================================


def test_unmapped_row_raises_before_aggregation(monkeypatch):
    """UnmappedRowError comes from the first stage; aggregation never runs."""
    calls = []
    monkeypatch.setattr(
        "ddct_calculator.pipeline.aggregate_replicates",
        lambda *args, **kwargs: calls.append(args),
    )
    measurements = _round_trip_measurements() + [_m("I1", "Control-1", 18.0)]

    with pytest.raises(UnmappedRowError) as exc_info:
        run_pipeline(measurements, _round_trip_config())

    assert exc_info.value.row == "I"
    assert calls == []


def test_malformed_label_surfaces():
    measurements = _round_trip_measurements() + [_m("A5", "Control1", 18.0)]

    with pytest.raises(MalformedLabelError):
        run_pipeline(measurements, _round_trip_config())


def test_custom_sentinel_excludes_label():
    """A label configured as a sentinel is excluded instead of failing decode."""
    measurements = _round_trip_measurements() + [_m("A5", "Blank", 30.0)]

    result = run_pipeline(
        measurements, _round_trip_config(sentinel_labels={"", "NTC", "Blank"})
    )

    assert len(result.records) == 4


def test_missing_target_side_raises_incomplete_pairing():
    measurements = [m for m in _round_trip_measurements() if m.well.row != "H"]

    with pytest.raises(IncompletePairingError) as exc_info:
        run_pipeline(measurements, _round_trip_config())

    assert exc_info.value.unpaired[0][:2] == ("RNAi1", "2")


def test_no_amplification_raises():
    measurements = [
        _m(m.well.label, m.sample_label, None) if m.well.row == "G" else m
        for m in _round_trip_measurements()
    ]

    with pytest.raises(NoAmplificationError):
        run_pipeline(measurements, _round_trip_config())


def test_undetermined_policy_fail():
    measurements = _round_trip_measurements() + [_m("G4", "RNAi1-1", None)]

    # Default policy drops the undetermined well
    result = run_pipeline(measurements, _round_trip_config())
    target = [m for m in result.mean_cts if m.key == ("RNAi1", "1") and m.primer.value == "target"]
    assert target[0].n_undetermined == 1

    with pytest.raises(UndeterminedCtError):
        run_pipeline(measurements, _round_trip_config(undetermined_policy="fail"))


def test_control_group_not_found():
    config = create_pipeline_config(primer_assignment=ROUND_TRIP_ASSIGNMENT, control_group="Mock")

    with pytest.raises(ControlGroupNotFoundError):
        run_pipeline(_round_trip_measurements(), config)


def test_pipeline_logs_failures(caplog):
    config = create_pipeline_config(primer_assignment=ROUND_TRIP_ASSIGNMENT, control_group="Mock")

    with caplog.at_level(logging.ERROR, logger="ddct_calculator.pipeline"):
        with pytest.raises(ControlGroupNotFoundError):
            run_pipeline(_round_trip_measurements(), config)

    assert "ddCt pipeline failed" in caplog.text


# ============================================================================
# build_result_records Tests
# ============================================================================


def test_build_result_records_rejects_mismatched_stages():
    result = run_pipeline(_round_trip_measurements(), _round_trip_config())

    with pytest.raises(ValueError, match="do not cover replicate"):
        build_result_records(
            result.delta_cts,
            result.delta_delta_cts[:-1],
            result.relative_concentrations,
            result.group_relative_concentrations,
        )
