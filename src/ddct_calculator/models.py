"""
Data models for the ddCt Calculator using Pydantic.

This module defines the records produced by each pipeline stage, with runtime
validation provided by Pydantic. Every record is frozen: a stage builds new
records rather than editing the ones it received.
"""

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field, field_serializer, field_validator

from ddct_calculator.config import DEFAULT_LABEL_DELIMITER, DEFAULT_SENTINEL_LABELS
from ddct_calculator.errors import MalformedWellError


class PrimerTarget(str, Enum):
    """Role of the primer pair loaded in a plate row."""

    REFERENCE = "reference"
    TARGET = "target"


class UndeterminedPolicy(str, Enum):
    """How the replicate aggregator treats wells with no amplification."""

    EXCLUDE = "exclude"
    FAIL = "fail"


# ============================================================================
# Plate Models
# ============================================================================


class Well(BaseModel):
    """
    A physical plate position such as A1.

    Rows and columns are not restricted to a 96-well layout.
    """

    row: str = Field(..., min_length=1, description="Row label, e.g. 'A'")
    column: int = Field(..., ge=1, description="Column number, 1-based")

    model_config = {"frozen": True}

    @field_validator("row")
    @classmethod
    def normalize_row(cls, v: str) -> str:
        """Rows are matched case-insensitively."""
        return v.strip().upper()

    @classmethod
    def from_label(cls, label: str) -> "Well":
        """
        Split a combined well label at the first character.

        Args:
            label: Well label as exported by the instrument, e.g. "A1" or "H12"

        Returns:
            Well instance

        Raises:
            MalformedWellError: If the label is not a row character followed by a number
        """
        text = str(label).strip()
        if len(text) < 2 or not text[0].isalpha() or not text[1:].isdecimal():
            raise MalformedWellError(str(label))

        column = int(text[1:])
        if column < 1:
            raise MalformedWellError(str(label))

        return cls(row=text[0], column=column)

    @property
    def label(self) -> str:
        return f"{self.row}{self.column}"

    def __str__(self) -> str:
        return self.label


class WellMeasurement(BaseModel):
    """
    One well's raw reading, as handed over by the loader.

    A Ct of None is the explicit "undetermined" marker for wells that never
    crossed the detection threshold.
    """

    well: Well
    sample_label: str = Field("", description="Encoded sample label, e.g. 'Control-1'")
    ct: float | None = Field(None, gt=0, description="Cycle threshold, None if undetermined")

    model_config = {"frozen": True}

    @property
    def is_undetermined(self) -> bool:
        return self.ct is None


class TaggedMeasurement(BaseModel):
    """A measurement annotated with the primer target of its plate row."""

    measurement: WellMeasurement
    primer: PrimerTarget

    model_config = {"frozen": True}


class SampleIdentity(BaseModel):
    """Treatment group and biological replicate decoded from a sample label."""

    group: str = Field(..., min_length=1)
    replicate: str = Field(..., min_length=1)

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.group, self.replicate)


class DecodedMeasurement(BaseModel):
    """A measurement with its sample identity decoded."""

    identity: SampleIdentity
    primer: PrimerTarget
    ct: float | None = Field(None, gt=0)
    well: Well

    model_config = {"frozen": True}


# ============================================================================
# Computed Models
# ============================================================================


class MeanCt(BaseModel):
    """
    Mean Ct of the technical replicates of one sample and primer.

    Only numeric Ct values contribute; undetermined wells are counted
    separately.
    """

    group: str
    replicate: str
    primer: PrimerTarget
    mean_ct: float = Field(..., gt=0, description="Arithmetic mean of numeric Ct values")
    n_wells: int = Field(..., ge=1, description="Wells contributing to the mean")
    n_undetermined: int = Field(0, ge=0, description="Undetermined wells left out of the mean")
    sd_ct: float = Field(0.0, ge=0, description="Sample SD of contributing Ct values")

    model_config = {"frozen": True}

    @property
    def key(self) -> tuple[str, str]:
        return (self.group, self.replicate)


class DeltaCt(BaseModel):
    """Reference minus target mean Ct for one biological replicate."""

    group: str
    replicate: str
    reference_mean_ct: float
    target_mean_ct: float
    dct: float

    model_config = {"frozen": True}


class GroupDeltaCtSummary(BaseModel):
    """Mean delta-Ct across the biological replicates of a group."""

    group: str
    mean_dct: float
    n_replicates: int = Field(..., ge=1)

    model_config = {"frozen": True}


class DeltaDeltaCt(BaseModel):
    """A replicate's delta-Ct relative to the control group mean."""

    group: str
    replicate: str
    dct: float
    ddct: float

    model_config = {"frozen": True}


class RelativeConcentration(BaseModel):
    """Linear-scale expression of one replicate relative to control."""

    group: str
    replicate: str
    ddct: float
    rel_conc: float = Field(..., ge=0)

    model_config = {"frozen": True}


class GroupRelativeConcentration(BaseModel):
    """Mean relative concentration of a group."""

    group: str
    mean_rel_conc: float = Field(..., ge=0)
    n_replicates: int = Field(..., ge=1)

    model_config = {"frozen": True}


class ResultRecord(BaseModel):
    """
    Joined reporting row for one biological replicate.

    Carries everything a table or chart needs without further computation.
    """

    group: str
    replicate: str
    reference_mean_ct: float
    target_mean_ct: float
    dct: float
    ddct: float
    rel_conc: float
    mean_rel_conc: float

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "group": "RNAi1",
                    "replicate": "1",
                    "reference_mean_ct": 18.2,
                    "target_mean_ct": 25.2,
                    "dct": -7.0,
                    "ddct": 2.0,
                    "rel_conc": 0.25,
                    "mean_rel_conc": 0.27,
                }
            ]
        },
    }


class PipelineResult(BaseModel):
    """Output of every stage of one pipeline run."""

    control_group: str
    mean_cts: tuple[MeanCt, ...]
    delta_cts: tuple[DeltaCt, ...]
    group_delta_cts: tuple[GroupDeltaCtSummary, ...]
    delta_delta_cts: tuple[DeltaDeltaCt, ...]
    relative_concentrations: tuple[RelativeConcentration, ...]
    group_relative_concentrations: tuple[GroupRelativeConcentration, ...]
    records: tuple[ResultRecord, ...]

    model_config = {"frozen": True}

    @property
    def groups(self) -> list[str]:
        """Group names in report order."""
        return [summary.group for summary in self.group_relative_concentrations]


# ============================================================================
# Parameter Models
# ============================================================================


class PipelineConfig(BaseModel):
    """
    Run configuration for the ddCt pipeline.

    Everything the pipeline needs beyond the measurements themselves is
    supplied here; nothing is inferred from the data.
    """

    primer_assignment: Mapping[str, PrimerTarget] = Field(
        ..., min_length=1, description="Plate row -> primer target, read-only after validation"
    )
    control_group: str = Field(..., min_length=1, description="Group every replicate is normalized to")
    sentinel_labels: frozenset[str] = Field(
        DEFAULT_SENTINEL_LABELS, description="Sample labels excluded before decoding"
    )
    label_delimiter: str = Field(
        DEFAULT_LABEL_DELIMITER, min_length=1, description="Separator between group and replicate"
    )
    undetermined_policy: UndeterminedPolicy = Field(
        UndeterminedPolicy.EXCLUDE, description="Exclude undetermined Ct from means, or fail"
    )

    @field_validator("primer_assignment")
    @classmethod
    def normalize_rows(cls, v: Mapping[str, PrimerTarget]) -> Mapping[str, PrimerTarget]:
        """Row keys are matched case-insensitively, like Well.row. The result is read-only."""
        normalized = {}
        for row, primer in v.items():
            key = row.strip().upper()
            if not key:
                raise ValueError("Primer assignment contains an empty row label")
            if key in normalized and normalized[key] != primer:
                raise ValueError(f"Row '{key}' is assigned to more than one primer target")
            normalized[key] = primer
        return MappingProxyType(normalized)

    @field_serializer("primer_assignment")
    def serialize_rows(self, v: Mapping[str, PrimerTarget]) -> dict[str, PrimerTarget]:
        return dict(v)

    @field_validator("control_group")
    @classmethod
    def strip_control_group(cls, v: str) -> str:
        return v.strip()

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "primer_assignment": {
                        "A": "reference",
                        "B": "reference",
                        "C": "target",
                        "D": "target",
                    },
                    "control_group": "Control",
                    "sentinel_labels": ["", "NTC"],
                    "label_delimiter": "-",
                    "undetermined_policy": "exclude",
                }
            ]
        },
    }


# ============================================================================
# Validation Models
# ============================================================================


class ValidationResult(BaseModel):
    """
    Result of plate quality-control checks.

    Errors are problems the pipeline would stop on; warnings are worth a look
    but do not block analysis.
    """

    is_valid: bool = Field(..., description="True if no blocking errors")
    errors: list[str] = Field(default_factory=list, description="Blocking problems")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking warnings")
    summary: dict[str, Any] = Field(default_factory=dict, description="Summary statistics")

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Combine two results; summaries from `other` win on key clashes."""
        return ValidationResult(
            is_valid=self.is_valid and other.is_valid,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            summary={**self.summary, **other.summary},
        )

    def get_report(self) -> str:
        """
        Generate a human-readable report.

        Returns:
            Formatted string with errors, warnings, and summary
        """
        lines = []

        if self.has_errors:
            lines.append("ERRORS:")
            for error in self.errors:
                lines.append(f"  - {error}")
            lines.append("")

        if self.has_warnings:
            lines.append("WARNINGS:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
            lines.append("")

        if self.summary:
            lines.append("SUMMARY:")
            for key, value in self.summary.items():
                lines.append(f"  {key}: {value}")

        return "\n".join(lines)


# ============================================================================
# Helper Functions for Model Creation
# ============================================================================


def create_pipeline_config(
    primer_assignment: dict[str, str | PrimerTarget],
    control_group: str,
    sentinel_labels: set[str] | frozenset[str] | None = None,
    label_delimiter: str = DEFAULT_LABEL_DELIMITER,
    undetermined_policy: str | UndeterminedPolicy = UndeterminedPolicy.EXCLUDE,
) -> PipelineConfig:
    """
    Create PipelineConfig with defaults.

    Args:
        primer_assignment: Plate row -> "reference" or "target"
        control_group: Name of the control treatment group
        sentinel_labels: Labels to exclude (None = empty string and "NTC")
        label_delimiter: Separator between group and replicate
        undetermined_policy: "exclude" or "fail"

    Returns:
        Validated PipelineConfig instance
    """
    return PipelineConfig(
        primer_assignment=primer_assignment,
        control_group=control_group,
        sentinel_labels=frozenset(sentinel_labels) if sentinel_labels is not None else DEFAULT_SENTINEL_LABELS,
        label_delimiter=label_delimiter,
        undetermined_policy=undetermined_policy,
    )
