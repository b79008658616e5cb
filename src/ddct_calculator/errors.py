"""
Error taxonomy for the ddCt Calculator.

Every error aborts only the pipeline run that raised it and carries the
offending key (well, label, or group/replicate) for diagnosis. All errors
subclass ValueError so existing input-checking code can catch them uniformly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ddct_calculator.config import (
    DEFAULT_LABEL_DELIMITER,
    ERROR_CONTROL_GROUP_NOT_FOUND,
    ERROR_DUPLICATE_WELL,
    ERROR_INCOMPLETE_PAIRING,
    ERROR_MALFORMED_LABEL,
    ERROR_MALFORMED_WELL,
    ERROR_NO_AMPLIFICATION,
    ERROR_UNDETERMINED_CT,
    ERROR_UNMAPPED_ROW,
)

if TYPE_CHECKING:
    from ddct_calculator.models import PrimerTarget, Well


class QpcrAnalysisError(ValueError):
    """Base class for all pipeline errors."""


# ============================================================================
# Plate Layout Errors
# ============================================================================


class MalformedWellError(QpcrAnalysisError):
    """Well label cannot be split into a row letter and a column number."""

    def __init__(self, label: str):
        self.label = label
        super().__init__(ERROR_MALFORMED_WELL.format(label=label))


class DuplicateWellError(QpcrAnalysisError):
    """The same well was measured more than once in one run."""

    def __init__(self, well: Well):
        self.well = well
        super().__init__(ERROR_DUPLICATE_WELL.format(well=well.label))


class UnmappedRowError(QpcrAnalysisError):
    """A plate row is referenced but has no primer assignment."""

    def __init__(self, well: Well):
        self.well = well
        self.row = well.row
        super().__init__(ERROR_UNMAPPED_ROW.format(well=well.label, row=well.row))


# ============================================================================
# Sample Decoding Errors
# ============================================================================


class MalformedLabelError(QpcrAnalysisError):
    """Sample label does not decode into exactly (group, replicate)."""

    def __init__(self, label: str, delimiter: str = DEFAULT_LABEL_DELIMITER, well: Well | None = None):
        self.label = label
        self.delimiter = delimiter
        self.well = well
        message = ERROR_MALFORMED_LABEL.format(label=label, delimiter=delimiter)
        if well is not None:
            message = f"Well {well.label}: {message}"
        super().__init__(message)


# ============================================================================
# Aggregation and Normalization Errors
# ============================================================================


class NoAmplificationError(QpcrAnalysisError):
    """Every technical replicate of one or more keys is undetermined."""

    def __init__(self, keys: list[tuple[str, str, PrimerTarget]]):
        self.keys = list(keys)
        rendered = ", ".join(
            f"{group}-{replicate} ({primer.value})" for group, replicate, primer in self.keys
        )
        super().__init__(ERROR_NO_AMPLIFICATION.format(keys=rendered))


class UndeterminedCtError(QpcrAnalysisError):
    """An undetermined Ct was found while undetermined values are disallowed."""

    def __init__(self, group: str, replicate: str, primer: PrimerTarget, well: Well):
        self.group = group
        self.replicate = replicate
        self.primer = primer
        self.well = well
        super().__init__(
            ERROR_UNDETERMINED_CT.format(
                well=well.label, group=group, replicate=replicate, primer=primer.value
            )
        )


class IncompletePairingError(QpcrAnalysisError):
    """Reference or target mean Ct is missing for one or more replicates."""

    def __init__(self, unpaired: list[tuple[str, str, PrimerTarget]]):
        self.unpaired = list(unpaired)
        rendered = ", ".join(
            f"{group}-{replicate} missing {missing.value}"
            for group, replicate, missing in self.unpaired
        )
        super().__init__(ERROR_INCOMPLETE_PAIRING.format(pairs=rendered))


class ControlGroupNotFoundError(QpcrAnalysisError):
    """The configured control group is absent from the dataset."""

    def __init__(self, control_group: str, available_groups: list[str]):
        self.control_group = control_group
        self.available_groups = list(available_groups)
        super().__init__(
            ERROR_CONTROL_GROUP_NOT_FOUND.format(
                control_group=control_group,
                groups=", ".join(self.available_groups) or "none",
            )
        )
