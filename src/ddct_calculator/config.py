"""
Configuration constants and defaults for the ddCt Calculator.

This module contains the amplification model constants, default parameters,
column name mappings and message templates used throughout the application.
"""

from typing import Final

# ============================================================================
# Scientific Constants
# ============================================================================

# Template doubles every cycle (100% efficiency, no correction)
AMPLIFICATION_BASE: Final[float] = 2.0

# ============================================================================
# Default Parameters
# ============================================================================

# Label of no-template control wells
NTC_LABEL: Final[str] = "NTC"

# Sample labels that carry no sample identity (empty wells, no-template controls).
# Compared through sentinel_key, so "ntc" and " NTC " match too.
DEFAULT_SENTINEL_LABELS: Final[frozenset[str]] = frozenset({"", NTC_LABEL})

# Separator between treatment group and biological replicate ("Control-1")
DEFAULT_LABEL_DELIMITER: Final[str] = "-"

# Instrument strings meaning "no amplification" (compared case-insensitively)
UNDETERMINED_CT_MARKERS: Final[frozenset[str]] = frozenset({"undetermined", "nan", "n/a", ""})

# ============================================================================
# Logging
# ============================================================================

# Settings are read from environment variables with this prefix
ENV_PREFIX: Final[str] = "DDCT_"
LOG_LEVEL_ENV_VAR: Final[str] = f"{ENV_PREFIX}LOG_LEVEL"
DEFAULT_LOG_LEVEL: Final[str] = "WARNING"
LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# ============================================================================
# Input Column Names (Case-Insensitive Matching)
# ============================================================================

REQUIRED_COLUMNS: Final[list[str]] = [
    "Well",
    "Sample Name",
    "Ct",
]

# Maps alternative names to standard internal names. When several columns of
# one table map to the same standard name, the alias listed first wins
# (QuantStudio exports carry both a numeric "Well" and "Well Position").
COLUMN_ALIASES: Final[dict[str, str]] = {
    # Well variants
    "well position": "Well",
    "well_position": "Well",
    "well": "Well",
    "position": "Well",
    "pos": "Well",
    # Sample variants
    "sample name": "Sample Name",
    "sample_name": "Sample Name",
    "sample": "Sample Name",
    "sample id": "Sample Name",
    "sample_id": "Sample Name",
    "name": "Sample Name",
    # Ct variants
    "ct": "Ct",
    "cq": "Ct",
    "cp": "Ct",
}

# ============================================================================
# Quality Control Thresholds
# ============================================================================

# Ct above this is late amplification, usually noise or primer dimers
LATE_CT_THRESHOLD: Final[float] = 35.0

# Technical replicates further apart than this (SD, cycles) are suspect
MAX_REPLICATE_SD: Final[float] = 0.5

# ============================================================================
# Output Column Names
# ============================================================================

OUTPUT_RESULT_COLUMNS: Final[list[str]] = [
    "Group",
    "Replicate",
    "Reference Ct",
    "Target Ct",
    "dCt",
    "ddCt",
    "Relative Concentration",
    "Mean Relative Concentration",
]

OUTPUT_MEAN_CT_COLUMNS: Final[list[str]] = [
    "Group",
    "Replicate",
    "Primer",
    "Mean Ct",
    "SD Ct",
    "Wells",
    "Undetermined Wells",
]

# ============================================================================
# Error Messages
# ============================================================================

ERROR_MISSING_COLUMN: Final[str] = "Missing required column: {column}"
ERROR_UNMAPPED_ROW: Final[str] = "Well {well}: plate row '{row}' has no primer assignment"
ERROR_MALFORMED_LABEL: Final[str] = (
    "Sample label '{label}' does not decode into exactly (group, replicate) "
    "using delimiter '{delimiter}'"
)
ERROR_MALFORMED_WELL: Final[str] = "Well label '{label}' is not a row letter followed by a column number"
ERROR_DUPLICATE_WELL: Final[str] = "Well {well} has more than one measurement"
ERROR_NO_AMPLIFICATION: Final[str] = "Every technical replicate is undetermined for: {keys}"
ERROR_UNDETERMINED_CT: Final[str] = (
    "Well {well}: undetermined Ct for {group}-{replicate} ({primer}) "
    "and undetermined values are not allowed"
)
ERROR_INCOMPLETE_PAIRING: Final[str] = "Reference/target pairing incomplete: {pairs}"
ERROR_CONTROL_GROUP_NOT_FOUND: Final[str] = (
    "Control group '{control_group}' not found; available groups: {groups}"
)
ERROR_INVALID_CT: Final[str] = "Row {row}, Ct: Cannot parse as number, got '{value}'"

# ============================================================================
# Warning Messages
# ============================================================================

WARN_NTC_AMPLIFIED: Final[str] = (
    "Well {well}: no-template control amplified (Ct {ct:.2f}) - possible contamination"
)
WARN_UNDETERMINED_SAMPLE: Final[str] = "Well {well}: sample '{label}' has undetermined Ct"
WARN_LATE_CT: Final[str] = "Well {well}: late amplification (Ct {ct:.2f} > {threshold:.1f})"
WARN_HIGH_REPLICATE_SD: Final[str] = (
    "{group}-{replicate} ({primer}): technical replicate SD {sd:.3f} exceeds {threshold:.2f} cycles"
)
WARN_CONTROL_GROUP_MISSING: Final[str] = "Control group '{control_group}' does not appear in any sample label"

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME: Final[str] = "ddCt Calculator"
APP_DESCRIPTION: Final[str] = "Relative qPCR expression by the delta-delta-Ct method"

# ============================================================================
# Helper Functions
# ============================================================================


def normalize_column_name(name: str) -> str:
    """
    Normalize a column name for matching.

    Converts to lowercase, strips whitespace, and looks up aliases.

    Args:
        name: Raw column name from the instrument table

    Returns:
        Standardized column name, or original if no match found
    """
    normalized = name.strip().lower()

    if normalized in COLUMN_ALIASES:
        return COLUMN_ALIASES[normalized]

    for col in REQUIRED_COLUMNS:
        if col.lower() == normalized:
            return col

    return name


def column_alias_rank(name: str) -> int:
    """Position of a column name in COLUMN_ALIASES; lower wins a name clash."""
    normalized = name.strip().lower()
    for rank, alias in enumerate(COLUMN_ALIASES):
        if alias == normalized:
            return rank
    return len(COLUMN_ALIASES)


def sentinel_key(label: str) -> str:
    """Comparison form of a sample label for sentinel and NTC matching."""
    return label.strip().upper()
