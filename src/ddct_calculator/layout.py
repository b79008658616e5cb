"""
Plate layout mapping and sample label decoding.

This module handles:
- Tagging each well with the primer target loaded in its plate row
- Dropping empty and no-template-control wells
- Decoding sample labels into (treatment group, biological replicate)

Both stages are order-preserving and fail on the first offending record.
"""

from collections.abc import Iterable, Mapping, Sequence

from ddct_calculator.config import DEFAULT_LABEL_DELIMITER, DEFAULT_SENTINEL_LABELS, sentinel_key
from ddct_calculator.errors import DuplicateWellError, MalformedLabelError, UnmappedRowError
from ddct_calculator.log import get_logger
from ddct_calculator.models import (
    DecodedMeasurement,
    PrimerTarget,
    SampleIdentity,
    TaggedMeasurement,
    Well,
    WellMeasurement,
)

logger = get_logger(__name__)


# ============================================================================
# Plate Layout Mapping
# ============================================================================


def map_plate_layout(
    measurements: Sequence[WellMeasurement],
    primer_assignment: Mapping[str, PrimerTarget],
) -> tuple[TaggedMeasurement, ...]:
    """
    Annotate each well with the primer target of its row.

    Args:
        measurements: Per-well readings in plate order
        primer_assignment: Plate row -> primer target

    Returns:
        Tagged measurements, in input order

    Raises:
        UnmappedRowError: If a well's row has no primer assignment
        DuplicateWellError: If a well is measured more than once
    """
    assignment = {row.strip().upper(): primer for row, primer in primer_assignment.items()}
    seen: set[Well] = set()
    tagged = []

    for measurement in measurements:
        well = measurement.well
        if well in seen:
            raise DuplicateWellError(well)
        seen.add(well)

        if well.row not in assignment:
            raise UnmappedRowError(well)

        tagged.append(TaggedMeasurement(measurement=measurement, primer=assignment[well.row]))

    logger.debug("Mapped %d wells onto %d assigned rows", len(tagged), len(assignment))
    return tuple(tagged)


# ============================================================================
# Sample Decoding
# ============================================================================


def exclude_sentinels(
    tagged: Iterable[TaggedMeasurement],
    sentinel_labels: Iterable[str] = DEFAULT_SENTINEL_LABELS,
) -> tuple[TaggedMeasurement, ...]:
    """
    Drop wells whose sample label marks them as empty or no-template controls.

    Labels are compared after stripping surrounding whitespace, ignoring case.
    """
    sentinels = {sentinel_key(label) for label in sentinel_labels}
    kept = tuple(t for t in tagged if sentinel_key(t.measurement.sample_label) not in sentinels)
    return kept


def decode_sample_label(label: str, delimiter: str = DEFAULT_LABEL_DELIMITER) -> SampleIdentity:
    """
    Split an encoded sample label into treatment group and biological replicate.

    Args:
        label: Sample label such as "Control-1"
        delimiter: Separator between group and replicate

    Returns:
        SampleIdentity for the label

    Raises:
        MalformedLabelError: If the label does not split into exactly two non-empty parts
    """
    parts = label.strip().split(delimiter)
    if len(parts) != 2:
        raise MalformedLabelError(label, delimiter)

    group, replicate = (part.strip() for part in parts)
    if not group or not replicate:
        raise MalformedLabelError(label, delimiter)

    return SampleIdentity(group=group, replicate=replicate)


def decode_samples(
    tagged: Sequence[TaggedMeasurement],
    sentinel_labels: Iterable[str] = DEFAULT_SENTINEL_LABELS,
    delimiter: str = DEFAULT_LABEL_DELIMITER,
) -> tuple[DecodedMeasurement, ...]:
    """
    Exclude sentinel wells, then decode the remaining sample labels.

    Args:
        tagged: Output of map_plate_layout
        sentinel_labels: Labels carrying no sample identity
        delimiter: Separator between group and replicate

    Returns:
        Decoded measurements, in input order

    Raises:
        MalformedLabelError: For the first label that cannot be decoded
    """
    kept = exclude_sentinels(tagged, sentinel_labels)

    decoded = []
    for item in kept:
        measurement = item.measurement
        try:
            identity = decode_sample_label(measurement.sample_label, delimiter)
        except MalformedLabelError as e:
            raise MalformedLabelError(e.label, delimiter, well=measurement.well) from e

        decoded.append(
            DecodedMeasurement(
                identity=identity,
                primer=item.primer,
                ct=measurement.ct,
                well=measurement.well,
            )
        )

    logger.debug(
        "Decoded %d wells (%d sentinel wells excluded)", len(decoded), len(tagged) - len(kept)
    )
    return tuple(decoded)
