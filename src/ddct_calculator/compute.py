"""
Computation engine for the ddCt Calculator.

This module handles:
- Averaging technical replicates into one mean Ct per sample and primer
- Pairing reference and target mean Ct (delta-Ct)
- Normalizing every replicate to the control group (delta-delta-Ct)
- Converting delta-delta-Ct to relative concentration

Group-bys are plain dicts from key to list of records, and aggregated outputs
are sorted by key so results never depend on input order. Means use
math.fsum, which is exactly rounded and therefore order-independent.
"""

import math
from collections import defaultdict
from collections.abc import Sequence

import numpy as np

from ddct_calculator.config import AMPLIFICATION_BASE
from ddct_calculator.errors import (
    ControlGroupNotFoundError,
    IncompletePairingError,
    NoAmplificationError,
    UndeterminedCtError,
)
from ddct_calculator.log import get_logger
from ddct_calculator.models import (
    DecodedMeasurement,
    DeltaCt,
    DeltaDeltaCt,
    GroupDeltaCtSummary,
    GroupRelativeConcentration,
    MeanCt,
    PrimerTarget,
    RelativeConcentration,
    UndeterminedPolicy,
)

logger = get_logger(__name__)

_PRIMER_ORDER = {PrimerTarget.REFERENCE: 0, PrimerTarget.TARGET: 1}


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values)


# ============================================================================
# Replicate Aggregation
# ============================================================================


def aggregate_replicates(
    decoded: Sequence[DecodedMeasurement],
    undetermined_policy: UndeterminedPolicy = UndeterminedPolicy.EXCLUDE,
) -> tuple[MeanCt, ...]:
    """
    Average technical replicates sharing (group, replicate, primer).

    Algorithm:
    1. Group every decoded well by (group, replicate, primer)
    2. Drop undetermined Ct values (or fail, per policy)
    3. Mean of the remaining values; SD reported alongside

    Args:
        decoded: Output of decode_samples
        undetermined_policy: EXCLUDE leaves undetermined wells out of the mean,
            FAIL raises on the first one

    Returns:
        One MeanCt per observed key, sorted by (group, replicate, primer)

    Raises:
        UndeterminedCtError: If policy is FAIL and any well is undetermined
        NoAmplificationError: If every well of a key is undetermined
    """
    grouped: dict[tuple[str, str, PrimerTarget], list[DecodedMeasurement]] = defaultdict(list)
    for item in decoded:
        grouped[(item.identity.group, item.identity.replicate, item.primer)].append(item)

    keys = sorted(grouped, key=lambda k: (k[0], k[1], _PRIMER_ORDER[k[2]]))

    mean_cts = []
    silent = []
    for key in keys:
        group, replicate, primer = key
        wells = grouped[key]

        undetermined = [w for w in wells if w.ct is None]
        if undetermined and undetermined_policy == UndeterminedPolicy.FAIL:
            raise UndeterminedCtError(group, replicate, primer, undetermined[0].well)

        values = [w.ct for w in wells if w.ct is not None]
        if not values:
            silent.append(key)
            continue

        sd = float(np.std(sorted(values), ddof=1)) if len(values) > 1 else 0.0
        mean_cts.append(
            MeanCt(
                group=group,
                replicate=replicate,
                primer=primer,
                mean_ct=_mean(values),
                n_wells=len(values),
                n_undetermined=len(undetermined),
                sd_ct=sd,
            )
        )

    if silent:
        raise NoAmplificationError(silent)

    logger.debug("Aggregated %d wells into %d mean Ct values", len(decoded), len(mean_cts))
    return tuple(mean_cts)


# ============================================================================
# Delta-Ct
# ============================================================================


def compute_delta_ct(mean_cts: Sequence[MeanCt]) -> tuple[DeltaCt, ...]:
    """
    Pair reference and target mean Ct for each biological replicate.

    dCt = reference mean Ct - target mean Ct, so a higher dCt means more
    target relative to reference.

    Args:
        mean_cts: Output of aggregate_replicates

    Returns:
        One DeltaCt per (group, replicate), sorted by key

    Raises:
        IncompletePairingError: If any replicate lacks its reference or target
        ValueError: If a replicate has two mean Ct values for the same primer
    """
    sides: dict[PrimerTarget, dict[tuple[str, str], MeanCt]] = {
        PrimerTarget.REFERENCE: {},
        PrimerTarget.TARGET: {},
    }
    for mean_ct in mean_cts:
        side = sides[mean_ct.primer]
        if mean_ct.key in side:
            raise ValueError(
                f"Duplicate {mean_ct.primer.value} mean Ct for {mean_ct.group}-{mean_ct.replicate}"
            )
        side[mean_ct.key] = mean_ct

    reference = sides[PrimerTarget.REFERENCE]
    target = sides[PrimerTarget.TARGET]

    unpaired = []
    for key in sorted(reference.keys() | target.keys()):
        if key not in reference:
            unpaired.append((key[0], key[1], PrimerTarget.REFERENCE))
        elif key not in target:
            unpaired.append((key[0], key[1], PrimerTarget.TARGET))
    if unpaired:
        raise IncompletePairingError(unpaired)

    delta_cts = tuple(
        DeltaCt(
            group=key[0],
            replicate=key[1],
            reference_mean_ct=reference[key].mean_ct,
            target_mean_ct=target[key].mean_ct,
            dct=reference[key].mean_ct - target[key].mean_ct,
        )
        for key in sorted(reference)
    )

    logger.debug("Computed %d delta-Ct values", len(delta_cts))
    return delta_cts


# ============================================================================
# Treatment Normalization
# ============================================================================


def summarize_delta_ct(delta_cts: Sequence[DeltaCt]) -> tuple[GroupDeltaCtSummary, ...]:
    """
    Mean delta-Ct per treatment group.

    Args:
        delta_cts: Output of compute_delta_ct

    Returns:
        One summary per group, sorted by group name
    """
    grouped: dict[str, list[float]] = defaultdict(list)
    for record in delta_cts:
        grouped[record.group].append(record.dct)

    return tuple(
        GroupDeltaCtSummary(group=group, mean_dct=_mean(values), n_replicates=len(values))
        for group, values in sorted(grouped.items())
    )


def normalize_to_control(
    delta_cts: Sequence[DeltaCt],
    control_group: str,
) -> tuple[DeltaDeltaCt, ...]:
    """
    Subtract each replicate's delta-Ct from the control group's mean delta-Ct.

    ddCt = control mean dCt - dCt. The control group's own replicates are
    normalized too, so their ddCt values average to zero.

    Args:
        delta_cts: Output of compute_delta_ct
        control_group: Name of the control treatment group

    Returns:
        One DeltaDeltaCt per input record, in input order

    Raises:
        ControlGroupNotFoundError: If no replicate belongs to the control group
    """
    summaries = {summary.group: summary for summary in summarize_delta_ct(delta_cts)}
    if control_group not in summaries:
        raise ControlGroupNotFoundError(control_group, sorted(summaries))

    control_mean_dct = summaries[control_group].mean_dct
    logger.debug("Control group '%s' mean dCt = %.4f", control_group, control_mean_dct)

    return tuple(
        DeltaDeltaCt(
            group=record.group,
            replicate=record.replicate,
            dct=record.dct,
            ddct=control_mean_dct - record.dct,
        )
        for record in delta_cts
    )


# ============================================================================
# Relative Concentration
# ============================================================================


def relative_concentration_from_ddct(ddct: float) -> float:
    """
    Convert a delta-delta-Ct to linear relative concentration.

    Formula: rel_conc = 2 ^ (-ddCt), assuming the template doubles every cycle.

    Examples:
        >>> relative_concentration_from_ddct(2.0)
        0.25
        >>> relative_concentration_from_ddct(0.0)
        1.0
    """
    return AMPLIFICATION_BASE ** (-ddct)


def compute_relative_concentration(
    delta_delta_cts: Sequence[DeltaDeltaCt],
) -> tuple[RelativeConcentration, ...]:
    """Relative concentration of every replicate, in input order."""
    return tuple(
        RelativeConcentration(
            group=record.group,
            replicate=record.replicate,
            ddct=record.ddct,
            rel_conc=relative_concentration_from_ddct(record.ddct),
        )
        for record in delta_delta_cts
    )


def summarize_relative_concentration(
    relative_concentrations: Sequence[RelativeConcentration],
) -> tuple[GroupRelativeConcentration, ...]:
    """
    Mean relative concentration per treatment group.

    The mean is taken on the linear scale, after the exponential transform.

    Args:
        relative_concentrations: Output of compute_relative_concentration

    Returns:
        One summary per group, sorted by group name
    """
    grouped: dict[str, list[float]] = defaultdict(list)
    for record in relative_concentrations:
        grouped[record.group].append(record.rel_conc)

    return tuple(
        GroupRelativeConcentration(
            group=group, mean_rel_conc=_mean(values), n_replicates=len(values)
        )
        for group, values in sorted(grouped.items())
    )
