"""Homology-directed repair during the germline homing window.

A chromosome paired with a drive allele is cut once at the homing-phase
rate. If any site is cut, exactly one of three outcomes follows, tested
in this order:

  1. Full homing: the whole target array is copied from the drive
     (every locus DRIVE).
  2. Partial HDR: repair uses the donor but does not complete; the whole
     array becomes one resistance allele (R2, or R1 for lethal-target
     variants when the repaired span keeps function).
  3. End joining: cuts resolve exactly as in cutting.cas_cut.

Both HDR outcomes are attenuated by how far the cut span sits from the
homology arms at either end of the array. Excised (GAP) sites outside the
span widen that distance.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from crispr_drive.config import DriveSection
from crispr_drive.cutting import cut_rates, draw_cuts, resolve_cuts
from crispr_drive.types import (
    AlleleState,
    check_no_transient_cuts,
    wild_type_loci,
)


def edge_offsets(chromosome: np.ndarray, left: int, right: int) -> Tuple[int, int]:
    """Distance from each homology arm to the cut span, inflated by gaps.

    Args:
        chromosome: Chromosome holding the cut.
        left: Leftmost cut locus.
        right: Rightmost cut locus.

    Returns:
        (adjusted_left, adjusted_right).
    """
    n = len(chromosome)
    gaps = np.flatnonzero(chromosome == AlleleState.GAP)
    adjusted_left = left + int(np.count_nonzero(gaps < left))
    adjusted_right = (n - 1 - right) + int(np.count_nonzero(gaps > right))
    return adjusted_left, adjusted_right


def edge_attenuation(adjusted_left: int, adjusted_right: int, edge_effect: float) -> float:
    """(1 − E·left)(1 − E·right), each factor floored at 0."""
    return (
        max(0.0, 1.0 - edge_effect * adjusted_left)
        * max(0.0, 1.0 - edge_effect * adjusted_right)
    )


def homing(
    chromosome: np.ndarray,
    drive: DriveSection,
    rng: np.random.Generator,
) -> None:
    """Run the HDR window on one chromosome (in place).

    Caller guarantees the owning parent carries a complete drive haplotype.
    A chromosome with no wild-type loci is left untouched and consumes no
    draws.

    Raises:
        InvariantViolation: If the chromosome already holds a TRANSIENT_CUT.
    """
    check_no_transient_cuts(chromosome)
    if wild_type_loci(chromosome).size == 0:
        return

    rates = cut_rates(drive.homing_phase_cut_rate, drive, n_phases=1)
    cuts = draw_cuts(chromosome, rates, rng)
    if cuts.size == 0:
        return

    left, right = int(cuts.min()), int(cuts.max())
    adjusted_left, adjusted_right = edge_offsets(chromosome, left, right)
    attenuation = edge_attenuation(adjusted_left, adjusted_right, drive.homing_edge_effect)

    successful_homing_rate = drive.baseline_homing_success_rate * attenuation
    if rng.random() < successful_homing_rate:
        chromosome[:] = AlleleState.DRIVE
        return

    final_partial_hdr_rate = drive.partial_hdr_rate * attenuation
    if rng.random() < final_partial_hdr_rate:
        span_width = right - left + 1
        lethal_target = drive.haplolethal_drive or drive.recessive_lethal_drive
        if lethal_target and rng.random() < drive.partial_hdr_r1_rate ** span_width:
            chromosome[:] = AlleleState.R1
        else:
            chromosome[:] = AlleleState.R2
        return

    resolve_cuts(chromosome, cuts, drive, rng)
    check_no_transient_cuts(chromosome)
