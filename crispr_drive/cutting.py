"""Cas9 cutting and end-joining resolution.

Implements the non-homology part of the drive engine:
  - Per-locus cut probabilities with gRNA activity variation and
    Cas9 saturation (cut_rates)
  - R1/R2 partitioning of a single resolved cut (add_resistance_allele)
  - Collapse of simultaneous cuts into R2 + excised gap (resolve_cuts)
  - Multi-phase germline / embryo cutting of one chromosome (cas_cut)

All chromosome operations modify the array in place. Callers own the
array they pass; the inheritance pipeline only ever hands in the child's
private copies.

Reference: Champer et al. 2018, PNAS 115:5522 (multiplexed gRNAs reduce
resistance allele formation).
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from crispr_drive.config import DriveSection
from crispr_drive.types import (
    AlleleState,
    check_no_transient_cuts,
    wild_type_loci,
)


# ═══════════════════════════════════════════════════════════════════════
# CUT RATE MODEL
# ═══════════════════════════════════════════════════════════════════════


def saturation_activity(drive: DriveSection) -> float:
    """Total Cas9 activity shared across gRNAs.

    sat = S × g / (S − 1 + g), with g = num_grnas when saturation is
    simulated, else 1 (sat = 1).
    """
    g = drive.num_grnas if drive.simulate_saturation else 1
    s = drive.global_saturation_factor
    return s * g / (s - 1.0 + g)


def cut_rates(
    resistance_rate: float,
    drive: DriveSection,
    n_phases: Optional[int] = None,
) -> np.ndarray:
    """Per-phase, per-locus cut probabilities.

    Activity falls linearly from 1 + v at locus 0 to 1 − v at the last
    locus (v = grna_activity_variation). Each locus is then cut with

        p_i = 1 − (1 − rate) ^ (a_i / (n_phases × g))

    so that over all phases and loci the chance of at least one cut
    approaches 1 − (1 − rate)^sat.

    Args:
        resistance_rate: Base cut probability for the pass.
        drive: Drive parameters.
        n_phases: Phases the rate is spread over (default num_cut_phases;
            the homing window uses 1).

    Returns:
        (num_grnas,) float64 array of probabilities in [0, 1].
    """
    if n_phases is None:
        n_phases = drive.num_cut_phases
    n = drive.num_grnas
    g = n if drive.simulate_saturation else 1
    variation = drive.grna_activity_variation

    step = 2.0 * variation / (n - 1) if n > 1 else 0.0
    activity = saturation_activity(drive) * (1.0 + variation - np.arange(n) * step)
    # Float error can leave the last locus at -1e-17 when variation == 1
    activity = np.maximum(activity, 0.0)

    rates = 1.0 - (1.0 - resistance_rate) ** (activity / (n_phases * g))
    return np.clip(rates, 0.0, 1.0)


# ═══════════════════════════════════════════════════════════════════════
# RESOLUTION
# ═══════════════════════════════════════════════════════════════════════


def add_resistance_allele(
    chromosome: np.ndarray,
    locus: int,
    drive: DriveSection,
    rng: np.random.Generator,
) -> AlleleState:
    """Resolve one cut at ``locus`` into R1 or R2.

    One uniform draw: below r1_occurrence_rate → R1, otherwise R2.

    Returns:
        The allele written.
    """
    allele = AlleleState.R1 if rng.random() < drive.r1_occurrence_rate else AlleleState.R2
    chromosome[locus] = allele
    return allele


def collapse_cut_span(chromosome: np.ndarray, left: int, right: int) -> None:
    """Two or more simultaneous cuts destroy the sequence between them.

    Leftmost locus becomes R2; every other locus in [left, right] becomes GAP.
    """
    chromosome[left] = AlleleState.R2
    chromosome[left + 1:right + 1] = AlleleState.GAP


def resolve_cuts(
    chromosome: np.ndarray,
    cut_loci: np.ndarray,
    drive: DriveSection,
    rng: np.random.Generator,
) -> None:
    """End-joining resolution of the cuts made in one phase."""
    if len(cut_loci) == 1:
        add_resistance_allele(chromosome, int(cut_loci[0]), drive, rng)
    elif len(cut_loci) > 1:
        collapse_cut_span(chromosome, int(cut_loci.min()), int(cut_loci.max()))


# ═══════════════════════════════════════════════════════════════════════
# MULTI-PHASE CUTTING
# ═══════════════════════════════════════════════════════════════════════


def draw_cuts(
    chromosome: np.ndarray,
    rates: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    """Cut wild-type loci with per-locus probability; returns cut loci.

    One uniform per wild-type locus, in ascending locus order. Cut loci are
    marked TRANSIENT_CUT and must be resolved by the caller.
    """
    wt = wild_type_loci(chromosome)
    if wt.size == 0:
        return wt
    draws = rng.random(wt.size)
    cuts = wt[draws < rates[wt]]
    chromosome[cuts] = AlleleState.TRANSIENT_CUT
    return cuts


def cas_cut(
    chromosome: np.ndarray,
    resistance_rate: float,
    drive: DriveSection,
    rng: np.random.Generator,
) -> None:
    """Germline or embryo cutting of one chromosome (in place).

    Up to num_cut_phases rounds. Each round cuts the remaining wild-type
    loci and resolves them before the next round starts. A chromosome with
    no wild-type loci is left untouched and consumes no draws.

    Whether the chromosome should be exposed to Cas9 at all (the parent
    carries a complete drive haplotype) is decided by the caller.

    Raises:
        InvariantViolation: If the chromosome already holds a TRANSIENT_CUT.
    """
    check_no_transient_cuts(chromosome)
    if wild_type_loci(chromosome).size == 0:
        return

    rates = cut_rates(resistance_rate, drive)
    for _ in range(drive.num_cut_phases):
        if wild_type_loci(chromosome).size == 0:
            break
        cuts = draw_cuts(chromosome, rates, rng)
        resolve_cuts(chromosome, cuts, drive, rng)

    check_no_transient_cuts(chromosome)
