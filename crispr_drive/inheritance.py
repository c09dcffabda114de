"""Per-offspring inheritance pipeline.

Builds one child from two parents:

  gamete choice → EARLY_GERMLINE → HDR → LATE_GERMLINE → EMBRYO → VIABILITY_CHECK

Which phases run depends on the drive variant:

  homing      early germline, HDR, late germline, embryo
  TADS        early germline, sperm re-roll, embryo
  otherwise   early germline, embryo

Germline phases act on a child chromosome only when the parent it came
from carries a complete drive haplotype. Embryo cutting is maternal
(Cas9 deposited in the egg) and hits both child chromosomes.

No recombination: each parent passes one of its two chromosomes intact.
Parents are never modified; the child receives copies.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Tuple

import numpy as np

from crispr_drive.config import SimulationConfig
from crispr_drive.cutting import cas_cut
from crispr_drive.homing import homing
from crispr_drive.types import (
    AlleleState,
    Individual,
    InvariantViolation,
    Sex,
    check_no_transient_cuts,
    has_complete_drive,
    has_r2,
)


# Hard cap on TADS sperm re-rolls. Each round ends with probability ≥ 0.5,
# so reaching this means the loop condition can no longer change.
MAX_TADS_REROLLS = 1000


class InheritancePhase(IntEnum):
    """Pipeline states, entered strictly in this order."""
    EARLY_GERMLINE  = 0
    HDR             = 1
    LATE_GERMLINE   = 2
    EMBRYO          = 3
    VIABILITY_CHECK = 4


def phases_for(config: SimulationConfig) -> Tuple[InheritancePhase, ...]:
    """Phases run by the configured drive variant (viability check last)."""
    d = config.drive
    if d.homing_drive:
        return (
            InheritancePhase.EARLY_GERMLINE,
            InheritancePhase.HDR,
            InheritancePhase.LATE_GERMLINE,
            InheritancePhase.EMBRYO,
            InheritancePhase.VIABILITY_CHECK,
        )
    return (
        InheritancePhase.EARLY_GERMLINE,
        InheritancePhase.EMBRYO,
        InheritancePhase.VIABILITY_CHECK,
    )


# ═══════════════════════════════════════════════════════════════════════
# VIABILITY
# ═══════════════════════════════════════════════════════════════════════


def is_viable(child: Individual, config: SimulationConfig) -> bool:
    """Lethal-target veto.

    Haplolethal: one disrupted (R2) copy kills. Recessive lethal: both
    copies must be disrupted.
    """
    d = config.drive
    r2_1 = has_r2(child.chromosome1)
    r2_2 = has_r2(child.chromosome2)
    if d.haplolethal_drive and (r2_1 or r2_2):
        return False
    if d.recessive_lethal_drive and r2_1 and r2_2:
        return False
    return True


# ═══════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════


def _pick_chromosome(parent: Individual, rng: np.random.Generator) -> np.ndarray:
    """Copy of one parental chromosome chosen with probability 1/2."""
    chosen = parent.chromosome1 if rng.random() < 0.5 else parent.chromosome2
    return chosen.copy()


def _paternal_sex_chromosome(father: Individual, child_sex: Sex) -> np.ndarray:
    """Sons get the father's second (Y-equivalent) chromosome, daughters his first."""
    if child_sex == Sex.MALE:
        return father.chromosome2.copy()
    return father.chromosome1.copy()


def _non_drive_chromosome(parent: Individual) -> np.ndarray:
    """Copy of the parent's chromosome that is not a complete drive haplotype."""
    if has_complete_drive(parent.chromosome1):
        return parent.chromosome2.copy()
    return parent.chromosome1.copy()


def _tads_sperm_reroll(
    chromosome2: np.ndarray,
    father: Individual,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> np.ndarray:
    """Sperm whose target was disrupted in the father's germline die.

    While the paternal chromosome carries an R2 that the father did not
    carry himself, the fertilizing sperm is replaced: half the time by a
    drive-carrying sperm, otherwise by another copy of the father's
    non-drive chromosome that goes through early germline cutting again.

    Raises:
        InvariantViolation: If MAX_TADS_REROLLS rounds pass without exit.
    """
    father_eligible = (
        father.carries_drive
        and not has_r2(father.chromosome1)
        and not has_r2(father.chromosome2)
    )
    if not father_eligible:
        return chromosome2

    rerolls = 0
    while has_r2(chromosome2):
        if rerolls >= MAX_TADS_REROLLS:
            raise InvariantViolation(
                f"TADS sperm re-roll exceeded {MAX_TADS_REROLLS} rounds"
            )
        rerolls += 1
        if rng.random() < 0.5:
            chromosome2 = np.full_like(chromosome2, AlleleState.DRIVE)
        else:
            chromosome2 = _non_drive_chromosome(father)
            cas_cut(chromosome2, config.drive.germline_resistance_rate, config.drive, rng)
    return chromosome2


def _substitute_unstable_r2(chromosome2: np.ndarray, father: Individual) -> np.ndarray:
    """A father heterozygous for R2 cannot pass the R2 copy under TADS."""
    father_r2 = (has_r2(father.chromosome1), has_r2(father.chromosome2))
    if has_r2(chromosome2) and sum(father_r2) == 1:
        other = father.chromosome2 if father_r2[0] else father.chromosome1
        return other.copy()
    return chromosome2


# ═══════════════════════════════════════════════════════════════════════
# PIPELINE
# ═══════════════════════════════════════════════════════════════════════


def construct_offspring(
    mother: Individual,
    father: Individual,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> Tuple[Individual, bool]:
    """Build one child and report whether it is viable.

    Draw order: child sex, maternal chromosome, paternal chromosome, then
    the drive phases in pipeline order.

    Args:
        mother: Female parent (passes chromosome1 of the child).
        father: Male parent (passes chromosome2 of the child).
        config: Simulation configuration (read only).
        rng: Source of uniform draws.

    Returns:
        (child, viable). The child has age 0.

    Raises:
        InvariantViolation: If a TRANSIENT_CUT survives or the TADS re-roll
            loop exceeds its bound.
    """
    d = config.drive
    child_sex = Sex.FEMALE if rng.random() < 0.5 else Sex.MALE
    c1 = _pick_chromosome(mother, rng)
    c2 = _pick_chromosome(father, rng)

    if d.x_linked:
        c2 = _paternal_sex_chromosome(father, child_sex)

    mother_drive = mother.carries_drive
    father_drive = father.carries_drive
    child = None
    viable = True

    for phase in phases_for(config):
        if phase == InheritancePhase.EARLY_GERMLINE:
            if mother_drive:
                cas_cut(c1, d.germline_resistance_rate, d, rng)
            if father_drive:
                cas_cut(c2, d.germline_resistance_rate, d, rng)
            if d.tads_drive:
                c2 = _tads_sperm_reroll(c2, father, config, rng)
                c2 = _substitute_unstable_r2(c2, father)

        elif phase == InheritancePhase.HDR:
            if mother_drive:
                homing(c1, d, rng)
            if father_drive:
                homing(c2, d, rng)

        elif phase == InheritancePhase.LATE_GERMLINE:
            if mother_drive:
                cas_cut(c1, d.late_germline_resistance_rate, d, rng)
            if father_drive:
                cas_cut(c2, d.late_germline_resistance_rate, d, rng)

        elif phase == InheritancePhase.EMBRYO:
            if mother_drive:
                cas_cut(c1, d.embryo_resistance_rate, d, rng)
                cas_cut(c2, d.embryo_resistance_rate, d, rng)
            if d.x_linked:
                c2 = _paternal_sex_chromosome(father, child_sex)
            check_no_transient_cuts(c1)
            check_no_transient_cuts(c2)

        elif phase == InheritancePhase.VIABILITY_CHECK:
            child = Individual(chromosome1=c1, chromosome2=c2, sex=child_sex, age=0)
            viable = is_viable(child, config)

    return child, viable
