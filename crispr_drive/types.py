"""Core data types for crispr-drive.

This module is the SINGLE SOURCE OF TRUTH for:
  - AlleleState: per-locus allele states stored in chromosome arrays
  - Sex enumeration
  - Individual: a diploid pair of chromosomes plus sex and age
  - Chromosome constructors and predicates shared by every engine module
  - InvariantViolation: fatal internal-logic error

A chromosome is a (num_grnas,) int8 array indexed by locus (gRNA target
site). Writes replace the state at a locus; states never stack.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np


CHROMOSOME_DTYPE = np.int8


class InvariantViolation(RuntimeError):
    """Internal engine state is inconsistent (not user-recoverable)."""


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class AlleleState(IntEnum):
    """State of one gRNA target site.

    WILD_TYPE      → cuttable target sequence
    DRIVE          → drive allele copied into the site
    R1             → resistant, target function preserved
    R2             → resistant, target function disrupted
    TRANSIENT_CUT  → double-strand break awaiting resolution (never persists)
    GAP            → site excised between two simultaneous cuts
    """
    WILD_TYPE     = 0
    DRIVE         = 1
    R1            = 2
    R2            = 3
    TRANSIENT_CUT = 4
    GAP           = 5


class Sex(IntEnum):
    FEMALE = 0
    MALE   = 1


# ═══════════════════════════════════════════════════════════════════════
# CHROMOSOMES
# ═══════════════════════════════════════════════════════════════════════

def new_chromosome(num_grnas: int) -> np.ndarray:
    """All-wild-type chromosome of length num_grnas."""
    return np.full(num_grnas, AlleleState.WILD_TYPE, dtype=CHROMOSOME_DTYPE)


def drive_chromosome(num_grnas: int) -> np.ndarray:
    """Complete drive haplotype of length num_grnas."""
    return np.full(num_grnas, AlleleState.DRIVE, dtype=CHROMOSOME_DTYPE)


def wild_type_loci(chromosome: np.ndarray) -> np.ndarray:
    """Indices of loci still in WILD_TYPE state (ascending)."""
    return np.flatnonzero(chromosome == AlleleState.WILD_TYPE)


def has_complete_drive(chromosome: np.ndarray) -> bool:
    """True if every locus carries the drive allele."""
    return bool(np.all(chromosome == AlleleState.DRIVE))


def has_r2(chromosome: np.ndarray) -> bool:
    """True if any locus carries a function-disrupting R2 allele."""
    return bool(np.any(chromosome == AlleleState.R2))


def is_drive_or_r2(chromosome: np.ndarray) -> bool:
    """Chromosome carries no functional copy of the target gene."""
    return has_complete_drive(chromosome) or has_r2(chromosome)


def check_no_transient_cuts(chromosome: np.ndarray) -> None:
    """Raise InvariantViolation if a TRANSIENT_CUT leaked out of an operation."""
    if np.any(chromosome == AlleleState.TRANSIENT_CUT):
        raise InvariantViolation(
            f"Unresolved TRANSIENT_CUT on chromosome {chromosome.tolist()}"
        )


# ═══════════════════════════════════════════════════════════════════════
# INDIVIDUALS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(eq=False)
class Individual:
    """Diploid individual. chromosome1 is maternal, chromosome2 paternal.

    Each individual owns its arrays exclusively; use copy() rather than
    sharing chromosome arrays between individuals.
    """
    chromosome1: np.ndarray
    chromosome2: np.ndarray
    sex: Sex
    age: int = 0

    @property
    def chromosomes(self):
        return (self.chromosome1, self.chromosome2)

    @property
    def is_female(self) -> bool:
        return self.sex == Sex.FEMALE

    @property
    def is_male(self) -> bool:
        return self.sex == Sex.MALE

    @property
    def drive_copies(self) -> int:
        """Number of complete drive haplotypes carried (0, 1 or 2)."""
        return int(has_complete_drive(self.chromosome1)) + int(
            has_complete_drive(self.chromosome2)
        )

    @property
    def carries_drive(self) -> bool:
        return self.drive_copies > 0

    @property
    def is_drive_homozygote(self) -> bool:
        return self.drive_copies == 2

    def copy(self) -> Individual:
        """Deep copy; the new individual shares no arrays with this one."""
        return Individual(
            chromosome1=self.chromosome1.copy(),
            chromosome2=self.chromosome2.copy(),
            sex=self.sex,
            age=self.age,
        )


def wild_type_individual(num_grnas: int, sex: Sex, age: int = 0) -> Individual:
    """Individual with two wild-type chromosomes."""
    return Individual(
        chromosome1=new_chromosome(num_grnas),
        chromosome2=new_chromosome(num_grnas),
        sex=sex,
        age=age,
    )
