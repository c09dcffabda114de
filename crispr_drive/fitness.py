"""Genotype fitness and fertility.

Fitness is multiplicative across the two chromosomes: each chromosome gets
a value (wild type 1.0, complete drive, or R2), and the individual's score
is their geometric mean. A drive/drive, drive/R2 or R2/R2 individual can
take a further penalty when the drive disrupts the target gene.

The score is used twice: as the acceptance probability of a candidate mate
and as a multiplier on a female's fecundity.
"""

from __future__ import annotations

import math

import numpy as np

from crispr_drive.config import SimulationConfig
from crispr_drive.types import (
    Individual,
    has_complete_drive,
    has_r2,
    is_drive_or_r2,
)


def chromosome_fitness(chromosome: np.ndarray, config: SimulationConfig) -> float:
    """Fitness contribution of one chromosome. R2 overrides drive."""
    value = 1.0
    if has_complete_drive(chromosome):
        value = config.fitness.drive_fitness_value
    if has_r2(chromosome):
        value = config.fitness.r2_fitness_value
    return value


def genotype_fitness(individual: Individual, config: SimulationConfig) -> float:
    """Viability / mating weight of an individual, in [0, 1].

    Geometric mean of the two chromosome values, minus the disruption
    penalty when both copies of the target gene are non-functional.
    """
    v1 = chromosome_fitness(individual.chromosome1, config)
    v2 = chromosome_fitness(individual.chromosome2, config)
    fitness = math.sqrt(v1 * v2)

    if (
        config.drive.drive_disrupts_gene_function
        and is_drive_or_r2(individual.chromosome1)
        and is_drive_or_r2(individual.chromosome2)
    ):
        fitness -= config.fitness.disruption_fitness_penalty

    return min(1.0, max(0.0, fitness))


score_genotype = genotype_fitness


def is_infertile(individual: Individual, config: SimulationConfig) -> bool:
    """Fertility suppression by the active suppression drive variant.

    - Recessive female sterility: females with no functional copy of the
      target (both chromosomes drive or R2).
    - Haplolethal suppression: complete-drive homozygotes of either sex.
    """
    d = config.drive
    if (
        d.recessive_female_sterile_suppression
        and individual.is_female
        and is_drive_or_r2(individual.chromosome1)
        and is_drive_or_r2(individual.chromosome2)
    ):
        return True
    if d.haplolethal_suppression and individual.is_drive_homozygote:
        return True
    return False
