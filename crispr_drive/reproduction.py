"""Mate choice, density-dependent fecundity, and clutch production.

Implements the reproduction step for one female:
  - Fitness-weighted mate choice by bounded rejection sampling
  - Density dependence: fecundity rises toward low_density_growth_rate as
    the population falls below capacity (Beverton-Holt-type competition)
  - Binomial clutch size bounded by max_offspring
  - Per-offspring inheritance and lethal-genotype elimination

No eligible mate and a zero clutch are ordinary outcomes, returned as
None / 0 / an empty list.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from crispr_drive.config import SimulationConfig
from crispr_drive.fitness import genotype_fitness, is_infertile
from crispr_drive.inheritance import construct_offspring
from crispr_drive.types import Individual


MAX_MATE_ATTEMPTS = 10


# ═══════════════════════════════════════════════════════════════════════
# MATE CHOICE
# ═══════════════════════════════════════════════════════════════════════


def eligible_males(
    candidates: Sequence[Individual],
    config: SimulationConfig,
) -> List[Individual]:
    """Adult, fertile males from a candidate pool."""
    return [
        ind for ind in candidates
        if ind.is_male
        and ind.age >= config.population.mating_age
        and not is_infertile(ind, config)
    ]


def select_mate(
    males: Sequence[Individual],
    config: SimulationConfig,
    rng: np.random.Generator,
) -> Optional[Individual]:
    """Fitness-weighted rejection sampling of one mate.

    Each attempt draws a male uniformly and accepts him with probability
    equal to his genotype fitness. Gives up after MAX_MATE_ATTEMPTS.

    Args:
        males: Eligible males (see eligible_males()).
        config: Simulation configuration.
        rng: Random generator.

    Returns:
        The accepted male, or None if the pool is empty or every attempt
        was rejected. An empty pool consumes no draws.
    """
    if len(males) == 0:
        return None
    for _ in range(MAX_MATE_ATTEMPTS):
        candidate = males[int(rng.integers(len(males)))]
        if rng.random() < genotype_fitness(candidate, config):
            return candidate
    return None


# ═══════════════════════════════════════════════════════════════════════
# FECUNDITY
# ═══════════════════════════════════════════════════════════════════════


def competition_factor(population_size: int, config: SimulationConfig) -> float:
    """Density-dependent fecundity multiplier.

    G / ((G − 1) × N/K + 1): equals G at N = 0, 1 at N = K, and keeps
    falling above capacity.

    Args:
        population_size: Current number of adults N.
        config: Simulation configuration (K = capacity, G = growth rate).

    Returns:
        Multiplier > 0.
    """
    growth = config.population.low_density_growth_rate
    ratio = population_size / config.population.capacity
    return growth / ((growth - 1.0) * ratio + 1.0)


def offspring_chance(
    female: Individual,
    population_size: int,
    config: SimulationConfig,
) -> float:
    """Per-trial success probability of the binomial clutch draw."""
    p = config.population
    chance = (
        competition_factor(population_size, config)
        * genotype_fitness(female, config)
        * p.expected_offspring / p.max_offspring
    )
    return min(1.0, chance)


def offspring_count(
    female: Individual,
    population_size: int,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> int:
    """Clutch size ~ Binomial(max_offspring, offspring_chance)."""
    return int(rng.binomial(
        config.population.max_offspring,
        offspring_chance(female, population_size, config),
    ))


def select_mate_and_offspring_count(
    female: Individual,
    male_candidates: Sequence[Individual],
    population_size: int,
    config: SimulationConfig,
    rng: np.random.Generator,
    prefiltered: bool = False,
) -> Tuple[Optional[Individual], int]:
    """Pick a mate for ``female`` and draw her clutch size.

    Infertile females and females without an accepted mate produce nothing.

    Args:
        prefiltered: ``male_candidates`` already went through
            eligible_males(); skip the per-female re-filter.

    Returns:
        (mate, count); (None, 0) when no reproduction happens.
    """
    if is_infertile(female, config):
        return None, 0
    males = male_candidates if prefiltered else eligible_males(male_candidates, config)
    mate = select_mate(males, config, rng)
    if mate is None:
        return None, 0
    return mate, offspring_count(female, population_size, config, rng)


# ═══════════════════════════════════════════════════════════════════════
# CLUTCH
# ═══════════════════════════════════════════════════════════════════════


def reproduce(
    female: Individual,
    male_candidates: Sequence[Individual],
    population_size: int,
    config: SimulationConfig,
    rng: np.random.Generator,
    inheritance_rng: Optional[np.random.Generator] = None,
    prefiltered: bool = False,
) -> List[Individual]:
    """One reproduction cycle for one female.

    Args:
        female: Mother.
        male_candidates: Males she may mate with (filtered for eligibility).
        population_size: Current adult count (density dependence).
        config: Simulation configuration.
        rng: Generator for mate choice and clutch size.
        inheritance_rng: Generator for offspring construction (default rng).
        prefiltered: ``male_candidates`` are already eligible males.

    Returns:
        Viable offspring only; non-viable ones never enter the population.
    """
    if inheritance_rng is None:
        inheritance_rng = rng

    mate, n_offspring = select_mate_and_offspring_count(
        female, male_candidates, population_size, config, rng,
        prefiltered=prefiltered,
    )
    if mate is None:
        return []

    offspring = []
    for _ in range(n_offspring):
        child, viable = construct_offspring(female, mate, config, inheritance_rng)
        if viable:
            offspring.append(child)
    return offspring
