"""Panmictic population driver for drive release simulations.

Discrete, non-overlapping generations:
  - Generation 0: capacity wild-type adults plus a release of drive males
  - Each generation: every adult female mates once (fitness-weighted
    choice) and produces a binomial clutch; lethal genotypes are removed
  - Parents die; offspring become the next generation's adults
  - Per-generation allele tallies are recorded for the caller

The driver owns the population list and the RNG hierarchy. All genotype
logic lives in inheritance/reproduction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from crispr_drive.config import SimulationConfig, default_config
from crispr_drive.genetics import drive_carrier_frequency, population_allele_frequencies
from crispr_drive.reproduction import eligible_males, reproduce
from crispr_drive.rng import create_rng_hierarchy
from crispr_drive.types import (
    AlleleState,
    Individual,
    Sex,
    drive_chromosome,
    new_chromosome,
    wild_type_individual,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# INITIALIZATION
# ═══════════════════════════════════════════════════════════════════════


def drive_male(config: SimulationConfig, homozygous: bool = False) -> Individual:
    """Released drive male of mating age.

    Under X linkage the drive sits on chromosome1 (X) only; chromosome2
    stands in for the Y.
    """
    n = config.drive.num_grnas
    second = drive_chromosome(n) if homozygous and not config.drive.x_linked else new_chromosome(n)
    return Individual(
        chromosome1=drive_chromosome(n),
        chromosome2=second,
        sex=Sex.MALE,
        age=config.population.mating_age,
    )


def initialize_population(
    config: SimulationConfig,
    rng: np.random.Generator,
) -> List[Individual]:
    """Wild-type population at capacity plus the drive release.

    Args:
        config: Simulation configuration.
        rng: Generator used for sex assignment.

    Returns:
        List of capacity + drop_size adults.
    """
    p = config.population
    n = config.drive.num_grnas
    sexes = rng.random(p.capacity) < 0.5
    population = [
        wild_type_individual(n, Sex.FEMALE if is_female else Sex.MALE, age=p.mating_age)
        for is_female in sexes
    ]
    population.extend(
        drive_male(config, homozygous=p.drop_homozygous) for _ in range(p.drop_size)
    )
    return population


# ═══════════════════════════════════════════════════════════════════════
# GENERATION STEP
# ═══════════════════════════════════════════════════════════════════════


def run_generation(
    population: List[Individual],
    config: SimulationConfig,
    rng: np.random.Generator,
    inheritance_rng: Optional[np.random.Generator] = None,
) -> List[Individual]:
    """Advance one discrete generation.

    Every adult female reproduces once, in population order, with density
    set by the current adult count. Males are filtered for
    eligibility once per generation. Parents are then removed and the
    offspring are aged to mating age.

    Args:
        population: Current individuals (not modified).
        config: Simulation configuration.
        rng: Generator for mate choice and clutch sizes.
        inheritance_rng: Generator for offspring construction (default rng).

    Returns:
        The next generation.
    """
    mating_age = config.population.mating_age
    adults = [ind for ind in population if ind.age >= mating_age]
    n_adults = len(adults)
    males = eligible_males(adults, config)

    offspring: List[Individual] = []
    for female in adults:
        if not female.is_female:
            continue
        offspring.extend(
            reproduce(
                female, males, n_adults, config, rng, inheritance_rng,
                prefiltered=True,
            )
        )

    for child in offspring:
        child.age = mating_age
    return offspring


# ═══════════════════════════════════════════════════════════════════════
# FULL RUN
# ═══════════════════════════════════════════════════════════════════════


@dataclass
class SimulationResult:
    """Per-generation trajectories; index 0 is the post-release population."""
    population_size: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    drive_allele_frequency: np.ndarray = field(default_factory=lambda: np.zeros(0))
    r1_allele_frequency: np.ndarray = field(default_factory=lambda: np.zeros(0))
    r2_allele_frequency: np.ndarray = field(default_factory=lambda: np.zeros(0))
    drive_carrier_frequency: np.ndarray = field(default_factory=lambda: np.zeros(0))
    generations_run: int = 0

    @property
    def extinct(self) -> bool:
        return len(self.population_size) > 0 and self.population_size[-1] == 0


def run_simulation(
    config: Optional[SimulationConfig] = None,
    seed: Optional[int] = None,
) -> SimulationResult:
    """Release drive males and follow the population.

    Args:
        config: Simulation configuration (default_config() if None).
        seed: Master seed (default config.simulation.seed).

    Returns:
        SimulationResult with one entry per recorded generation. Stops
        early if the population goes extinct.
    """
    if config is None:
        config = default_config()
    if seed is None:
        seed = config.simulation.seed

    rngs = create_rng_hierarchy(seed)
    population = initialize_population(config, rngs['global'])
    logger.info(
        "Starting run: seed=%d, capacity=%d, drop_size=%d, generations=%d",
        seed, config.population.capacity, config.population.drop_size,
        config.simulation.generations,
    )

    sizes, drive_f, r1_f, r2_f, carrier_f = [], [], [], [], []

    def record(pop: List[Individual]) -> None:
        freqs = population_allele_frequencies(pop)
        sizes.append(len(pop))
        drive_f.append(freqs[AlleleState.DRIVE])
        r1_f.append(freqs[AlleleState.R1])
        r2_f.append(freqs[AlleleState.R2])
        carrier_f.append(drive_carrier_frequency(pop))

    record(population)
    generations_run = 0
    for gen in range(1, config.simulation.generations + 1):
        population = run_generation(
            population, config, rngs['mating'], rngs['inheritance']
        )
        record(population)
        generations_run = gen
        logger.debug(
            "Generation %d: N=%d, drive=%.4f, r2=%.4f",
            gen, sizes[-1], drive_f[-1], r2_f[-1],
        )
        if not population:
            logger.info("Population eliminated at generation %d", gen)
            break

    logger.info("Run finished after %d generations (N=%d)", generations_run, sizes[-1])
    return SimulationResult(
        population_size=np.array(sizes, dtype=np.int64),
        drive_allele_frequency=np.array(drive_f),
        r1_allele_frequency=np.array(r1_f),
        r2_allele_frequency=np.array(r2_f),
        drive_carrier_frequency=np.array(carrier_f),
        generations_run=generations_run,
    )
