"""Allele-state tallies for populations of drive-carrying individuals.

Read-only helpers that an external reporter (or a test) can use to follow
drive spread. Frequencies are per locus: a chromosome with the drive at
one of two sites contributes 0.5 of a drive allele, although only complete
drive haplotypes count for propagation.
"""

from __future__ import annotations

from typing import Dict, Sequence

import numpy as np

from crispr_drive.types import AlleleState, Individual


N_ALLELE_STATES = len(AlleleState)


def allele_state_counts(individual: Individual) -> np.ndarray:
    """Loci per AlleleState over both chromosomes.

    Returns:
        (N_ALLELE_STATES,) int64 array indexed by AlleleState.
    """
    return (
        np.bincount(individual.chromosome1, minlength=N_ALLELE_STATES)
        + np.bincount(individual.chromosome2, minlength=N_ALLELE_STATES)
    )


def population_allele_frequencies(
    population: Sequence[Individual],
) -> Dict[AlleleState, float]:
    """Fraction of all loci (both chromosomes, all individuals) in each state.

    Returns:
        {AlleleState: frequency}. All zeros for an empty population.
    """
    if len(population) == 0:
        return {state: 0.0 for state in AlleleState}
    totals = np.zeros(N_ALLELE_STATES, dtype=np.int64)
    for ind in population:
        totals += allele_state_counts(ind)
    n_loci = totals.sum()
    return {state: float(totals[state] / n_loci) for state in AlleleState}


def drive_carrier_frequency(population: Sequence[Individual]) -> float:
    """Fraction of individuals with at least one complete drive haplotype."""
    if len(population) == 0:
        return 0.0
    return sum(ind.carries_drive for ind in population) / len(population)
