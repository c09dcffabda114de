"""Configuration system for crispr-drive.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

The merged result is a SimulationConfig of plain dataclass sections. The
engine treats it as read-only: every core function receives it explicitly
and none of them writes to it.

Drive variants are selected with boolean flags in the ``drive`` section.
Homing and TADS rule sets are mutually exclusive, as are the two lethal
target variants and the two suppression variants.
"""

from __future__ import annotations

import copy
import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


class ConfigurationError(ValueError):
    """Invalid or inconsistent parameter combination."""


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Top-level run control."""
    seed: int = 42
    generations: int = 50


@dataclass
class DriveSection:
    """Cas9 cutting, homing and drive-variant parameters.

    Rates are per-event probabilities before the per-locus activity and
    saturation adjustments of cutting.cut_rates().
    """
    num_grnas: int = 2                      # Target sites per chromosome
    num_cut_phases: int = 2                 # Sequential cutting rounds per germline/embryo pass
    grna_activity_variation: float = 0.0    # Linear spread of per-site activity (0 = uniform)
    global_saturation_factor: float = 2.5   # Cas9 saturation with many gRNAs
    simulate_saturation: bool = True

    germline_resistance_rate: float = 0.02        # Early germline, before the HDR window
    homing_phase_cut_rate: float = 0.95           # Cutting during the HDR window
    late_germline_resistance_rate: float = 0.5    # Remaining wild-type sites after HDR
    embryo_resistance_rate: float = 0.05          # Maternal Cas9 deposition

    baseline_homing_success_rate: float = 0.9
    homing_edge_effect: float = 0.055       # Homing penalty per site between cut and homology arm
    partial_hdr_rate: float = 0.2
    partial_hdr_r1_rate: float = 0.1
    r1_occurrence_rate: float = 0.0         # Fraction of end-joining repairs that keep function

    homing_drive: bool = True
    tads_drive: bool = False
    haplolethal_drive: bool = False
    recessive_lethal_drive: bool = False
    recessive_female_sterile_suppression: bool = False
    haplolethal_suppression: bool = False
    drive_disrupts_gene_function: bool = False
    x_linked: bool = False


@dataclass
class FitnessSection:
    """Per-chromosome genotype fitness values (multiplicative)."""
    drive_fitness_value: float = 0.95
    r2_fitness_value: float = 1.0
    disruption_fitness_penalty: float = 0.0


@dataclass
class PopulationSection:
    """Panmictic population and density-dependent fecundity parameters."""
    capacity: int = 100_000
    low_density_growth_rate: float = 6.0    # Fecundity multiplier as density → 0
    expected_offspring: float = 2.0         # Per-female clutch at capacity, fitness 1
    max_offspring: int = 50                 # Binomial trials per clutch
    mating_age: int = 1
    drop_size: int = 1000                   # Drive males released at generation 0
    drop_homozygous: bool = False


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    drive: DriveSection = field(default_factory=DriveSection)
    fitness: FitnessSection = field(default_factory=FitnessSection)
    population: PopulationSection = field(default_factory=PopulationSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


_SECTION_MAP = {
    'simulation': SimulationSection,
    'drive': DriveSection,
    'fitness': FitnessSection,
    'population': PopulationSection,
}


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    for key, cls in _SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def _check_probability(name: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ConfigurationError(f"{name} must be in [0, 1], got {value}")


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ConfigurationError on failure.

    Checks:
      - Locus and phase counts are positive
      - Every rate is a probability
      - Drive-variant flags are not mutually exclusive
      - Population parameters are positive and consistent
    """
    d = config.drive

    if d.num_grnas < 1:
        raise ConfigurationError(f"drive.num_grnas must be >= 1, got {d.num_grnas}")
    if d.num_cut_phases < 1:
        raise ConfigurationError(
            f"drive.num_cut_phases must be >= 1, got {d.num_cut_phases}"
        )
    if d.global_saturation_factor <= 0:
        raise ConfigurationError(
            f"drive.global_saturation_factor must be > 0, "
            f"got {d.global_saturation_factor}"
        )

    for name in (
        'grna_activity_variation',
        'germline_resistance_rate',
        'homing_phase_cut_rate',
        'late_germline_resistance_rate',
        'embryo_resistance_rate',
        'baseline_homing_success_rate',
        'homing_edge_effect',
        'partial_hdr_rate',
        'partial_hdr_r1_rate',
        'r1_occurrence_rate',
    ):
        _check_probability(f"drive.{name}", getattr(d, name))

    # Mutually exclusive variants
    if d.homing_drive and d.tads_drive:
        raise ConfigurationError(
            "drive.homing_drive and drive.tads_drive are mutually exclusive"
        )
    if d.haplolethal_drive and d.recessive_lethal_drive:
        raise ConfigurationError(
            "drive.haplolethal_drive and drive.recessive_lethal_drive "
            "are mutually exclusive"
        )
    if d.recessive_female_sterile_suppression and d.haplolethal_suppression:
        raise ConfigurationError(
            "drive.recessive_female_sterile_suppression and "
            "drive.haplolethal_suppression are mutually exclusive"
        )

    if d.late_germline_resistance_rate < d.germline_resistance_rate:
        warnings.warn(
            f"drive.late_germline_resistance_rate "
            f"({d.late_germline_resistance_rate}) is below "
            f"drive.germline_resistance_rate ({d.germline_resistance_rate}); "
            f"late germline cutting is normally the elevated rate.",
            UserWarning,
            stacklevel=2,
        )

    # Fitness
    f = config.fitness
    for name in ('drive_fitness_value', 'r2_fitness_value', 'disruption_fitness_penalty'):
        _check_probability(f"fitness.{name}", getattr(f, name))

    # Population
    p = config.population
    if p.capacity < 1:
        raise ConfigurationError(f"population.capacity must be >= 1, got {p.capacity}")
    if p.low_density_growth_rate < 1.0:
        raise ConfigurationError(
            f"population.low_density_growth_rate must be >= 1, "
            f"got {p.low_density_growth_rate}"
        )
    if p.max_offspring < 1:
        raise ConfigurationError(
            f"population.max_offspring must be >= 1, got {p.max_offspring}"
        )
    if p.expected_offspring < 0:
        raise ConfigurationError(
            f"population.expected_offspring must be >= 0, got {p.expected_offspring}"
        )
    if p.mating_age < 0:
        raise ConfigurationError(f"population.mating_age must be >= 0, got {p.mating_age}")
    if not (0 <= p.drop_size <= p.capacity):
        raise ConfigurationError(
            f"population.drop_size must be in [0, capacity={p.capacity}], "
            f"got {p.drop_size}"
        )

    if config.simulation.seed < 0:
        raise ConfigurationError("simulation.seed must be non-negative")
    if config.simulation.generations < 0:
        raise ConfigurationError("simulation.generations must be non-negative")


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        sweep_overrides: Optional dict of parameter sweep overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ConfigurationError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if sweep_overrides is not None:
        deep_merge(config_dict, copy.deepcopy(sweep_overrides))

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
