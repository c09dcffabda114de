"""crispr-drive: generational dynamics of CRISPR gene drives.

An individual-based model of a drive spreading through a panmictic,
sexually reproducing population:
  - Multiplexed gRNA cutting with activity variation and Cas9 saturation
  - R1 / R2 resistance allele formation and multi-cut deletions
  - Homology-directed repair: full homing, partial HDR, end joining
  - Homing, TADS, haplolethal and recessive-lethal drive variants
  - Optional X linkage and suppression (sterility) variants
  - Fitness-weighted mate choice and density-dependent fecundity
"""

__version__ = "0.1.0"
