"""Tests for crispr_drive.cutting — cut rates, R1/R2 resolution, multi-phase cutting.

Acceptance criteria:
  - Per-locus rates follow the saturation / activity-variation formula
  - Rates are one fixed vector per invocation, reused across phases
  - r1_occurrence_rate = 1 → always R1; 0 → always R2
  - Two simultaneous cuts at 2 loci → [R2, GAP], never the reverse
  - Chromosomes without wild-type loci are untouched
  - No TRANSIENT_CUT survives cas_cut
"""

import numpy as np
import pytest

from crispr_drive.config import DriveSection
from crispr_drive.cutting import (
    add_resistance_allele,
    cas_cut,
    collapse_cut_span,
    cut_rates,
    draw_cuts,
    resolve_cuts,
    saturation_activity,
)
from crispr_drive.types import (
    AlleleState,
    CHROMOSOME_DTYPE,
    InvariantViolation,
    drive_chromosome,
    new_chromosome,
)


WT = AlleleState.WILD_TYPE
DR = AlleleState.DRIVE
R1 = AlleleState.R1
R2 = AlleleState.R2
GAP = AlleleState.GAP


def _chrom(*states):
    return np.array(states, dtype=CHROMOSOME_DTYPE)


# ═══════════════════════════════════════════════════════════════════════
# CUT RATE MODEL
# ═══════════════════════════════════════════════════════════════════════

class TestSaturation:
    def test_single_grna_is_unsaturated(self):
        assert saturation_activity(DriveSection(num_grnas=1)) == pytest.approx(1.0)

    def test_disabled_saturation(self):
        d = DriveSection(num_grnas=4, simulate_saturation=False)
        assert saturation_activity(d) == pytest.approx(1.0)

    def test_saturation_formula(self):
        d = DriveSection(num_grnas=2, global_saturation_factor=2.5)
        assert saturation_activity(d) == pytest.approx(2.5 * 2 / 3.5)

    def test_saturation_grows_sublinearly(self):
        acts = [
            saturation_activity(DriveSection(num_grnas=g, global_saturation_factor=2.5))
            for g in (1, 2, 4, 8)
        ]
        assert all(b > a for a, b in zip(acts, acts[1:]))
        assert acts[-1] < 2.5


class TestCutRates:
    def test_shape_and_bounds(self):
        rates = cut_rates(0.9, DriveSection(num_grnas=5, grna_activity_variation=0.4))
        assert rates.shape == (5,)
        assert np.all((rates >= 0.0) & (rates <= 1.0))

    def test_single_phase_unsaturated_equals_rate(self):
        d = DriveSection(num_grnas=3, simulate_saturation=False)
        np.testing.assert_allclose(cut_rates(0.3, d, n_phases=1), 0.3)

    def test_phase_division(self):
        d = DriveSection(num_grnas=1, num_cut_phases=2)
        expected = 1.0 - 0.5 ** 0.5
        np.testing.assert_allclose(cut_rates(0.5, d), expected)

    def test_phases_compound_back_to_rate(self):
        """Surviving every phase uncut has probability (1 − rate)."""
        d = DriveSection(num_grnas=1, num_cut_phases=4)
        p = cut_rates(0.6, d)[0]
        assert (1.0 - p) ** 4 == pytest.approx(0.4)

    def test_loci_compound_to_saturated_rate(self):
        """P(no locus cut) over all loci = (1 − rate)^sat."""
        d = DriveSection(num_grnas=3, global_saturation_factor=2.5)
        p = cut_rates(0.8, d, n_phases=1)
        sat = saturation_activity(d)
        assert np.prod(1.0 - p) == pytest.approx(0.2 ** sat)

    def test_activity_variation_linear(self):
        d = DriveSection(num_grnas=3, grna_activity_variation=0.5, simulate_saturation=False)
        rates = cut_rates(0.2, d, n_phases=1)
        expected = 1.0 - 0.8 ** np.array([1.5, 1.0, 0.5])
        np.testing.assert_allclose(rates, expected)

    def test_variation_decreasing(self):
        d = DriveSection(num_grnas=4, grna_activity_variation=0.3)
        rates = cut_rates(0.5, d)
        assert np.all(np.diff(rates) < 0)

    def test_single_grna_zero_step(self):
        d = DriveSection(num_grnas=1, grna_activity_variation=0.3, simulate_saturation=False)
        np.testing.assert_allclose(cut_rates(0.5, d, n_phases=1), 1.0 - 0.5 ** 1.3)

    def test_full_variation_last_locus_never_cut(self):
        d = DriveSection(num_grnas=3, grna_activity_variation=1.0)
        assert cut_rates(0.9, d)[-1] == pytest.approx(0.0)

    def test_zero_rate(self):
        np.testing.assert_array_equal(cut_rates(0.0, DriveSection(num_grnas=3)), 0.0)

    def test_certain_rate(self):
        np.testing.assert_array_equal(cut_rates(1.0, DriveSection(num_grnas=3)), 1.0)


# ═══════════════════════════════════════════════════════════════════════
# RESOLUTION
# ═══════════════════════════════════════════════════════════════════════

class TestAddResistanceAllele:
    def test_always_r1(self, rng):
        d = DriveSection(r1_occurrence_rate=1.0)
        for _ in range(200):
            chrom = new_chromosome(2)
            assert add_resistance_allele(chrom, 1, d, rng) == R1
            assert chrom[1] == R1

    def test_always_r2(self, rng):
        d = DriveSection(r1_occurrence_rate=0.0)
        for _ in range(200):
            chrom = new_chromosome(2)
            assert add_resistance_allele(chrom, 0, d, rng) == R2
            assert chrom[0] == R2

    def test_single_draw(self, scripted_rng):
        rng = scripted_rng(uniforms=[0.05])
        chrom = new_chromosome(1)
        add_resistance_allele(chrom, 0, DriveSection(r1_occurrence_rate=0.1), rng)
        assert chrom[0] == R1
        assert rng.exhausted

    def test_overwrites_previous_state(self, scripted_rng):
        chrom = _chrom(DR, WT)
        add_resistance_allele(chrom, 0, DriveSection(r1_occurrence_rate=0.0),
                              scripted_rng(uniforms=[0.5]))
        np.testing.assert_array_equal(chrom, [R2, WT])

    def test_partition_frequency(self, rng):
        d = DriveSection(r1_occurrence_rate=0.3)
        n_r1 = 0
        for _ in range(5000):
            chrom = new_chromosome(1)
            n_r1 += add_resistance_allele(chrom, 0, d, rng) == R1
        assert 0.27 < n_r1 / 5000 < 0.33


class TestResolveCuts:
    def test_two_cuts_collapse_left_r2(self):
        chrom = new_chromosome(2)
        collapse_cut_span(chrom, 0, 1)
        np.testing.assert_array_equal(chrom, [R2, GAP])

    def test_span_overwrites_intervening_loci(self):
        chrom = _chrom(WT, R1, DR, WT, WT)
        resolve_cuts(chrom, np.array([0, 3]), DriveSection(), rng=None)
        np.testing.assert_array_equal(chrom, [R2, GAP, GAP, GAP, WT])

    def test_single_cut_uses_resolver(self, scripted_rng):
        chrom = _chrom(WT, AlleleState.TRANSIENT_CUT, WT)
        rng = scripted_rng(uniforms=[0.9])
        resolve_cuts(chrom, np.array([1]), DriveSection(r1_occurrence_rate=0.5), rng)
        np.testing.assert_array_equal(chrom, [WT, R2, WT])
        assert rng.exhausted

    def test_no_cuts_no_draws(self, scripted_rng):
        chrom = new_chromosome(3)
        resolve_cuts(chrom, np.array([], dtype=np.int64), DriveSection(), scripted_rng())
        np.testing.assert_array_equal(chrom, new_chromosome(3))


# ═══════════════════════════════════════════════════════════════════════
# MULTI-PHASE CUTTING
# ═══════════════════════════════════════════════════════════════════════

class TestDrawCuts:
    def test_marks_transient(self, scripted_rng):
        chrom = _chrom(WT, R1, WT)
        rates = np.array([0.5, 0.5, 0.5])
        cuts = draw_cuts(chrom, rates, scripted_rng(uniforms=[0.1, 0.9]))
        np.testing.assert_array_equal(cuts, [0])
        np.testing.assert_array_equal(chrom, [AlleleState.TRANSIENT_CUT, R1, WT])


class TestCasCut:
    def test_double_cut_two_loci(self, rng):
        """Certain cutting at two sites always gives [R2, GAP]."""
        d = DriveSection(num_grnas=2, num_cut_phases=1)
        for _ in range(50):
            chrom = new_chromosome(2)
            cas_cut(chrom, 1.0, d, rng)
            np.testing.assert_array_equal(chrom, [R2, GAP])

    def test_no_wild_type_is_noop(self, scripted_rng):
        d = DriveSection(num_grnas=3)
        for chrom in (drive_chromosome(3), _chrom(R1, R2, GAP), _chrom(DR, R1, R2)):
            before = chrom.copy()
            rng = scripted_rng()
            cas_cut(chrom, 1.0, d, rng)
            np.testing.assert_array_equal(chrom, before)
            assert rng.n_uniform_calls == 0

    def test_single_cut_resolves(self, scripted_rng):
        d = DriveSection(num_grnas=2, num_cut_phases=1, r1_occurrence_rate=0.0)
        chrom = new_chromosome(2)
        rng = scripted_rng(uniforms=[0.0, 0.99, 0.5])
        cas_cut(chrom, 0.5, d, rng)
        np.testing.assert_array_equal(chrom, [R2, WT])
        assert rng.exhausted

    def test_second_phase_cuts_remaining(self, scripted_rng):
        d = DriveSection(num_grnas=2, num_cut_phases=2, r1_occurrence_rate=1.0)
        chrom = new_chromosome(2)
        # Phase 1: no cuts. Phase 2: locus 1 cut → resolver draw → R1.
        rng = scripted_rng(uniforms=[0.99, 0.99, 0.99, 0.0, 0.5])
        cas_cut(chrom, 0.5, d, rng)
        np.testing.assert_array_equal(chrom, [WT, R1])
        assert rng.exhausted

    def test_stops_when_no_wild_type_left(self, scripted_rng):
        d = DriveSection(num_grnas=2, num_cut_phases=5)
        chrom = new_chromosome(2)
        rng = scripted_rng(uniforms=[0.0, 0.0])
        cas_cut(chrom, 0.5, d, rng)
        np.testing.assert_array_equal(chrom, [R2, GAP])
        assert rng.exhausted
        assert rng.n_uniform_calls == 1

    def test_rates_fixed_across_phases(self, scripted_rng):
        """After locus 0 resolves, locus 1 keeps its original cut rate."""
        d = DriveSection(num_grnas=2, num_cut_phases=2, r1_occurrence_rate=0.0)
        p1 = cut_rates(0.5, d)[1]
        chrom = new_chromosome(2)
        just_below = p1 - 1e-9
        rng = scripted_rng(uniforms=[0.0, 0.999, 0.5, just_below, 0.5])
        cas_cut(chrom, 0.5, d, rng)
        np.testing.assert_array_equal(chrom, [R2, R2])

    def test_transient_cut_leak_rejected(self, rng):
        chrom = _chrom(AlleleState.TRANSIENT_CUT, WT)
        with pytest.raises(InvariantViolation):
            cas_cut(chrom, 0.5, DriveSection(), rng)

    def test_never_leaves_transient_cuts(self, rng):
        d = DriveSection(num_grnas=5, num_cut_phases=3, r1_occurrence_rate=0.3,
                         grna_activity_variation=0.2)
        for _ in range(500):
            chrom = new_chromosome(5)
            cas_cut(chrom, 0.7, d, rng)
            assert not np.any(chrom == AlleleState.TRANSIENT_CUT)

    def test_existing_gap_not_recut(self, rng):
        chrom = _chrom(R2, GAP, WT)
        cas_cut(chrom, 1.0, DriveSection(num_grnas=3, num_cut_phases=1), rng)
        # Only locus 2 was wild type; one cut resolves to R1/R2, gap untouched
        assert chrom[1] == GAP
        assert chrom[2] in (R1, R2)
