"""Tests for motif creation, mutation and bar rendering."""
from __future__ import annotations

import random

import pytest

from grooveforge.core.channels import Role
from grooveforge.core.theory import pitch_from_name, scale_intervals
from grooveforge.core.tick_grid import STEPS_PER_BAR, TICKS_PER_BAR
from grooveforge.services.motif import (
    REST,
    Active,
    Complexity,
    DEFAULT_MOTIF,
    active_count,
    create_motif,
    degree_to_pitch,
    expected_active_fraction,
    motif_from_ints,
    motif_to_ints,
    mutate_motif,
    mutation_count,
    render_bar,
)
from grooveforge.services.style_profile import StyleProfile

MINOR = scale_intervals("Minor")
SCENARIO_MOTIF = [0, -1, 2, -1, 4, -1, 2, -1, 0, -1, 5, -1, 2, -1, 1, -1]
ALL_ONES = [1.0] * STEPS_PER_BAR


class TestMotifSteps:
    """Test the tagged Rest / Active representation."""

    def test_ints_round_trip(self) -> None:

        motif = motif_from_ints(SCENARIO_MOTIF)
        assert motif[0] == Active(0)
        assert motif[1] is REST
        assert motif_to_ints(motif) == SCENARIO_MOTIF

    def test_active_count(self) -> None:

        assert active_count(motif_from_ints(SCENARIO_MOTIF)) == 8


class TestCreateMotif:
    """Test create_motif."""

    def test_length_and_degree_range(self) -> None:

        rng = random.Random(42)
        for _ in range(50):
            motif = create_motif(16, 7, rng=rng)
            assert len(motif) == 16
            for step in motif:
                if isinstance(step, Active):
                    assert 0 <= step.degree <= 7

    def test_quarter_steps_draw_anchor_degrees(self) -> None:

        rng = random.Random(7)
        for _ in range(50):
            motif = create_motif(16, 7, rng=rng, mask=ALL_ONES, factor=1.0)
            for step in range(0, 16, 4):
                # Strong-beat probability is 0.7 + 0.3 = 1.0, always active.
                assert isinstance(motif[step], Active)
                assert motif[step].degree in (0, 2, 4, 7)

    def test_active_fraction_matches_probability_model(self) -> None:
        """Over 1,000 draws the active share sits within 0.03 of the analytic mean."""

        rng = random.Random(1234)
        runs = 1000
        total = sum(active_count(create_motif(16, 7, rng=rng, mask=ALL_ONES, factor=1.0)) for _ in range(runs))
        observed = total / (runs * 16)
        expected = expected_active_fraction(16, ALL_ONES, 1.0)
        assert expected == pytest.approx(0.775)
        assert abs(observed - expected) < 0.03

    def test_zero_density_profile_silences_motif(self) -> None:

        profile = StyleProfile(genre="Test", avg_lead_density=0.0, lead_track_count=1)
        motif = create_motif(16, 7, profile, rng=random.Random(3), mask=ALL_ONES)
        assert active_count(motif) == 0

    def test_profile_mask_is_used(self) -> None:

        mask = tuple(1.0 if s == 6 else 0.0 for s in range(16))
        profile = StyleProfile(genre="Test", avg_lead_density=8.0, lead_track_count=1, rhythm_mask16=mask)
        motif = create_motif(16, 7, profile, rng=random.Random(5), strong_beat_bonus=0.0)
        active_steps = [i for i, s in enumerate(motif) if isinstance(s, Active)]
        assert set(active_steps) <= {6}


class TestMutateMotif:
    """Test mutate_motif."""

    def test_mutation_count(self) -> None:

        assert mutation_count(16) == 4
        assert mutation_count(2) == 1

    def test_changes_at_most_a_quarter_of_positions(self) -> None:

        rng = random.Random(99)
        for _ in range(200):
            base = create_motif(16, 7, rng=rng, mask=ALL_ONES, factor=1.0)
            mutated = mutate_motif(base, 7, rng=rng)
            changed = sum(1 for a, b in zip(base, mutated) if a != b)
            assert changed <= mutation_count(16)

    def test_degrees_move_by_one_and_stay_in_range(self) -> None:

        rng = random.Random(11)
        # Four steps means exactly one mutation per call.
        base = motif_from_ints([0, 7, 3, 5])
        for _ in range(200):
            mutated = mutate_motif(base, 7, rng=rng, revival_chance=0.0)
            for a, b in zip(base, mutated):
                assert isinstance(b, Active)
                assert abs(a.degree - b.degree) <= 1
                assert 0 <= b.degree <= 7

    def test_input_not_modified(self) -> None:

        base = motif_from_ints(SCENARIO_MOTIF)
        mutate_motif(base, 7, rng=random.Random(0))
        assert motif_to_ints(base) == SCENARIO_MOTIF


class TestRenderBar:
    """Test render_bar."""

    def test_lead_emits_one_note_per_active_step(self) -> None:

        notes = render_bar(0, 60, MINOR, Role.LEAD, motif_from_ints(SCENARIO_MOTIF), rng=random.Random(0))
        assert len(notes) == 8
        assert notes[0].start_tick == 0
        # Motif index 2 (degree 2) is the second sounded step.
        assert notes[1].start_tick == 240
        assert [n.start_tick for n in notes] == [s * 120 for s in range(0, 16, 2)]

    def test_start_ticks_offset_by_bar(self) -> None:

        notes = render_bar(5, 60, MINOR, Role.LEAD, motif_from_ints(SCENARIO_MOTIF), rng=random.Random(0))
        assert notes[0].start_tick == 5 * TICKS_PER_BAR
        assert all(n.start_tick % 120 == 0 for n in notes)

    def test_lead_pitches_follow_degrees(self) -> None:

        notes = render_bar(0, 60, MINOR, Role.LEAD, motif_from_ints(SCENARIO_MOTIF), rng=random.Random(0))
        expected = [degree_to_pitch(60, MINOR, d) for d in SCENARIO_MOTIF if d >= 0]
        assert [pitch_from_name(n.note) for n in notes] == expected

    def test_simple_lead_is_long_and_even(self) -> None:

        notes = render_bar(
            0, 60, MINOR, Role.LEAD, motif_from_ints(SCENARIO_MOTIF),
            Complexity.SIMPLE, rng=random.Random(0),
        )
        assert {n.duration_ticks for n in notes} == {240}
        assert {n.velocity for n in notes} == {0.9}

    def test_complex_arp_lifts_third_sixteenth_an_octave(self) -> None:

        motif = motif_from_ints([0] * 16)
        notes = render_bar(0, 60, MINOR, Role.ARP, motif, Complexity.COMPLEX, rng=random.Random(0))
        by_step = {n.start_tick // 120: pitch_from_name(n.note) for n in notes}
        assert by_step[2] == 72
        assert by_step[0] == 60

    def test_complex_lead_skips_steps_outside_masks(self) -> None:

        profile = StyleProfile(
            genre="Test", avg_lead_density=8.0, lead_track_count=1,
            rhythm_mask16=tuple(1.0 if s == 0 else 0.0 for s in range(16)),
        )
        session = [0] * 16
        motif = motif_from_ints([0] * 16)
        counts = [
            len(render_bar(0, 60, MINOR, Role.LEAD, motif, Complexity.COMPLEX, profile, session, rng=random.Random(seed)))
            for seed in range(50)
        ]
        assert max(counts) < 16
        assert min(counts) >= 1

    def test_acid_plays_only_active_steps(self) -> None:

        notes = render_bar(0, 48, MINOR, Role.ACID, motif_from_ints(SCENARIO_MOTIF), rng=random.Random(0))
        assert len(notes) == 8
        assert {n.duration_ticks for n in notes} == {120}

    def test_simple_pad_is_one_sustained_triad(self) -> None:

        notes = render_bar(2, 48, MINOR, Role.PAD, motif_from_ints(SCENARIO_MOTIF), Complexity.SIMPLE)
        assert len(notes) == 1
        assert notes[0].is_chord
        assert len(notes[0].pitches) == 3
        assert notes[0].duration_ticks == TICKS_PER_BAR
        assert notes[0].start_tick == 2 * TICKS_PER_BAR

    def test_complex_pad_stabs_on_motif_or_session_steps(self) -> None:

        session = [1 if s == 1 else 0 for s in range(16)]
        notes = render_bar(
            0, 48, MINOR, Role.PAD, motif_from_ints(SCENARIO_MOTIF),
            Complexity.COMPLEX, session_mask=session, rng=random.Random(0),
        )
        steps = sorted(n.start_tick // 120 for n in notes)
        assert steps == [0, 1, 2, 4, 6, 8, 10, 12, 14]

    def test_fx_only_on_last_bar_of_phrase(self) -> None:

        assert render_bar(2, 72, MINOR, Role.FX) == []
        assert len(render_bar(3, 72, MINOR, Role.FX)) == 1

    def test_default_motif_used_when_none_given(self) -> None:

        notes = render_bar(0, 60, MINOR, Role.LEAD, None, Complexity.SIMPLE)
        assert len(notes) == sum(1 for d in DEFAULT_MOTIF if d >= 0)

    def test_foundation_roles_rejected(self) -> None:

        with pytest.raises(ValueError):
            render_bar(0, 36, MINOR, Role.KICK)
