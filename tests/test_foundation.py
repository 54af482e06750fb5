"""Tests for the kick, bass and percussion generators."""
from __future__ import annotations

import random

import pytest

from grooveforge.core.channels import DRUM_NOTES, Channel
from grooveforge.core.theory import pitch_from_name
from grooveforge.core.tick_grid import TICKS_PER_BAR
from grooveforge.services.foundation import (
    DOUBLE_SHOT,
    GALLOPING,
    GHOST_GROOVE,
    PEAK_TECHNO,
    ROLLING,
    SYNCOPATED,
    render_bass_bar,
    render_kick_bar,
    render_percussion_bar,
    select_kick_archetype,
)
from grooveforge.services.motif import Complexity
from grooveforge.services.style_profile import StyleProfile


def _starts(notes) -> list[int]:
    return [n.start_tick for n in notes]


class TestKick:
    """Test render_kick_bar and archetype selection."""

    def test_simple_is_four_on_the_floor(self) -> None:

        notes = render_kick_bar(0, Complexity.SIMPLE, DOUBLE_SHOT)
        assert _starts(notes) == [0, 480, 960, 1440]
        assert all(n.note == DRUM_NOTES[Channel.KICK] for n in notes)
        assert all(n.velocity == 1.0 for n in notes)

    def test_double_shot_adds_hit_after_last_beat(self) -> None:

        notes = render_kick_bar(0, Complexity.COMPLEX, DOUBLE_SHOT)
        assert _starts(notes) == [0, 480, 960, 1440, 1680]
        extra = notes[-1]
        assert extra.velocity == pytest.approx(0.7)
        assert extra.duration_ticks == 80

    def test_ghost_groove_adds_two_soft_hits(self) -> None:

        notes = render_kick_bar(1, Complexity.COMPLEX, GHOST_GROOVE)
        offsets = [t - TICKS_PER_BAR for t in _starts(notes)]
        assert offsets == [0, 480, 720, 960, 1440, 1680]

    def test_peak_techno_only_on_odd_bars(self) -> None:

        assert len(render_kick_bar(2, Complexity.COMPLEX, PEAK_TECHNO)) == 4
        odd = render_kick_bar(3, Complexity.COMPLEX, PEAK_TECHNO)
        assert len(odd) == 5
        assert odd[-1].start_tick == 3 * TICKS_PER_BAR + 1440 + 360

    def test_masks_only_raise_velocity(self) -> None:

        session = [1] * 16
        profile = StyleProfile(genre="Test", rhythm_mask16=tuple([1.0] * 16))
        plain = render_kick_bar(0, Complexity.COMPLEX, DOUBLE_SHOT)
        boosted = render_kick_bar(0, Complexity.COMPLEX, DOUBLE_SHOT, profile, session)
        assert _starts(plain) == _starts(boosted)
        assert boosted[-1].velocity == pytest.approx(0.7 + 0.15 + 0.05)

    def test_dense_bass_profile_picks_peak_archetype(self) -> None:

        profile = StyleProfile(genre="Test", avg_bass_density=14.0, bass_track_count=1)
        assert select_kick_archetype(profile, random.Random(0)) is PEAK_TECHNO

    def test_selection_is_seeded(self) -> None:

        a = select_kick_archetype(None, random.Random(4))
        b = select_kick_archetype(None, random.Random(4))
        assert a is b


class TestBass:
    """Test render_bass_bar."""

    def test_simple_rolls_three_sixteenths_per_beat(self) -> None:

        notes = render_bass_bar(0, 30, Complexity.SIMPLE, GALLOPING)
        assert len(notes) == 12
        assert _starts(notes)[:3] == [120, 240, 360]
        assert all(n.velocity == pytest.approx(0.9) for n in notes)

    def test_bass_never_lands_on_the_kick(self) -> None:

        for pattern in (ROLLING, SYNCOPATED, GALLOPING):
            notes = render_bass_bar(0, 30, Complexity.COMPLEX, pattern)
            assert all(n.start_tick % 480 != 0 for n in notes)

    def test_syncopated_uses_half_sixteenths(self) -> None:

        notes = render_bass_bar(0, 30, Complexity.COMPLEX, SYNCOPATED)
        assert _starts(notes)[:3] == [180, 300, 420]
        assert all(n.velocity == pytest.approx(0.85) for n in notes)

    def test_answer_interval_on_last_hit_of_each_beat(self) -> None:

        notes = render_bass_bar(0, 42, Complexity.SIMPLE, ROLLING, answer_interval=7)
        pitches = [pitch_from_name(n.note) for n in notes]
        assert pitches[:3] == [42, 42, 49]
        assert pitches[3:6] == [42, 42, 49]


class TestPercussion:
    """Test render_percussion_bar."""

    def test_snare_backbeat_and_complex_ghost(self) -> None:

        assert _starts(render_percussion_bar(Channel.SNARE, 0, Complexity.SIMPLE)) == [480, 1440]
        complex_notes = render_percussion_bar(Channel.SNARE, 0, Complexity.COMPLEX)
        assert _starts(complex_notes) == [480, 1440, 1800]
        assert complex_notes[-1].velocity == pytest.approx(0.4)

    def test_closed_hats_avoid_quarters_in_complex_mode(self) -> None:

        notes = render_percussion_bar(Channel.HH_CLOSED, 0, Complexity.COMPLEX)
        assert len(notes) == 12
        assert all(n.start_tick % 480 for n in notes)
        accents = [n for n in notes if n.velocity == pytest.approx(0.85)]
        assert _starts(accents) == [240, 720, 1200, 1680]

    def test_perc_loop_follows_session_mask(self) -> None:

        session = [1 if s in (1, 4, 9) else 0 for s in range(16)]
        notes = render_percussion_bar(Channel.PERC_LOOP, 0, Complexity.COMPLEX, session)
        # Step 4 is a quarter and belongs to the kick.
        assert _starts(notes) == [120, 1080]

    def test_perc_loop_without_mask_uses_fixed_pattern(self) -> None:

        notes = render_percussion_bar(Channel.PERC_LOOP, 0, Complexity.COMPLEX)
        assert _starts(notes) == [360, 840, 1320, 1800]

    def test_all_percussion_on_sixteenth_grid(self) -> None:

        for channel in (Channel.CLAP, Channel.HH_OPEN, Channel.PERC_TRIBAL):
            for complexity in Complexity:
                notes = render_percussion_bar(channel, 4, complexity)
                assert notes
                assert all(n.start_tick % 120 == 0 for n in notes)
                assert all(n.bar == 4 for n in notes)
