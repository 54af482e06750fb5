"""Tests for the composer: request resolution, generation and the QA loop."""
from __future__ import annotations

import random

import pytest

from grooveforge.config import settings
from grooveforge.core.arrangement import PhaseName
from grooveforge.core.channels import DRIVER_CHANNELS, LEAD_CHANNELS, Channel
from grooveforge.core.groove import Groove, NoteEvent
from grooveforge.core.tick_grid import TICKS_PER_BAR, bar_of, step_of
from grooveforge.models.requests import (
    BpmMode,
    EnergyMode,
    GenerateGrooveRequest,
    GenerationMode,
    StyleProfilePayload,
)
from grooveforge.services import composer
from grooveforge.services.composer import (
    bar_motif,
    build_story_map,
    channel_bars,
    compose_groove,
    generate_groove,
    generate_loop,
    resolve_bpm,
    resolve_complexity,
    resolve_motif,
    resolve_profile,
    thin_lead_bars,
)
from grooveforge.services.motif import Complexity, motif_from_ints, motif_to_ints, mutation_count
from grooveforge.services.qa import rules_for
from grooveforge.services.style_profile import StyleProfile, StyleProfileStore

SHORT = 1.5  # minutes; 56 bars at 145 BPM


def _request(**overrides) -> GenerateGrooveRequest:
    values = {"duration_minutes": SHORT, "seed": 7}
    values.update(overrides)
    return GenerateGrooveRequest(**values)


def _channel_dump(groove: Groove) -> dict[str, list[dict]]:
    data = groove.to_dict()
    return data["channels"]


class TestResolution:
    """Test request resolution helpers."""

    def test_genre_default_tempo_when_omitted(self) -> None:

        assert resolve_bpm(_request()) == 145.0

    def test_auto_overrides_requested_tempo(self) -> None:

        assert resolve_bpm(_request(bpm=150, bpm_mode=BpmMode.AUTO)) == 145.0

    def test_manual_keeps_requested_tempo(self) -> None:

        assert resolve_bpm(_request(bpm=150)) == 150.0

    def test_unknown_genre_falls_back_to_settings(self) -> None:

        assert resolve_bpm(_request(genre="Hardstyle")) == settings.default_bpm

    def test_energy_mode_sets_complexity(self) -> None:

        assert resolve_complexity(_request(energy_mode=EnergyMode.EARLY_WARMUP)) == Complexity.SIMPLE
        assert resolve_complexity(_request(energy_mode=EnergyMode.LATE_NIGHT)) == Complexity.COMPLEX
        override = _request(energy_mode=EnergyMode.EARLY_WARMUP, complexity=Complexity.COMPLEX)
        assert resolve_complexity(override) == Complexity.COMPLEX

    def test_new_mode_reuses_given_motif(self) -> None:

        motif = [0, -1, 2, -1] * 4
        resolved = resolve_motif(_request(motif=motif), None, random.Random(0))
        assert motif_to_ints(resolved) == motif

    def test_evolve_mutates_given_motif(self) -> None:

        motif = [0, 1, 2, 3] * 4
        for seed in range(20):
            resolved = motif_to_ints(resolve_motif(
                _request(motif=motif, mode=GenerationMode.EVOLVE), None, random.Random(seed),
            ))
            changed = sum(1 for a, b in zip(motif, resolved) if a != b)
            assert changed <= mutation_count(16)

    def test_evolve_without_motif_draws_one(self) -> None:

        resolved = resolve_motif(_request(mode=GenerationMode.EVOLVE), None, random.Random(0))
        assert len(resolved) == 16

    def test_inline_profile_wins_over_store(self) -> None:

        store = StyleProfileStore()
        payload = StyleProfilePayload(avg_lead_density=9.0, rhythm_mask16=[1.0] * 16)
        profile = resolve_profile(_request(style_profile=payload), store)
        assert profile is not None
        assert profile.avg_lead_density == 9.0
        assert profile.genre == "Full-On Psytrance"

    def test_store_profile_used_otherwise(self) -> None:

        assert resolve_profile(_request(), StyleProfileStore()) is None


class TestGenerateGroove:
    """Test generate_groove."""

    def test_channels_stay_inside_their_phases(self) -> None:

        generated = generate_groove(_request(), rng=random.Random(1))
        groove = generated.groove
        rules = rules_for(groove.genre)
        assert groove.plan is not None
        for channel in Channel:
            allowed = set(channel_bars(groove.plan, channel, rules))
            assert groove.active_bars(channel) <= allowed, channel

    def test_no_kick_in_breakdown(self) -> None:

        groove = generate_groove(_request(), rng=random.Random(1)).groove
        breakdown = groove.plan.phase(PhaseName.BREAKDOWN)
        assert not any(breakdown.contains(b) for b in groove.active_bars(Channel.KICK))

    def test_metadata(self) -> None:

        generated = generate_groove(_request(key="A", scale="Phrygian"), rng=random.Random(1))
        groove = generated.groove
        assert groove.total_bars == 56
        assert groove.bpm == 145.0
        assert groove.name == "Full-On Psytrance Session"
        assert groove.energy_mode == "Peak Time"
        assert len(generated.session_mask) == 16
        assert set(generated.session_mask) <= {0, 1}

    def test_requested_session_mask_is_used(self) -> None:

        mask = [1, 0] * 8
        generated = generate_groove(_request(session_mask=mask), rng=random.Random(2))
        assert generated.session_mask == mask

    def test_channel_subset(self) -> None:

        groove = generate_groove(_request(channels=[Channel.KICK, Channel.SUB]), rng=random.Random(3)).groove
        assert groove.notes(Channel.KICK)
        assert groove.notes(Channel.SUB)
        assert not groove.notes(Channel.LEAD_A)
        assert not groove.notes(Channel.PAD)

    def test_techno_peak_keeps_one_driver_and_no_pad(self) -> None:

        request = _request(genre="Techno (Peak Time)", bpm=132, duration_minutes=2)
        groove = generate_groove(request, rng=random.Random(4)).groove
        peak = groove.plan.phase(PhaseName.DROP_2)
        peak_bars = set(range(peak.start_bar, peak.end_bar))
        drivers = [c for c in DRIVER_CHANNELS if groove.active_bars(c) & peak_bars]
        assert drivers == [Channel.LEAD_A] or drivers == []
        assert not groove.active_bars(Channel.PAD) & peak_bars

    def test_masked_bass_slots_stay_louder(self) -> None:

        learned = tuple(1.0 if s % 4 == 2 else 0.0 for s in range(16))
        profile = StyleProfile(genre="Full-On Psytrance", rhythm_mask16=learned)
        request = _request(channels=[Channel.SUB], complexity=Complexity.COMPLEX, session_mask=[1, 0] * 8)
        groove = generate_groove(request, profile, rng=random.Random(6)).groove
        notes = groove.valid_notes(Channel.SUB)
        assert notes
        emphasized = [n.velocity for n in notes if step_of(n.start_tick) % 4 == 2]
        plain = [n.velocity for n in notes if step_of(n.start_tick) % 4 != 2]
        assert emphasized and plain
        assert emphasized == pytest.approx([1.0] * len(emphasized))
        assert plain == pytest.approx([0.85] * len(plain))

    def test_sparse_genre_leads_thinned(self) -> None:

        request = _request(genre="Melodic Techno", bpm=124, duration_minutes=2)
        groove = generate_groove(request, rng=random.Random(5)).groove
        for channel in LEAD_CHANNELS:
            per_bar: dict[int, int] = {}
            for note in groove.valid_notes(channel):
                per_bar[bar_of(note.start_tick)] = per_bar.get(bar_of(note.start_tick), 0) + 1
            assert all(count <= 4 for count in per_bar.values())


class TestBarMotif:
    """Test bar_motif."""

    MOTIF = motif_from_ints([0, 1, 2, 3] * 4)

    def test_simple_never_mutates(self) -> None:

        rng = random.Random(0)
        assert all(bar_motif(self.MOTIF, b, Complexity.SIMPLE, rng) is self.MOTIF for b in range(8))

    def test_complex_mutates_every_bar_after_the_first(self) -> None:

        rng = random.Random(0)
        assert bar_motif(self.MOTIF, 0, Complexity.COMPLEX, rng) is self.MOTIF
        assert all(bar_motif(self.MOTIF, b, Complexity.COMPLEX, rng) is not self.MOTIF for b in range(1, 9))

    def test_restatement_is_opt_in(self, monkeypatch: pytest.MonkeyPatch) -> None:

        rng = random.Random(0)
        assert bar_motif(self.MOTIF, 4, Complexity.COMPLEX, rng, restate_every=4) is self.MOTIF
        assert bar_motif(self.MOTIF, 5, Complexity.COMPLEX, rng, restate_every=4) is not self.MOTIF
        monkeypatch.setattr(composer, "RESTATE_EVERY_BARS", 2)
        assert bar_motif(self.MOTIF, 6, Complexity.COMPLEX, rng) is self.MOTIF


class TestThinLeads:
    """Test thin_lead_bars."""

    def test_quarters_kept_first(self) -> None:

        groove = Groove(bpm=124, key="C", scale="Minor", total_bars=1)
        groove.set_notes(Channel.LEAD_A, [NoteEvent(note="C4", start_tick=s * 120) for s in range(8)])
        dropped = thin_lead_bars(groove, 4)
        assert dropped == 4
        # Both quarters survive, then the earliest off-beats.
        assert [n.start_tick for n in groove.notes(Channel.LEAD_A)] == [0, 120, 240, 480]


class TestComposeGroove:
    """Test the generate, heal and score loop."""

    def test_full_on_groove_is_accepted(self) -> None:

        result = compose_groove(_request(), StyleProfileStore())
        assert result.accepted
        assert result.report.passed
        assert result.report.score > settings.qa_pass_threshold
        assert result.attempts == len(result.all_scores)
        assert result.groove.qa_report is result.report
        assert result.report.fixes == result.healing.fixes
        assert len(result.motif) == 16

    def test_healed_groove_respects_invariants(self) -> None:

        groove = compose_groove(_request(), StyleProfileStore()).groove
        for channel in Channel:
            notes = sorted(groove.valid_notes(channel), key=lambda n: n.start_tick)
            for cur, nxt in zip(notes, notes[1:]):
                assert cur.end_tick <= nxt.start_tick
            for note in notes:
                assert 0.0 <= note.velocity <= 1.0
                assert note.time is not None

    def test_same_seed_same_groove(self) -> None:

        first = compose_groove(_request(seed=11), StyleProfileStore())
        second = compose_groove(_request(seed=11), StyleProfileStore())
        assert _channel_dump(first.groove) == _channel_dump(second.groove)
        assert first.report.to_dict() == second.report.to_dict()

    def test_different_seeds_differ(self) -> None:

        first = compose_groove(_request(seed=1), StyleProfileStore())
        second = compose_groove(_request(seed=2), StyleProfileStore())
        assert _channel_dump(first.groove) != _channel_dump(second.groove)

    def test_best_attempt_returned_when_none_pass(self, monkeypatch: pytest.MonkeyPatch) -> None:

        monkeypatch.setattr(settings, "qa_pass_threshold", 100.0)
        result = compose_groove(_request(), StyleProfileStore(), max_attempts=2)
        assert not result.accepted
        assert result.attempts == 2
        assert len(result.all_scores) == 2
        assert result.report.score == max(result.all_scores)

    def test_attempt_budget_must_be_positive(self) -> None:

        with pytest.raises(ValueError):
            compose_groove(_request(), StyleProfileStore(), max_attempts=0)
        with pytest.raises(ValueError):
            compose_groove(_request(), StyleProfileStore(), max_attempts=-2)

    def test_channel_scope_limits_report(self) -> None:

        result = compose_groove(_request(channels=[Channel.KICK, Channel.SUB]), StyleProfileStore())
        assert set(result.report.channel_activity) == {Channel.KICK.value, Channel.SUB.value}


class TestGenerateLoop:
    """Test generate_loop."""

    def test_four_bars_on_sixty_fourth_grid(self) -> None:

        notes = generate_loop(Channel.LEAD_A, "F#", "Minor", rng=random.Random(0))
        assert notes
        assert all(n.start_tick % 30 == 0 for n in notes)
        assert all(0 <= n.start_tick < 4 * TICKS_PER_BAR for n in notes)

    def test_simple_loop_repeats_every_bar(self) -> None:

        motif = [0, -1, 2, -1, 4, -1, 2, -1, 0, -1, 5, -1, 2, -1, 1, -1]
        notes = generate_loop(Channel.ARP_A, "A", "Minor", Complexity.SIMPLE, motif=motif, rng=random.Random(0))
        by_bar: dict[int, list[tuple[int, str]]] = {}
        for n in notes:
            by_bar.setdefault(bar_of(n.start_tick), []).append((n.start_tick % TICKS_PER_BAR, n.note))
        assert len(by_bar) == 4
        assert by_bar[0] == by_bar[1] == by_bar[2] == by_bar[3]

    def test_kick_loop(self) -> None:

        notes = generate_loop(Channel.KICK, "C", "Minor", Complexity.SIMPLE, rng=random.Random(0))
        assert len(notes) == 16


class TestStoryMap:
    """Test build_story_map."""

    def test_segments(self) -> None:

        groove = Groove(bpm=145, key="C", scale="Minor", total_bars=10)
        groove.set_notes(
            Channel.KICK,
            [NoteEvent(note="C2", start_tick=b * TICKS_PER_BAR) for b in (0, 1, 2, 3, 6, 7)],
        )
        groove.set_notes(Channel.PAD, [NoteEvent(note="C3", start_tick=b * TICKS_PER_BAR) for b in (8, 9)])
        story = build_story_map(groove)
        by_id = {c["id"]: c["segments"] for c in story["channels"]}
        assert by_id[Channel.KICK.value] == [[0, 4], [6, 8]]
        assert by_id[Channel.PAD.value] == [[8, 10]]
        assert by_id[Channel.SNARE.value] == []
        assert story["totalBars"] == 10
        assert story["grooveId"] == groove.id
        assert len(story["channels"]) == 16
