"""Tests for the QA scorer and genre rules."""
from __future__ import annotations

from grooveforge.core.arrangement import PhaseName, build_plan
from grooveforge.core.channels import Channel
from grooveforge.core.groove import Groove, NoteEvent
from grooveforge.services.qa import rules_for, score_groove


def _plan(bpm: float = 145):
    # 48 bars: intro 0-8, build 8-16, drop1 16-24, breakdown 24-32, drop2 32-40, outro 40-48
    return build_plan(bpm, {name: 8 for name in PhaseName})


def _groove(genre: str = "Full-On Psytrance", bpm: float = 145, key: str = "C", scale: str = "Major") -> Groove:
    plan = _plan(bpm)
    return Groove(bpm=bpm, key=key, scale=scale, total_bars=plan.total_bars, genre=genre, plan=plan)


def _fill(
    groove: Groove,
    channel: Channel,
    bars: range,
    steps: tuple[int, ...] = (0, 4, 8, 12),
    note: str = "C2",
    velocity: float = 0.9,
) -> None:
    notes = [
        NoteEvent(note=note, start_tick=bar * 1920 + s * 120, velocity=velocity)
        for bar in bars
        for s in steps
    ]
    groove.set_notes(channel, groove.notes(channel) + notes)


class TestFoundation:
    """Test structural scoring."""

    def test_empty_kick_is_a_hard_fail(self) -> None:

        groove = _groove()
        report = score_groove(groove)
        assert report.sub_scores.structural == 0.0
        assert report.hard_fail
        assert not report.passed
        assert "Missing foundation channel ch1_kick" in report.warnings
        assert Channel.KICK.value in report.empty_channels

    def test_missing_sub_zeroes_low_end(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        report = score_groove(groove)
        assert report.sub_scores.low_end == 0.0
        assert report.hard_fail

    def test_scope_excludes_unrequested_channels(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        report = score_groove(groove, channel_scope=["ch1_kick"])
        assert not report.hard_fail
        assert report.empty_channels == []
        assert list(report.channel_activity) == ["ch1_kick"]

    def test_drops_without_kick(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(0, 8))
        report = score_groove(groove, channel_scope=[Channel.KICK])
        assert "No kick in DROP_1, DROP_2" in report.genre_violations
        assert report.sub_scores.structural == 10.0

    def test_foundation_drift_penalized(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        groove.notes(Channel.KICK)[3].tick_offset = 2
        report = score_groove(groove, channel_scope=[Channel.KICK])
        assert report.sub_scores.structural == 19.0
        assert "Timing drift on foundation channel ch1_kick" in report.warnings


class TestLowEnd:
    """Test sub coverage of the drop kick."""

    def test_full_on_needs_sub_under_drop_kicks(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(16, 40))
        _fill(groove, Channel.SUB, range(16, 24), steps=(2, 6, 10, 14), note="C1")
        report = score_groove(groove, channel_scope=[Channel.KICK, Channel.SUB])
        assert any(v.startswith("Sub covers 50%") for v in report.genre_violations)
        assert report.sub_scores.genre == 15.0
        assert report.sub_scores.low_end == 15.0

    def test_generic_genre_only_warns(self) -> None:

        groove = _groove(genre="Goa Trance", bpm=140)
        _fill(groove, Channel.KICK, range(16, 40))
        _fill(groove, Channel.SUB, range(16, 24), steps=(2, 6, 10, 14), note="C1")
        report = score_groove(groove, channel_scope=[Channel.KICK, Channel.SUB])
        assert report.genre_violations == []
        assert report.sub_scores.low_end == 15.0


class TestHarmonic:
    """Test scale conformance scoring."""

    def test_mostly_off_scale_channel_fails_outright(self) -> None:

        groove = _groove()
        lead = [NoteEvent(note=n, start_tick=i * 240) for i, n in enumerate(["C#4", "D#4", "F#4", "G#4"])]
        groove.set_notes(Channel.LEAD_A, lead)
        report = score_groove(groove, channel_scope=[Channel.LEAD_A])
        assert report.sub_scores.harmonic == 0.0
        assert report.hard_fail
        assert not report.passed
        assert report.harmonic_conflicts[0].startswith("CRITICAL: ch4_leadA")

    def test_small_share_off_scale_is_penalized(self) -> None:

        groove = _groove()
        lead = [NoteEvent(note=n, start_tick=i * 240) for i, n in enumerate(["C4", "D4", "E4", "G4", "C#4"])]
        groove.set_notes(Channel.LEAD_A, lead)
        report = score_groove(groove, channel_scope=[Channel.LEAD_A])
        assert report.sub_scores.harmonic == 10.0
        assert not report.hard_fail

    def test_drums_never_count_as_dissonant(self) -> None:

        groove = _groove()
        _fill(groove, Channel.CLAP, range(4), steps=(4, 12), note="D#2")
        report = score_groove(groove, channel_scope=[Channel.CLAP])
        assert report.harmonic_conflicts == []


class TestGenreRules:
    """Test the Techno (Peak Time) and lead-density rules."""

    def test_pad_in_techno_peak(self) -> None:

        groove = _groove(genre="Techno (Peak Time)", bpm=132)
        _fill(groove, Channel.PAD, range(32, 40), steps=(0,), note="C3")
        report = score_groove(groove, channel_scope=[Channel.PAD])
        assert "Pad is playing in the peak section" in report.genre_violations

    def test_pad_outside_peak_is_fine(self) -> None:

        groove = _groove(genre="Techno (Peak Time)", bpm=132)
        _fill(groove, Channel.PAD, range(24, 32), steps=(0,), note="C3")
        report = score_groove(groove, channel_scope=[Channel.PAD])
        assert report.genre_violations == []

    def test_one_driver_in_techno_peak(self) -> None:

        groove = _groove(genre="Techno (Peak Time)", bpm=132)
        _fill(groove, Channel.LEAD_A, range(32, 40), steps=(2,), note="C4")
        _fill(groove, Channel.ACID, range(32, 40), steps=(6,), note="C3")
        report = score_groove(groove, channel_scope=[Channel.LEAD_A, Channel.ACID])
        assert "2 melodic drivers in the peak: ch14_acid, ch4_leadA" in report.genre_violations

    def test_sparse_genre_lead_ceiling(self) -> None:

        groove = _groove(genre="Melodic Techno", bpm=124)
        _fill(groove, Channel.LEAD_A, range(16, 24), steps=tuple(range(0, 16, 2)), note="C4")
        _fill(groove, Channel.LEAD_A, range(32, 40), steps=tuple(range(0, 16, 2)), note="C4")
        report = score_groove(groove, channel_scope=[Channel.LEAD_A])
        assert any(v.startswith("Lead density 8.0/bar") for v in report.genre_violations)

    def test_tempo_outside_window_warns(self) -> None:

        groove = _groove(bpm=128)
        report = score_groove(groove, channel_scope=[Channel.HH_OPEN])
        assert report.sub_scores.genre == 23.0
        assert any(w.startswith("Tempo 128 BPM outside") for w in report.warnings)

    def test_techno_peak_allow_list_keeps_one_driver(self) -> None:

        plan = build_plan(132)
        peak = plan.phase(PhaseName.DROP_2)
        allowed = rules_for("Techno (Peak Time)").phase_channels(peak)
        drivers = {Channel.LEAD_A, Channel.ACID, Channel.ARP_A, Channel.ARP_B}
        assert allowed & drivers == {Channel.LEAD_A}
        assert Channel.KICK in allowed

    def test_other_phases_unrestricted(self) -> None:

        plan = build_plan(132)
        intro = plan.phase(PhaseName.INTRO)
        assert rules_for("Techno (Peak Time)").phase_channels(intro) == intro.channels
        assert rules_for("Unknown").phase_channels(plan.phase(PhaseName.DROP_2)) == plan.phase(PhaseName.DROP_2).channels


class TestDensityAndIntelligence:
    """Test density and musical-intelligence scoring."""

    def test_channel_missing_from_expected_phase(self) -> None:

        groove = _groove()
        _fill(groove, Channel.PAD, range(0, 8), steps=(0,), note="C3")
        report = score_groove(groove, channel_scope=[Channel.PAD])
        assert any(w.startswith("BUILD is missing ch15_pad") for w in report.warnings)

    def test_overcrowded_channel(self) -> None:

        groove = _groove()
        notes = [NoteEvent(note="C2", start_tick=i * 20, duration_ticks=10) for i in range(96)]
        groove.set_notes(Channel.HH_CLOSED, notes)
        report = score_groove(groove, channel_scope=[Channel.HH_CLOSED])
        assert "ch12_hhClosed is overcrowded" in report.warnings

    def test_flat_and_rigid_melody(self) -> None:

        groove = _groove()
        _fill(groove, Channel.LEAD_A, range(16, 24), steps=(2, 6), note="C4", velocity=0.8)
        report = score_groove(groove, channel_scope=[Channel.LEAD_A])
        assert report.sub_scores.intelligence == 0.0

    def test_varied_and_humanized_melody(self) -> None:

        groove = _groove()
        _fill(groove, Channel.LEAD_A, range(16, 24), steps=(2,), note="C4", velocity=0.8)
        _fill(groove, Channel.LEAD_A, range(16, 24), steps=(6,), note="E4", velocity=0.6)
        groove.notes(Channel.LEAD_A)[0].tick_offset = -2
        report = score_groove(groove, channel_scope=[Channel.LEAD_A])
        assert report.sub_scores.intelligence == 10.0

    def test_sparse_arrangement(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        report = score_groove(groove, channel_scope=[Channel.KICK, Channel.SNARE, Channel.CLAP])
        assert "Only 1 channels carry notes" in report.warnings


class TestReport:
    """Test report shape and determinism."""

    def test_scoring_is_deterministic(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        _fill(groove, Channel.SUB, range(48), steps=(2, 6, 10, 14), note="C1")
        assert score_groove(groove).to_dict() == score_groove(groove).to_dict()

    def test_sub_scores_bounded(self) -> None:

        groove = _groove()
        report = score_groove(groove)
        subs = report.sub_scores.to_dict()
        assert all(v >= 0 for v in subs.values())
        assert report.score == round(sum(subs.values()), 2)
        assert 0 <= report.score <= 100

    def test_threshold_is_strict(self) -> None:

        groove = _groove()
        _fill(groove, Channel.KICK, range(48))
        _fill(groove, Channel.SUB, range(48), steps=(2, 6, 10, 14), note="C1")
        report = score_groove(groove)
        assert not report.hard_fail
        assert not score_groove(groove, pass_threshold=report.score).passed
        assert score_groove(groove, pass_threshold=report.score - 0.01).passed

    def test_camel_case_keys(self) -> None:

        data = score_groove(_groove()).to_dict()
        assert set(data) >= {"passed", "score", "subScores", "channelActivity", "genreViolations"}
        assert "lowEnd" in data["subScores"]
