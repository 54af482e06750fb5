"""
QA scorer: a pure, deterministic audit of a finished groove.

Six sub-scores, each floored at zero, add up to at most 100. The report also
carries the forensic lists (violations, conflicts, warnings) the caller shows
or gates on. A groove passes when its total beats the threshold and nothing
tripped a hard fail (missing kick or sub, or a channel more than 30%
out of scale).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from grooveforge.contracts.json_types import QAReportDict, SubScoresDict
from grooveforge.core.channels import (
    ALL_CHANNELS,
    DRIVER_CHANNELS,
    FOUNDATION_CHANNELS,
    LEAD_CHANNELS,
    MELODIC_CHANNELS,
    REQUIRED_FOUNDATION,
    Channel,
    parse_channel,
)
from grooveforge.core.arrangement import PEAK_PHASE
from grooveforge.core.groove import Groove
from grooveforge.services.qa import constants as C
from grooveforge.services.qa.helpers import (
    has_flat_velocity,
    has_micro_timing,
    notes_in_bars,
    notes_per_active_bar,
    out_of_scale_fraction,
)
from grooveforge.services.qa.rules import rules_for

logger = logging.getLogger(__name__)


@dataclass
class SubScores:
    structural: float = C.SUBSCORE_WEIGHTS["structural"]
    genre: float = C.SUBSCORE_WEIGHTS["genre"]
    low_end: float = C.SUBSCORE_WEIGHTS["low_end"]
    harmonic: float = C.SUBSCORE_WEIGHTS["harmonic"]
    density: float = C.SUBSCORE_WEIGHTS["density"]
    intelligence: float = C.SUBSCORE_WEIGHTS["intelligence"]

    def clamp(self) -> None:
        for name in C.SUBSCORE_WEIGHTS:
            setattr(self, name, max(0.0, getattr(self, name)))

    @property
    def total(self) -> float:
        return sum(getattr(self, name) for name in C.SUBSCORE_WEIGHTS)

    def to_dict(self) -> SubScoresDict:
        return {
            "structural": self.structural,
            "genre": self.genre,
            "lowEnd": self.low_end,
            "harmonic": self.harmonic,
            "density": self.density,
            "intelligence": self.intelligence,
        }


@dataclass
class QAReport:
    passed: bool
    score: float
    sub_scores: SubScores
    channel_activity: dict[str, int] = field(default_factory=dict)
    active_channels: list[str] = field(default_factory=list)
    empty_channels: list[str] = field(default_factory=list)
    genre_violations: list[str] = field(default_factory=list)
    harmonic_conflicts: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)
    hard_fail: bool = False

    def to_dict(self) -> QAReportDict:
        return {
            "passed": self.passed,
            "score": self.score,
            "subScores": self.sub_scores.to_dict(),
            "channelActivity": dict(self.channel_activity),
            "activeChannels": list(self.active_channels),
            "emptyChannels": list(self.empty_channels),
            "genreViolations": list(self.genre_violations),
            "harmonicConflicts": list(self.harmonic_conflicts),
            "warnings": list(self.warnings),
            "fixes": list(self.fixes),
        }


def _resolve_scope(channel_scope: Optional[Sequence[Any]]) -> list[Channel]:
    if channel_scope is None:
        return list(ALL_CHANNELS)
    scope: list[Channel] = []
    for raw in channel_scope:
        channel = parse_channel(raw)
        if channel not in scope:
            scope.append(channel)
    return scope


def score_groove(
    groove: Groove,
    channel_scope: Optional[Sequence[Any]] = None,
    pass_threshold: float = C.PASS_THRESHOLD,
) -> QAReport:
    """Score ``groove`` over ``channel_scope`` (all channels when omitted).

    Reads the groove only; calling it twice on the same input gives the
    same report.
    """
    scope = _resolve_scope(channel_scope)
    in_scope = set(scope)
    rules = rules_for(groove.genre)
    sub = SubScores()
    violations: list[str] = []
    conflicts: list[str] = []
    warnings: list[str] = []
    hard_fail = False

    activity = {ch.value: len(groove.active_bars(ch)) for ch in scope}
    active = [ch for ch in scope if activity[ch.value] > 0]
    empty = [ch for ch in scope if activity[ch.value] == 0]

    plan = groove.plan
    all_bars = set(range(groove.total_bars))
    if plan is not None:
        drop_bars = {b for p in plan.drops() for b in range(p.start_bar, p.end_bar)}
    else:
        drop_bars = all_bars

    # -- Structural ------------------------------------------------------------
    for channel in REQUIRED_FOUNDATION:
        if channel in in_scope and channel in empty:
            hard_fail = True
            warnings.append(f"Missing foundation channel {channel.value}")
            if channel == Channel.KICK:
                sub.structural = 0.0
            elif channel == Channel.SUB:
                sub.low_end = 0.0

    for channel in scope:
        if channel in FOUNDATION_CHANNELS and has_micro_timing(groove.valid_notes(channel)):
            sub.structural -= C.DRIFT_PENALTY
            warnings.append(f"Timing drift on foundation channel {channel.value}")

    kick_bars = groove.active_bars(Channel.KICK)
    if Channel.KICK in in_scope and kick_bars and plan is not None:
        missing = [p.name.value for p in plan.drops() if not any(p.contains(b) for b in kick_bars)]
        if missing:
            sub.structural -= C.DROP_WITHOUT_KICK_PENALTY
            violations.append(f"No kick in {', '.join(missing)}")

    # -- Genre / low end -------------------------------------------------------
    if Channel.KICK in in_scope and Channel.SUB in in_scope:
        drop_kick = kick_bars & drop_bars
        if drop_kick:
            covered = groove.active_bars(Channel.SUB) & drop_kick
            coverage = len(covered) / len(drop_kick)
            if rules.min_sub_coverage is not None and coverage < rules.min_sub_coverage:
                sub.genre -= C.COVERAGE_GENRE_PENALTY
                sub.low_end -= C.COVERAGE_LOW_END_PENALTY
                violations.append(
                    f"Sub covers {coverage:.0%} of drop kick bars (needs {rules.min_sub_coverage:.0%})"
                )
            elif coverage < C.WARN_SUB_COVERAGE:
                sub.low_end -= C.COVERAGE_LOW_END_PENALTY
                warnings.append(f"Sub covers only {coverage:.0%} of drop kick bars")

    leads_in_scope = [c for c in scope if c in LEAD_CHANNELS]
    if leads_in_scope and drop_bars:
        lead_events = sum(len(notes_in_bars(groove.valid_notes(c), drop_bars)) for c in leads_in_scope)
        per_bar = lead_events / len(drop_bars)
        if rules.max_lead_notes_per_bar is not None and per_bar > rules.max_lead_notes_per_bar:
            sub.genre -= C.LEAD_CEILING_PENALTY
            violations.append(
                f"Lead density {per_bar:.1f}/bar in drops exceeds {rules.max_lead_notes_per_bar:g}"
            )
        if rules.min_lead_notes_per_bar is not None and per_bar < rules.min_lead_notes_per_bar:
            sub.genre -= C.LEAD_FLOOR_PENALTY
            warnings.append(f"Lead density {per_bar:.1f}/bar in drops is below {rules.min_lead_notes_per_bar:g}")

    peak = next((p for p in plan.phases if p.name == PEAK_PHASE), None) if plan is not None else None
    if peak is not None:
        peak_bars = set(range(peak.start_bar, peak.end_bar))
        if rules.forbid_pad_in_peak and Channel.PAD in in_scope and groove.active_bars(Channel.PAD) & peak_bars:
            sub.genre -= C.PEAK_RULE_PENALTY
            violations.append("Pad is playing in the peak section")
        if rules.max_peak_drivers is not None:
            drivers = sorted(
                c.value for c in scope
                if c in DRIVER_CHANNELS and groove.active_bars(c) & peak_bars
            )
            if len(drivers) > rules.max_peak_drivers:
                sub.genre -= C.PEAK_RULE_PENALTY
                violations.append(f"{len(drivers)} melodic drivers in the peak: {', '.join(drivers)}")

    if rules.tempo_range is not None:
        lo, hi = rules.tempo_range
        if not lo <= groove.bpm <= hi:
            sub.genre -= C.TEMPO_PENALTY
            warnings.append(f"Tempo {groove.bpm:g} BPM outside {lo:g}-{hi:g} for {groove.genre}")

    # -- Harmonic --------------------------------------------------------------
    for channel in scope:
        if channel not in MELODIC_CHANNELS:
            continue
        notes = groove.valid_notes(channel)
        if not notes:
            continue
        fraction = out_of_scale_fraction(notes, groove.key, groove.scale)
        if fraction > C.DISSONANCE_CRITICAL:
            sub.harmonic = 0.0
            hard_fail = True
            conflicts.append(f"CRITICAL: {channel.value} {fraction:.0%} out of {groove.key} {groove.scale}")
        elif fraction > C.DISSONANCE_WARN:
            sub.harmonic -= C.DISSONANCE_PENALTY
            conflicts.append(f"{channel.value} {fraction:.0%} out of {groove.key} {groove.scale}")

    # -- Density ---------------------------------------------------------------
    if plan is not None:
        for phase in plan.phases:
            expected = rules.phase_channels(phase) & in_scope
            phase_range = range(phase.start_bar, phase.end_bar)
            missing = sorted(
                c.value for c in expected
                if c in active and not any(b in phase_range for b in groove.active_bars(c))
            )
            if missing:
                sub.density -= C.MISSING_PHASE_CHANNEL_PENALTY
                warnings.append(f"{phase.name.value} is missing {', '.join(missing)}")

    for channel in active:
        if notes_per_active_bar(groove.valid_notes(channel)) > C.OVERCROWDED_NOTES_PER_BAR:
            sub.density -= C.OVERCROWDED_PENALTY
            warnings.append(f"{channel.value} is overcrowded")

    if len(scope) >= C.MIN_ACTIVE_CHANNELS and len(active) < C.MIN_ACTIVE_CHANNELS:
        sub.density -= C.SPARSE_ARRANGEMENT_PENALTY
        warnings.append(f"Only {len(active)} channels carry notes")

    # -- Intelligence ----------------------------------------------------------
    melodic_notes = [n for c in scope if c in MELODIC_CHANNELS for n in groove.valid_notes(c)]
    if melodic_notes:
        if has_flat_velocity(melodic_notes):
            sub.intelligence -= C.FLAT_VELOCITY_PENALTY
            warnings.append("Melodic velocities are flat")
        if not has_micro_timing(melodic_notes):
            sub.intelligence -= C.NO_HUMANIZATION_PENALTY
            warnings.append("No micro-timing on melodic channels")

    sub.clamp()
    total = round(sub.total, 2)
    passed = total > pass_threshold and not hard_fail

    report = QAReport(
        passed=passed,
        score=total,
        sub_scores=sub,
        channel_activity=activity,
        active_channels=[c.value for c in active],
        empty_channels=[c.value for c in empty],
        genre_violations=violations,
        harmonic_conflicts=conflicts,
        warnings=warnings,
        hard_fail=hard_fail,
    )
    logger.debug(f"QA score {total} (passed={passed}, violations={len(violations)})")
    return report
