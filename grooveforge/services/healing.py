"""
Healing pass: ordered repair and enrichment of a finished groove.

Steps, always in this order:
  1. scale alignment      - off-scale melodic notes snap to the nearest scale tone
  2. spectral conflicts   - the lead ducks where the acid line speaks
  3. overlap repair       - same-channel notes never overlap
  4. humanization         - non-foundation notes get micro-timing and velocity jitter

Every step works on a per-channel copy and commits it only once the channel
is done. A malformed note is skipped and recorded; a channel that cannot be
processed keeps its previous notes. Nothing here raises for bad note data.
"""
from __future__ import annotations

import bisect
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from grooveforge.core.channels import (
    ALL_CHANNELS,
    FOUNDATION_CHANNELS,
    MELODIC_CHANNELS,
    Channel,
)
from grooveforge.core.groove import Groove, NoteEvent, clamp_velocity
from grooveforge.core.theory import nearest_in_scale
from grooveforge.core.tick_grid import is_on_quarter

logger = logging.getLogger(__name__)

# (dominant, ducked): the second channel yields to the first.
PRIORITY_PAIRS: tuple[tuple[Channel, Channel], ...] = ((Channel.ACID, Channel.LEAD_A),)
SPECTRAL_WINDOW_TICKS = 60
DUCK_FACTOR = 0.4

OVERLAP_GAP_TICKS = 2

HUMANIZE_TICK_RANGE: tuple[int, int] = (-4, 3)
HUMANIZE_VELOCITY_RANGE: tuple[float, float] = (0.92, 1.08)

_STEP_ERRORS = (ValueError, TypeError, KeyError, AttributeError)


class HealingStep(str, Enum):
    SCALE = "scale_alignment"
    SPECTRAL = "spectral_conflicts"
    OVERLAP = "overlap_repair"
    HUMANIZE = "humanization"


PIPELINE: tuple[HealingStep, ...] = (
    HealingStep.SCALE, HealingStep.SPECTRAL, HealingStep.OVERLAP, HealingStep.HUMANIZE,
)
# Re-healing only re-runs the corrective steps; ducking and jitter are not idempotent.
CORRECTIVE_STEPS: tuple[HealingStep, ...] = (HealingStep.SCALE, HealingStep.OVERLAP)


@dataclass
class HealingReport:
    """What the pass changed and what it had to leave alone."""
    scale_fixes: int = 0
    ducked_notes: int = 0
    overlap_fixes: int = 0
    humanized_notes: int = 0
    skipped: list[str] = field(default_factory=list)
    failed_channels: list[str] = field(default_factory=list)

    @property
    def fixes(self) -> list[str]:
        out: list[str] = []
        if self.scale_fixes:
            out.append(f"Scale alignment: {self.scale_fixes} notes snapped to scale")
        if self.ducked_notes:
            out.append(f"Spectral: {self.ducked_notes} lead notes ducked under acid")
        if self.overlap_fixes:
            out.append(f"Overlap repair: {self.overlap_fixes} notes shortened or merged")
        if self.humanized_notes:
            out.append(f"Humanization: {self.humanized_notes} notes given micro-timing")
        return out

    def skip(self, message: str) -> None:
        logger.warning(f"Healing skipped: {message}")
        self.skipped.append(message)

    def fail_channel(self, step: HealingStep, channel: Channel, error: Exception) -> None:
        message = f"{step.value} left {channel.value} unchanged ({error})"
        logger.warning(f"Healing step failed: {message}")
        self.failed_channels.append(message)

    def absorb(self, other: HealingReport) -> None:
        """Fold a later pass over the same groove into this report."""
        self.scale_fixes += other.scale_fixes
        self.ducked_notes += other.ducked_notes
        self.overlap_fixes += other.overlap_fixes
        self.humanized_notes += other.humanized_notes
        self.skipped.extend(other.skipped)
        self.failed_channels.extend(other.failed_channels)


def _copy_notes(notes: Iterable[NoteEvent]) -> list[NoteEvent]:
    return [n.copy() for n in notes]


def _split_valid(notes: list[NoteEvent]) -> tuple[list[NoteEvent], list[NoteEvent]]:
    valid = [n for n in notes if n.is_valid]
    invalid = [n for n in notes if not n.is_valid]
    return valid, invalid


def _dedupe(names: list[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


# -----------------------------------------------------------------------------
# 1. Scale alignment
# -----------------------------------------------------------------------------

def align_channel_to_scale(
    notes: list[NoteEvent], key: str, scale: str, report: HealingReport, channel: Channel,
) -> list[NoteEvent]:
    working = _copy_notes(notes)
    for note in working:
        if not note.is_valid:
            report.skip(f"{channel.value}: note without start tick left unaligned")
            continue
        try:
            aligned = [nearest_in_scale(p, key, scale) for p in note.pitches]
        except ValueError as e:
            report.skip(f"{channel.value} @ {note.time}: {e}")
            continue
        if aligned == note.pitches:
            continue
        report.scale_fixes += sum(1 for a, b in zip(aligned, note.pitches) if a != b)
        if note.is_chord:
            note.note = _dedupe(aligned)
        else:
            note.note = aligned[0]
    return working


# -----------------------------------------------------------------------------
# 2. Spectral conflict resolution
# -----------------------------------------------------------------------------

def duck_conflicts(
    dominant: list[NoteEvent],
    ducked: list[NoteEvent],
    report: HealingReport,
    window: int = SPECTRAL_WINDOW_TICKS,
    factor: float = DUCK_FACTOR,
) -> list[NoteEvent]:
    """Attenuate every ``ducked`` note that starts less than ``window`` ticks from a ``dominant`` one."""
    starts = sorted(n.start_tick for n in dominant if n.is_valid)  # type: ignore[misc]
    working = _copy_notes(ducked)
    if not starts:
        return working
    for note in working:
        if not note.is_valid:
            continue
        tick = note.start_tick
        i = bisect.bisect_right(starts, tick - window)  # type: ignore[operator]
        if i < len(starts) and starts[i] < tick + window:  # type: ignore[operator]
            note.velocity = clamp_velocity(note.velocity * factor)
            report.ducked_notes += 1
    return working


# -----------------------------------------------------------------------------
# 3. Overlap repair
# -----------------------------------------------------------------------------

def _merge_same_start(notes: list[NoteEvent]) -> tuple[list[NoteEvent], int]:
    merged: list[NoteEvent] = []
    merges = 0
    for note in notes:
        if merged and merged[-1].start_tick == note.start_tick:
            head = merged[-1]
            head.note = _dedupe(head.pitches + note.pitches)
            head.duration_ticks = max(head.duration_ticks, note.duration_ticks)
            head.velocity = max(head.velocity, note.velocity)
            merges += 1
        else:
            merged.append(note)
    return merged, merges


def repair_overlaps(notes: list[NoteEvent], gap: int = OVERLAP_GAP_TICKS) -> tuple[list[NoteEvent], int]:
    """Return a non-overlapping copy of one channel's notes and the number of fixes.

    Notes sharing a start tick become one chord event. A note running past
    the next start is cut to ``next_start - gap`` (or to ``next_start`` when
    the notes are closer than ``gap``). Micro-timing offsets are honoured:
    the cut holds both on the grid and where the notes actually sound.
    Malformed notes are carried through untouched at the end.
    """
    working = _copy_notes(notes)
    valid, invalid = _split_valid(working)
    valid.sort(key=lambda n: n.start_tick)  # type: ignore[arg-type, return-value]
    valid, fixes = _merge_same_start(valid)

    # Offsets must not swap the order two notes sound in.
    for _ in range(len(valid)):
        swapped = False
        for cur, nxt in zip(valid, valid[1:]):
            if cur.effective_tick >= nxt.effective_tick and (cur.tick_offset or nxt.tick_offset):
                cur.tick_offset = 0
                nxt.tick_offset = 0
                swapped = True
        if not swapped:
            break

    for cur, nxt in zip(valid, valid[1:]):
        limit = min(
            nxt.start_tick - cur.start_tick,  # type: ignore[operator]
            nxt.effective_tick - cur.effective_tick,
        )
        if cur.duration_ticks > limit:
            cur.duration_ticks = limit - gap if limit - gap > 0 else limit
            fixes += 1
    return valid + invalid, fixes


# -----------------------------------------------------------------------------
# 4. Humanization
# -----------------------------------------------------------------------------

def humanize_notes(notes: list[NoteEvent], rng: random.Random, report: HealingReport) -> list[NoteEvent]:
    """Jitter every off-quarter note's timing and velocity (quarter hits stay anchored)."""
    working = _copy_notes(notes)
    lo, hi = HUMANIZE_TICK_RANGE
    vlo, vhi = HUMANIZE_VELOCITY_RANGE
    for note in working:
        if not note.is_valid or is_on_quarter(note.start_tick):  # type: ignore[arg-type]
            continue
        note.tick_offset += rng.randint(lo, hi)
        note.velocity = clamp_velocity(note.velocity * rng.uniform(vlo, vhi))
        report.humanized_notes += 1
    return working


# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------

def _run_per_channel(
    groove: Groove,
    channels: Sequence[Channel],
    step: HealingStep,
    report: HealingReport,
    transform: Callable[[Channel, list[NoteEvent]], list[NoteEvent]],
) -> None:
    for channel in channels:
        try:
            healed = transform(channel, groove.notes(channel))
        except _STEP_ERRORS as e:
            report.fail_channel(step, channel, e)
            continue
        groove.channels[channel] = healed


def heal_groove(
    groove: Groove,
    channels: Optional[Sequence[Channel]] = None,
    *,
    rng: Optional[random.Random] = None,
    steps: Sequence[HealingStep] = PIPELINE,
) -> HealingReport:
    """Run the healing pipeline over ``groove`` in place.

    ``channels`` scopes the pass (default: all sixteen). ``steps`` selects
    a subset of the pipeline; the order is always the pipeline order.
    """
    rng = rng or random.Random()
    scope = list(channels) if channels is not None else list(ALL_CHANNELS)
    report = HealingReport()

    for step in PIPELINE:
        if step not in steps:
            continue

        if step == HealingStep.SCALE:
            melodic = [c for c in scope if c in MELODIC_CHANNELS]
            _run_per_channel(
                groove, melodic, step, report,
                lambda ch, notes: align_channel_to_scale(notes, groove.key, groove.scale, report, ch),
            )

        elif step == HealingStep.SPECTRAL:
            for dominant, ducked in PRIORITY_PAIRS:
                if dominant not in scope or ducked not in scope:
                    continue
                _run_per_channel(
                    groove, [ducked], step, report,
                    lambda ch, notes, dom=dominant: duck_conflicts(groove.notes(dom), notes, report),
                )

        elif step == HealingStep.OVERLAP:
            def _overlap(ch: Channel, notes: list[NoteEvent]) -> list[NoteEvent]:
                healed, fixes = repair_overlaps(notes)
                report.overlap_fixes += fixes
                return healed

            _run_per_channel(groove, scope, step, report, _overlap)

        elif step == HealingStep.HUMANIZE:
            def _humanize(ch: Channel, notes: list[NoteEvent]) -> list[NoteEvent]:
                healed, fixes = repair_overlaps(humanize_notes(notes, rng, report))
                report.overlap_fixes += fixes
                return healed

            loose = [c for c in scope if c not in FOUNDATION_CHANNELS]
            _run_per_channel(groove, loose, step, report, _humanize)

    logger.info(
        f"Healing complete: {report.scale_fixes} scale, {report.ducked_notes} ducked, "
        f"{report.overlap_fixes} overlap, {report.humanized_notes} humanized, "
        f"{len(report.skipped)} skipped"
    )
    return report
