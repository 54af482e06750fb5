"""
Foundation rhythm generator: kick, bass and percussion.

Unlike the melodic roles these never go through a motif. They lock to a hard
grid and pick, once per arrangement run, a named pattern (a kick archetype,
a bass interval pattern). Two optional masks bias them:

- the learned rhythm mask of the genre's style profile
- the per-session coherence mask, a 16-slot 0/1 array shared by every channel
  generated in the same pass

Both only raise velocity on emphasized slots; neither moves a note. That is
what makes separately generated channels lock together.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from grooveforge.core.channels import DRUM_NOTES, Channel
from grooveforge.core.groove import NoteEvent
from grooveforge.core.theory import name_from_pitch
from grooveforge.core.tick_grid import (
    BEATS_PER_BAR,
    STEPS_PER_BAR,
    STEPS_PER_BEAT,
    TICKS_PER_QUARTER,
    TICKS_PER_SIXTEENTH,
    step_tick,
)
from grooveforge.services.motif import Complexity
from grooveforge.services.style_profile import StyleProfile

logger = logging.getLogger(__name__)

# Bass density (notes/bar) above which the kick goes for the peak archetype.
PEAK_DENSITY_THRESHOLD = 12.0
LEARNED_MASK_THRESHOLD = 0.6
SESSION_MASK_THRESHOLD = 0.5
LEARNED_VELOCITY_BOOST = 0.15
SESSION_VELOCITY_BOOST = 0.05

KICK_VELOCITY = 1.0
KICK_DURATION = 120
BASS_DURATION = 100


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mask_value(mask: Optional[Sequence[float]], slot: int) -> float:
    if not mask:
        return 0.0
    return float(mask[slot % len(mask)])


# -----------------------------------------------------------------------------
# Kick archetypes
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class KickArchetype:
    """
    Extra hits layered on top of the four-on-the-floor pulse.

    Attributes:
        name: Archetype identifier.
        beats: Beats (0-3) after which an extra hit lands.
        offset_ticks: Distance of the extra hit after its beat.
        velocity: Base velocity of the extra hit.
        duration_ticks: Length of the extra hit.
        odd_bars_only: Only add the extra hit on odd-numbered bars.
    """
    name: str
    beats: tuple[int, ...]
    offset_ticks: int
    velocity: float
    duration_ticks: int
    odd_bars_only: bool = False


DOUBLE_SHOT = KickArchetype(
    name="DOUBLE_SHOT", beats=(3,), offset_ticks=240, velocity=0.7, duration_ticks=80,
)

GHOST_GROOVE = KickArchetype(
    name="GHOST_GROOVE", beats=(1, 3), offset_ticks=240, velocity=0.35, duration_ticks=60,
)

PEAK_TECHNO = KickArchetype(
    name="PEAK_TECHNO", beats=(3,), offset_ticks=360, velocity=0.6, duration_ticks=100,
    odd_bars_only=True,
)

KICK_ARCHETYPES: dict[str, KickArchetype] = {
    a.name: a for a in (DOUBLE_SHOT, GHOST_GROOVE, PEAK_TECHNO)
}


def select_kick_archetype(
    profile: Optional[StyleProfile] = None,
    rng: Optional[random.Random] = None,
    threshold: float = PEAK_DENSITY_THRESHOLD,
) -> KickArchetype:
    """Pick the archetype for one arrangement run."""
    if profile is not None and profile.avg_bass_density > threshold:
        return PEAK_TECHNO
    rng = rng or random.Random()
    return rng.choice(list(KICK_ARCHETYPES.values()))


def render_kick_bar(
    bar_index: int,
    complexity: Complexity = Complexity.SIMPLE,
    archetype: Optional[KickArchetype] = None,
    profile: Optional[StyleProfile] = None,
    session_mask: Optional[Sequence[int]] = None,
) -> list[NoteEvent]:
    """Four-on-the-floor, plus the archetype's extra hits in complex mode."""
    note = DRUM_NOTES[Channel.KICK]
    notes = [
        NoteEvent(note=note, start_tick=step_tick(bar_index, beat * STEPS_PER_BEAT),
                  duration_ticks=KICK_DURATION, velocity=KICK_VELOCITY)
        for beat in range(BEATS_PER_BAR)
    ]
    if complexity == Complexity.SIMPLE or archetype is None:
        return notes
    if archetype.odd_bars_only and bar_index % 2 == 0:
        return notes

    learned = profile.rhythm_mask16 if profile is not None and profile.has_rhythm else None
    for beat in archetype.beats:
        start = step_tick(bar_index, beat * STEPS_PER_BEAT) + archetype.offset_ticks
        slot = (beat * TICKS_PER_QUARTER + archetype.offset_ticks) // TICKS_PER_SIXTEENTH
        velocity = archetype.velocity
        if _mask_value(learned, slot) > LEARNED_MASK_THRESHOLD:
            velocity += LEARNED_VELOCITY_BOOST
        if _mask_value(session_mask, slot) > SESSION_MASK_THRESHOLD:
            velocity += SESSION_VELOCITY_BOOST
        notes.append(NoteEvent(
            note=note, start_tick=start,
            duration_ticks=archetype.duration_ticks, velocity=_clamp(velocity),
        ))
    notes.sort(key=lambda n: n.start_tick or 0)
    return notes


# -----------------------------------------------------------------------------
# Bass patterns
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BassPattern:
    """Sixteenth-note slots (fractional allowed) the bass hits within each beat."""
    name: str
    slots: tuple[float, ...] = field(default_factory=tuple)


ROLLING = BassPattern("ROLLING", (1, 2, 3))
OFFBEAT = BassPattern("OFFBEAT", (2, 3))
SYNCOPATED = BassPattern("SYNCOPATED", (1.5, 2.5, 3.5))
GALLOPING = BassPattern("GALLOPING", (1, 1.5, 2, 3))

BASS_PATTERNS: dict[str, BassPattern] = {
    p.name: p for p in (ROLLING, OFFBEAT, SYNCOPATED, GALLOPING)
}

SIMPLE_BASS_VELOCITY = 0.9
COMPLEX_BASS_VELOCITY = 0.85
# Scale degree the mid bass lands on for the last hit of each beat.
MID_BASS_ANSWER_DEGREE = 4


def select_bass_pattern(rng: Optional[random.Random] = None) -> BassPattern:
    rng = rng or random.Random()
    return rng.choice(list(BASS_PATTERNS.values()))


def render_bass_bar(
    bar_index: int,
    root_pitch: int,
    complexity: Complexity = Complexity.SIMPLE,
    pattern: Optional[BassPattern] = None,
    profile: Optional[StyleProfile] = None,
    session_mask: Optional[Sequence[int]] = None,
    answer_interval: Optional[int] = None,
) -> list[NoteEvent]:
    """One bar of rolling bass under the kick.

    ``answer_interval`` (semitones above the root) replaces the pitch of the
    last hit in each beat; the mid bass uses it to answer with the fifth.
    """
    if complexity == Complexity.SIMPLE or pattern is None:
        slots, base_velocity, use_masks = ROLLING.slots, SIMPLE_BASS_VELOCITY, False
    else:
        slots, base_velocity, use_masks = pattern.slots, COMPLEX_BASS_VELOCITY, True

    learned = profile.rhythm_mask16 if profile is not None and profile.has_rhythm else None
    notes: list[NoteEvent] = []
    for beat in range(BEATS_PER_BAR):
        for i, slot in enumerate(slots):
            start = step_tick(bar_index, beat * STEPS_PER_BEAT) + int(slot * TICKS_PER_SIXTEENTH)
            mask_index = (beat * STEPS_PER_BEAT + int(slot)) % STEPS_PER_BAR
            velocity = base_velocity
            if use_masks:
                if _mask_value(learned, mask_index) > LEARNED_MASK_THRESHOLD:
                    velocity += LEARNED_VELOCITY_BOOST
                if _mask_value(session_mask, mask_index) > SESSION_MASK_THRESHOLD:
                    velocity += SESSION_VELOCITY_BOOST
            pitch = root_pitch
            if answer_interval is not None and i == len(slots) - 1:
                pitch = root_pitch + answer_interval
            notes.append(NoteEvent(
                note=name_from_pitch(pitch), start_tick=start,
                duration_ticks=BASS_DURATION, velocity=_clamp(velocity),
            ))
    return notes


# -----------------------------------------------------------------------------
# Percussion
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class PercussionPattern:
    """
    Steps and velocities for one percussion channel.

    Attributes:
        simple_steps: Steps hit in simple mode.
        complex_steps: Steps hit in complex mode.
        velocity: Base velocity.
        duration_ticks: Hit length.
        accent_steps: Steps that get ``accent_velocity`` instead.
        accent_velocity: Velocity on accent steps.
        follows_session_mask: Complex mode hits session-mask slots instead of ``complex_steps``.
    """
    simple_steps: tuple[int, ...]
    complex_steps: tuple[int, ...]
    velocity: float
    duration_ticks: int = TICKS_PER_SIXTEENTH
    accent_steps: tuple[int, ...] = ()
    accent_velocity: float = 1.0
    follows_session_mask: bool = False


_OFFBEAT_8THS = (2, 6, 10, 14)
_BACKBEAT = (4, 12)

PERCUSSION_PATTERNS: dict[Channel, PercussionPattern] = {
    Channel.SNARE: PercussionPattern(
        simple_steps=_BACKBEAT, complex_steps=_BACKBEAT + (15,), velocity=0.9,
        accent_steps=(15,), accent_velocity=0.4,
    ),
    Channel.CLAP: PercussionPattern(
        simple_steps=_BACKBEAT, complex_steps=_BACKBEAT, velocity=0.85,
    ),
    Channel.HH_CLOSED: PercussionPattern(
        simple_steps=_OFFBEAT_8THS,
        complex_steps=tuple(s for s in range(STEPS_PER_BAR) if s % STEPS_PER_BEAT),
        velocity=0.55, duration_ticks=60,
        accent_steps=_OFFBEAT_8THS, accent_velocity=0.85,
    ),
    Channel.HH_OPEN: PercussionPattern(
        simple_steps=_OFFBEAT_8THS, complex_steps=_OFFBEAT_8THS, velocity=0.7, duration_ticks=200,
    ),
    Channel.PERC_LOOP: PercussionPattern(
        simple_steps=(3, 7, 11, 15), complex_steps=(3, 7, 11, 15), velocity=0.6,
        follows_session_mask=True,
    ),
    Channel.PERC_TRIBAL: PercussionPattern(
        simple_steps=(6, 14), complex_steps=(3, 6, 10, 13), velocity=0.65,
    ),
}

PERCUSSION_CHANNELS: frozenset[Channel] = frozenset(PERCUSSION_PATTERNS)


def render_percussion_bar(
    channel: Channel,
    bar_index: int,
    complexity: Complexity = Complexity.SIMPLE,
    session_mask: Optional[Sequence[int]] = None,
) -> list[NoteEvent]:
    """Deterministic percussion bar; the session mask decides the loop and lifts hats."""
    pattern = PERCUSSION_PATTERNS[channel]
    complex_mode = complexity == Complexity.COMPLEX

    if not complex_mode:
        steps = pattern.simple_steps
    elif pattern.follows_session_mask and session_mask and any(session_mask):
        # Quarter steps belong to the kick.
        steps = tuple(
            s for s in range(STEPS_PER_BAR)
            if s % STEPS_PER_BEAT and _mask_value(session_mask, s) > SESSION_MASK_THRESHOLD
        )
    else:
        steps = pattern.complex_steps

    note = DRUM_NOTES[channel]
    notes: list[NoteEvent] = []
    for step in steps:
        velocity = pattern.accent_velocity if step in pattern.accent_steps else pattern.velocity
        if complex_mode and _mask_value(session_mask, step) > SESSION_MASK_THRESHOLD:
            velocity += SESSION_VELOCITY_BOOST
        notes.append(NoteEvent(
            note=note, start_tick=step_tick(bar_index, step),
            duration_ticks=pattern.duration_ticks, velocity=_clamp(velocity),
        ))
    return notes
