"""
Motif & bar generator for the melodic roles (leads, arps, acid, pad, fx).

A motif is a 16-step pattern of scale-degree indices or rests. It is drawn
once, then nudged bar to bar by ``mutate_motif`` so the line evolves without
losing its contour. ``render_bar`` turns a motif into the note events of one
bar for a given role.

The probability constants below were tuned by ear; they are module-level so
callers can override them per call rather than edit them here.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from grooveforge.core.channels import Role
from grooveforge.core.groove import NoteEvent
from grooveforge.core.theory import name_from_pitch
from grooveforge.core.tick_grid import (
    STEPS_PER_BAR,
    STEPS_PER_BEAT,
    TICKS_PER_BAR,
    step_tick,
)
from grooveforge.services.style_profile import StyleProfile

logger = logging.getLogger(__name__)


class Complexity(str, Enum):
    SIMPLE = "SIMPLE"
    COMPLEX = "COMPLEX"


# ---------------------------------------------------------------------------
# Motif steps
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rest:
    """A silent step."""

    def __repr__(self) -> str:
        return "REST"


@dataclass(frozen=True)
class Active:
    """A sounded step carrying a scale-degree index (may exceed one octave)."""

    degree: int


MotifStep = Union[Rest, Active]
Motif = list[MotifStep]

REST = Rest()
REST_SENTINEL = -1


def motif_from_ints(values: Sequence[int]) -> Motif:
    """Read the numeric wire form, where -1 marks a rest."""
    return [REST if v == REST_SENTINEL else Active(int(v)) for v in values]


def motif_to_ints(motif: Motif) -> list[int]:
    return [step.degree if isinstance(step, Active) else REST_SENTINEL for step in motif]


def active_count(motif: Motif) -> int:
    return sum(1 for step in motif if isinstance(step, Active))


# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

MUTATION_RATE = 0.25
REST_REVIVAL_CHANCE = 0.3
MASK_WEIGHT = 0.7
STRONG_BEAT_BONUS = 0.3
LEAD_DENSITY_DIVISOR = 8.0
# Chance that a complex lead step outside both masks is dropped.
COMPLEX_SKIP_CHANCE = 0.8

# Degrees drawn on quarter-note steps; tonic weighted double.
ANCHOR_DEGREES: tuple[int, ...] = (0, 0, 2, 4, 7)
DEFAULT_MASK: tuple[float, ...] = tuple(1.0 if i % 2 == 0 else 0.0 for i in range(STEPS_PER_BAR))

# Fallback when a caller renders without a motif.
DEFAULT_MOTIF: tuple[int, ...] = (0, -1, 2, -1, 4, -1, 2, -1, 0, -1, 5, -1, 2, -1, 1, -1)

PAD_TRIAD_DEGREES: tuple[int, ...] = (0, 2, 4)

ARP_DURATION = 100
LEAD_SIMPLE_DURATION = 240
LEAD_COMPLEX_DURATION = 150
ACID_DURATION = 120
PAD_STAB_DURATION = 105
FX_VELOCITY = 0.45


def density_factor(profile: Optional[StyleProfile], divisor: float = LEAD_DENSITY_DIVISOR) -> float:
    """Scale applied to every play probability; 1.0 without lead data."""
    if profile is None or not profile.has_lead_data:
        return 1.0
    return profile.avg_lead_density / divisor


def _mask_for(profile: Optional[StyleProfile]) -> tuple[float, ...]:
    if profile is not None and profile.has_rhythm:
        return profile.rhythm_mask16
    return DEFAULT_MASK


def play_probability(
    step: int,
    mask: Sequence[float],
    factor: float,
    mask_weight: float = MASK_WEIGHT,
    strong_beat_bonus: float = STRONG_BEAT_BONUS,
) -> float:
    bonus = strong_beat_bonus if step % STEPS_PER_BEAT == 0 else 0.0
    return (mask[step % STEPS_PER_BAR] * mask_weight + bonus) * factor


def expected_active_fraction(
    length: int = STEPS_PER_BAR,
    mask: Sequence[float] = DEFAULT_MASK,
    factor: float = 1.0,
    mask_weight: float = MASK_WEIGHT,
    strong_beat_bonus: float = STRONG_BEAT_BONUS,
) -> float:
    """Mean share of active steps ``create_motif`` should produce for these inputs."""
    total = sum(
        min(1.0, max(0.0, play_probability(s, mask, factor, mask_weight, strong_beat_bonus)))
        for s in range(length)
    )
    return total / length


def create_motif(
    length: int = STEPS_PER_BAR,
    degree_range: int = 7,
    profile: Optional[StyleProfile] = None,
    *,
    rng: Optional[random.Random] = None,
    mask: Optional[Sequence[float]] = None,
    factor: Optional[float] = None,
    mask_weight: float = MASK_WEIGHT,
    strong_beat_bonus: float = STRONG_BEAT_BONUS,
    density_divisor: float = LEAD_DENSITY_DIVISOR,
) -> Motif:
    """Draw a fresh motif.

    ``mask`` and ``factor`` override what would otherwise be read from
    ``profile``.
    """
    rng = rng or random.Random()
    mask = mask if mask is not None else _mask_for(profile)
    factor = factor if factor is not None else density_factor(profile, density_divisor)

    motif: Motif = []
    for step in range(length):
        if rng.random() < play_probability(step, mask, factor, mask_weight, strong_beat_bonus):
            if step % STEPS_PER_BEAT == 0:
                motif.append(Active(rng.choice(ANCHOR_DEGREES)))
            else:
                motif.append(Active(rng.randrange(max(1, degree_range))))
        else:
            motif.append(REST)
    return motif


def mutation_count(length: int, rate: float = MUTATION_RATE) -> int:
    return max(1, int(math.floor(length * rate)))


def mutate_motif(
    motif: Motif,
    degree_range: int = 7,
    *,
    rng: Optional[random.Random] = None,
    rate: float = MUTATION_RATE,
    revival_chance: float = REST_REVIVAL_CHANCE,
) -> Motif:
    """Copy ``motif`` and perturb a quarter of its positions.

    Active steps move one degree up or down (kept inside ``[0, degree_range]``);
    a rest picked for mutation comes back to life with ``revival_chance``.
    """
    rng = rng or random.Random()
    mutated = list(motif)
    if not mutated:
        return mutated
    for _ in range(mutation_count(len(mutated), rate)):
        idx = rng.randrange(len(mutated))
        step = mutated[idx]
        if isinstance(step, Active):
            shifted = step.degree + rng.choice((-1, 1))
            mutated[idx] = Active(max(0, min(degree_range, shifted)))
        elif rng.random() < revival_chance:
            mutated[idx] = Active(rng.randrange(max(1, degree_range)))
    return mutated


# ---------------------------------------------------------------------------
# Bar rendering
# ---------------------------------------------------------------------------

def degree_to_pitch(root_pitch: int, scale_intervals: Sequence[int], degree: int) -> int:
    """Scale degree to MIDI pitch; degrees past the scale length climb octaves."""
    n = len(scale_intervals)
    return root_pitch + scale_intervals[degree % n] + 12 * (degree // n)


def _step_at(motif: Motif, step: int) -> MotifStep:
    return motif[step % len(motif)] if motif else REST


def _session_at(session_mask: Optional[Sequence[int]], step: int) -> Optional[int]:
    if not session_mask:
        return None
    return session_mask[step % len(session_mask)]


def _render_melodic(
    bar_index: int,
    root_pitch: int,
    scale_intervals: Sequence[int],
    is_arp: bool,
    motif: Motif,
    complexity: Complexity,
    profile: Optional[StyleProfile],
    session_mask: Optional[Sequence[int]],
    rng: random.Random,
) -> list[NoteEvent]:
    complex_mode = complexity == Complexity.COMPLEX
    learned = profile.rhythm_mask16 if profile is not None and profile.has_rhythm else None
    notes: list[NoteEvent] = []
    for step in range(STEPS_PER_BAR):
        motif_step = _step_at(motif, step)
        if not isinstance(motif_step, Active):
            continue

        if complex_mode and not is_arp:
            learned_weight = learned[step] if learned is not None else 1.0
            if (
                _session_at(session_mask, step) == 0
                and learned_weight < 0.5
                and rng.random() < COMPLEX_SKIP_CHANCE
            ):
                continue

        pitch = degree_to_pitch(root_pitch, scale_intervals, motif_step.degree)
        if complex_mode and is_arp and step % STEPS_PER_BEAT == 2:
            pitch += 12

        if is_arp:
            duration = ARP_DURATION
        else:
            duration = LEAD_COMPLEX_DURATION if complex_mode else LEAD_SIMPLE_DURATION

        if complex_mode:
            velocity = 1.0 if step % STEPS_PER_BEAT == 0 else 0.8
        else:
            velocity = 0.9

        notes.append(NoteEvent(
            note=name_from_pitch(pitch),
            start_tick=step_tick(bar_index, step),
            duration_ticks=duration,
            velocity=velocity,
        ))
    return notes


def _render_acid(
    bar_index: int,
    root_pitch: int,
    scale_intervals: Sequence[int],
    motif: Motif,
    complexity: Complexity,
) -> list[NoteEvent]:
    notes: list[NoteEvent] = []
    cycle = scale_intervals[:3]
    for step in range(STEPS_PER_BAR):
        if not isinstance(_step_at(motif, step), Active):
            continue
        if complexity == Complexity.SIMPLE:
            velocity = 0.85
        else:
            # filter-sweep imitation
            velocity = 0.8 + math.sin(step) * 0.2
        notes.append(NoteEvent(
            note=name_from_pitch(root_pitch + cycle[step % len(cycle)]),
            start_tick=step_tick(bar_index, step),
            duration_ticks=ACID_DURATION,
            velocity=velocity,
        ))
    return notes


def _render_pad(
    bar_index: int,
    root_pitch: int,
    scale_intervals: Sequence[int],
    motif: Motif,
    complexity: Complexity,
    session_mask: Optional[Sequence[int]],
    rng: random.Random,
) -> list[NoteEvent]:
    triad = [name_from_pitch(degree_to_pitch(root_pitch, scale_intervals, d)) for d in PAD_TRIAD_DEGREES]
    if complexity == Complexity.SIMPLE:
        return [NoteEvent(note=triad, start_tick=step_tick(bar_index, 0), duration_ticks=TICKS_PER_BAR, velocity=0.5)]

    notes: list[NoteEvent] = []
    for step in range(STEPS_PER_BAR):
        if isinstance(_step_at(motif, step), Active) or _session_at(session_mask, step) == 1:
            notes.append(NoteEvent(
                note=list(triad),
                start_tick=step_tick(bar_index, step),
                duration_ticks=PAD_STAB_DURATION,
                velocity=0.4 + rng.random() * 0.2,
            ))
    return notes


def _render_fx(bar_index: int, root_pitch: int) -> list[NoteEvent]:
    """Riser marker on the last bar of each four-bar phrase."""
    if bar_index % 4 != 3:
        return []
    return [NoteEvent(
        note=name_from_pitch(root_pitch),
        start_tick=step_tick(bar_index, 0),
        duration_ticks=TICKS_PER_BAR,
        velocity=FX_VELOCITY,
    )]


def render_bar(
    bar_index: int,
    root_pitch: int,
    scale_intervals: Sequence[int],
    role: Role,
    motif: Optional[Motif] = None,
    complexity: Complexity = Complexity.COMPLEX,
    profile: Optional[StyleProfile] = None,
    session_mask: Optional[Sequence[int]] = None,
    *,
    rng: Optional[random.Random] = None,
) -> list[NoteEvent]:
    """Render one bar of note events for a melodic role.

    Every event starts at ``bar_index * 1920 + step * 120``.
    """
    rng = rng or random.Random()
    motif = motif if motif is not None else motif_from_ints(DEFAULT_MOTIF)

    if role in (Role.LEAD, Role.ARP):
        return _render_melodic(
            bar_index, root_pitch, scale_intervals, role == Role.ARP,
            motif, complexity, profile, session_mask, rng,
        )
    if role == Role.ACID:
        return _render_acid(bar_index, root_pitch, scale_intervals, motif, complexity)
    if role == Role.PAD:
        return _render_pad(bar_index, root_pitch, scale_intervals, motif, complexity, session_mask, rng)
    if role == Role.FX:
        return _render_fx(bar_index, root_pitch)
    raise ValueError(f"render_bar does not handle role {role.value!r}; use the foundation generator")
