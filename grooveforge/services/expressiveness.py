"""
Phrase Dynamics Post-Processor

Turns the flat velocities of freshly rendered bars into phrased lines before
healing runs:
  - leads swell across each 4-bar phrase and push the off-beat 16ths
  - bass ducks on the downbeats (where the kick already sits)
  - the last 16th of a bar is gated short, the downbeat held a little long
  - leads occasionally get a soft ghost an octave below one of their strong notes

Gate stretches and ghosts can create same-channel overlaps; the healing
pass resolves those afterwards.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from grooveforge.core.channels import CHANNEL_ROLES, MELODIC_CHANNELS, Channel, Role
from grooveforge.core.genres import Genre, resolve_genre
from grooveforge.core.groove import Groove, NoteEvent, clamp_velocity
from grooveforge.core.theory import name_from_pitch, pitch_from_name
from grooveforge.core.tick_grid import STEPS_PER_BAR, STEPS_PER_BEAT, bar_of, step_of

logger = logging.getLogger(__name__)

_DRIVING_ROLES = frozenset({Role.LEAD, Role.ARP, Role.ACID})


@dataclass
class DynamicsProfile:
    """
    Genre-specific phrasing parameters.

    Attributes:
        phrase_swell: Velocity gain per bar position inside a 4-bar phrase.
        offbeat_steps: 16th steps that get the off-beat accent.
        offbeat_accent: Multiplier on off-beat steps.
        onbeat_damping: Multiplier everywhere else.
        bass_downbeat_duck: Bass velocity multiplier on quarter steps.
        release_gate: Duration multiplier on the last 16th of the bar.
        downbeat_hold: Duration multiplier on the first 16th of the bar.
        ghost_probability: Per-bar chance of a ghost on a driving channel.
        ghost_velocity: Ghost note velocity.
        velocity_floor: Leads never drop below this.
        ghost_source_min_velocity: Only notes louder than this can spawn a ghost.
    """
    phrase_swell: float = 0.04
    offbeat_steps: tuple[int, ...] = (2, 6, 10, 14)
    offbeat_accent: float = 1.12
    onbeat_damping: float = 0.95
    bass_downbeat_duck: float = 0.9
    release_gate: float = 0.4
    downbeat_hold: float = 1.1
    ghost_probability: float = 0.4
    ghost_velocity: float = 0.25
    velocity_floor: float = 0.1
    ghost_source_min_velocity: float = 0.6


PROFILES: dict[Genre, DynamicsProfile] = {
    Genre.FULL_ON: DynamicsProfile(),
    Genre.POWER_GROOVE: DynamicsProfile(phrase_swell=0.05, ghost_probability=0.3),
    Genre.GOA: DynamicsProfile(ghost_probability=0.45),
    Genre.MELODIC_TECHNO: DynamicsProfile(
        phrase_swell=0.05, offbeat_accent=1.06, onbeat_damping=0.97, ghost_probability=0.4,
    ),
    Genre.TECHNO_PEAK: DynamicsProfile(
        phrase_swell=0.03, offbeat_accent=1.1, ghost_probability=0.2, release_gate=0.5,
    ),
}


def get_profile(genre: Optional[str]) -> DynamicsProfile:
    """Look up the dynamics profile for a genre label, defaulting to the Full-On shape."""
    resolved = resolve_genre(genre)
    if resolved is None:
        return DynamicsProfile()
    return PROFILES[resolved]


# ---------------------------------------------------------------------------
# Per-bar shaping
# ---------------------------------------------------------------------------

def shape_velocities(notes: list[NoteEvent], role: Role, bar_index: int, prof: DynamicsProfile) -> None:
    """Phrase swell and off-beat drive for leads; downbeat ducking for bass. In place."""
    for note in notes:
        if note.start_tick is None:
            continue
        step = step_of(note.start_tick)
        if role in _DRIVING_ROLES:
            swell = 1.0 + (bar_index % 4) * prof.phrase_swell
            accent = prof.offbeat_accent if step in prof.offbeat_steps else prof.onbeat_damping
            note.velocity = max(prof.velocity_floor, clamp_velocity(note.velocity * swell * accent))
        elif role == Role.BASS and step % STEPS_PER_BEAT == 0:
            note.velocity = clamp_velocity(note.velocity * prof.bass_downbeat_duck)


def shape_gates(notes: list[NoteEvent], prof: DynamicsProfile) -> None:
    """Short release on the bar's last 16th, slight hold on its first. In place."""
    for note in notes:
        if note.start_tick is None:
            continue
        step = step_of(note.start_tick)
        if step == STEPS_PER_BAR - 1:
            note.duration_ticks = max(1, round(note.duration_ticks * prof.release_gate))
        elif step == 0:
            note.duration_ticks = max(1, round(note.duration_ticks * prof.downbeat_hold))


def add_ghost_note(notes: list[NoteEvent], prof: DynamicsProfile, rng: random.Random) -> Optional[NoteEvent]:
    """Maybe copy one strong note an octave down at ghost velocity. Returns the ghost."""
    if not notes or rng.random() >= prof.ghost_probability:
        return None
    strong = [n for n in notes if n.start_tick is not None and n.velocity > prof.ghost_source_min_velocity]
    if not strong:
        return None
    source = rng.choice(strong)
    pitches = [name_from_pitch(pitch_from_name(p) - 12) for p in source.pitches]
    ghost = NoteEvent(
        note=pitches if source.is_chord else pitches[0],
        start_tick=source.start_tick,
        duration_ticks=source.duration_ticks,
        velocity=prof.ghost_velocity,
    )
    notes.append(ghost)
    return ghost


# ---------------------------------------------------------------------------
# Groove-level pass
# ---------------------------------------------------------------------------

def apply_phrase_dynamics(
    groove: Groove,
    channels: Optional[list[Channel]] = None,
    rng: Optional[random.Random] = None,
) -> int:
    """Shape every melodic channel of ``groove`` in place, bar by bar.

    Returns the number of ghost notes added.
    """
    rng = rng or random.Random()
    prof = get_profile(groove.genre)
    ghosts = 0

    for channel in channels or list(Channel):
        if channel not in MELODIC_CHANNELS:
            continue
        role = CHANNEL_ROLES[channel]
        by_bar: dict[int, list[NoteEvent]] = {}
        for note in groove.valid_notes(channel):
            by_bar.setdefault(bar_of(note.start_tick), []).append(note)  # type: ignore[arg-type]

        added: list[NoteEvent] = []
        for bar_index in sorted(by_bar):
            bar_notes = by_bar[bar_index]
            shape_velocities(bar_notes, role, bar_index, prof)
            shape_gates(bar_notes, prof)
            if role in _DRIVING_ROLES:
                ghost = add_ghost_note(bar_notes, prof, rng)
                if ghost is not None:
                    added.append(ghost)

        if added:
            groove.set_notes(channel, groove.notes(channel) + added)
            ghosts += len(added)

    logger.info(f"Phrase dynamics applied ({groove.genre or 'default'}): {ghosts} ghost notes")
    return ghosts
