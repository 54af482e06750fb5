"""Low-level measurements shared by the QA scorer."""
from __future__ import annotations

from typing import Iterable

from grooveforge.core.groove import NoteEvent
from grooveforge.core.theory import pitch_class, scale_pitch_classes
from grooveforge.core.tick_grid import bar_of


def notes_in_bars(notes: Iterable[NoteEvent], bars: set[int]) -> list[NoteEvent]:
    return [n for n in notes if n.start_tick is not None and bar_of(n.start_tick) in bars]


def out_of_scale_fraction(notes: list[NoteEvent], key: str, scale: str) -> float:
    """Share of sounded pitches (chord members counted separately) outside the scale.

    Unparseable pitch names count as out of scale.
    """
    allowed = scale_pitch_classes(key, scale)
    total = 0
    outside = 0
    for note in notes:
        for name in note.pitches:
            total += 1
            try:
                if pitch_class(name) not in allowed:
                    outside += 1
            except ValueError:
                outside += 1
    return outside / total if total else 0.0


def notes_per_active_bar(notes: list[NoteEvent]) -> float:
    bars = {bar_of(n.start_tick) for n in notes if n.start_tick is not None}
    return len(notes) / len(bars) if bars else 0.0


def has_flat_velocity(notes: list[NoteEvent]) -> bool:
    """True when more than one note exists and every velocity is identical."""
    return len(notes) > 1 and len({round(n.velocity, 4) for n in notes}) == 1


def has_micro_timing(notes: Iterable[NoteEvent]) -> bool:
    return any(n.tick_offset for n in notes)
