"""
Pitch-name and scale utilities used by every generator, the healer and the scorer.

Names come out with sharps (``C#``, ``F#3``); flats are accepted on the way in.
A name carrying an octave maps to ``(octave + 1) * 12 + pitch_class`` so that
``C4`` is middle C (60). A bare name maps to its pitch class and converts
back to a bare name.
"""
from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

NOTE_NAMES: tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

# Root name -> pitch class (C=0, C#=1, ... B=11)
_ROOT_PC = {
    "C": 0, "C#": 1, "DB": 1, "D": 2, "D#": 3, "EB": 3, "E": 4, "F": 5, "E#": 5,
    "F#": 6, "GB": 6, "G": 7, "G#": 8, "AB": 8, "A": 9, "A#": 10, "BB": 10,
    "B": 11, "CB": 11, "B#": 0,
}

_NAME_RE = re.compile(r"^\s*([A-Ga-g])([#bB]?)(-?\d+)?\s*$")

SCALE_INTERVALS: dict[str, tuple[int, ...]] = {
    "major": (0, 2, 4, 5, 7, 9, 11),
    "minor": (0, 2, 3, 5, 7, 8, 10),
    "dorian": (0, 2, 3, 5, 7, 9, 10),
    "phrygian": (0, 1, 3, 5, 7, 8, 10),
    "lydian": (0, 2, 4, 6, 7, 9, 11),
    "mixolydian": (0, 2, 4, 5, 7, 9, 10),
    "locrian": (0, 1, 3, 5, 6, 8, 10),
    "harmonic minor": (0, 2, 3, 5, 7, 8, 11),
    "phrygian dominant": (0, 1, 4, 5, 7, 8, 10),
}

# Checked in order, so the longer "phrygian dominant" wins over "phrygian".
_MODE_ALIASES: tuple[tuple[str, str], ...] = (
    ("phrygian dominant", "phrygian dominant"),
    ("harmonic minor", "harmonic minor"),
    ("phrygian", "phrygian"),
    ("dorian", "dorian"),
    ("lydian", "lydian"),
    ("lylian", "lydian"),
    ("mixolydian", "mixolydian"),
    ("locrian", "locrian"),
    ("aeolian", "minor"),
    ("minor", "minor"),
    ("ionian", "major"),
    ("major", "major"),
)

DEFAULT_MODE = "major"
MAX_SEARCH_DISTANCE = 6


class InvalidPitchNameError(ValueError):
    """Raised when a string cannot be parsed as a pitch name."""


def _parse(name: str) -> tuple[int, int | None]:
    """Split a pitch name into (pitch_class, octave or None)."""
    if not isinstance(name, str):
        raise InvalidPitchNameError(f"Pitch name must be a string, got {type(name).__name__}")
    match = _NAME_RE.match(name)
    if not match:
        raise InvalidPitchNameError(f"Invalid pitch name: {name!r}")
    letter, accidental, octave = match.groups()
    key = letter.upper() + ("#" if accidental == "#" else "B" if accidental else "")
    return _ROOT_PC[key], int(octave) if octave is not None else None


def pitch_from_name(name: str) -> int:
    """Convert ``"F#3"`` to 54, or a bare ``"F#"`` to its pitch class 6."""
    pc, octave = _parse(name)
    if octave is None:
        return pc
    return (octave + 1) * 12 + pc


def name_from_pitch(pitch: int, with_octave: bool = True) -> str:
    """Convert 54 to ``"F#3"`` (or ``"F#"`` when ``with_octave`` is False)."""
    name = NOTE_NAMES[pitch % 12]
    if not with_octave:
        return name
    return f"{name}{pitch // 12 - 1}"


def has_octave(name: str) -> bool:
    return _parse(name)[1] is not None


def pitch_class(name: str) -> int:
    return _parse(name)[0]


def resolve_mode(mode: str | None) -> str:
    """Normalize a mode label ("Phrygian Dominant", "aeolian", ...) to a known key.

    Unknown labels fall back to major with a warning.
    """
    label = (mode or "").strip().lower()
    for alias, canonical in _MODE_ALIASES:
        if alias in label:
            return canonical
    logger.warning(f"Unknown scale mode {mode!r}; falling back to {DEFAULT_MODE}")
    return DEFAULT_MODE


def root_pitch_class(root: str) -> int:
    """Pitch class of a root key name; unknown roots fall back to C."""
    try:
        return pitch_class(root)
    except InvalidPitchNameError:
        logger.warning(f"Unknown root key {root!r}; falling back to C")
        return 0


def scale_intervals(mode: str | None) -> tuple[int, ...]:
    """Ordered semitone intervals of a mode, used to map scale degrees to pitches."""
    return SCALE_INTERVALS[resolve_mode(mode)]


def scale_pitch_classes(root: str, mode: str | None) -> frozenset[int]:
    """Set of pitch classes (0-11) belonging to ``root`` ``mode``."""
    pc = root_pitch_class(root)
    return frozenset((pc + interval) % 12 for interval in scale_intervals(mode))


def is_in_scale(name: str, root: str, mode: str | None) -> bool:
    return pitch_class(name) in scale_pitch_classes(root, mode)


def nearest_in_scale(name: str, root: str, mode: str | None) -> str:
    """Closest in-scale name to ``name``.

    Scans outward one semitone at a time up to a tritone, trying the note
    above before the note below at each distance. The octave is kept when
    ``name`` carries one.
    """
    allowed = scale_pitch_classes(root, mode)
    pitch = pitch_from_name(name)
    octaved = has_octave(name)
    if pitch % 12 in allowed:
        return name
    for distance in range(1, MAX_SEARCH_DISTANCE + 1):
        for candidate in (pitch + distance, pitch - distance):
            if candidate % 12 in allowed:
                if not octaved:
                    return NOTE_NAMES[candidate % 12]
                return name_from_pitch(candidate)
    return name


def root_pitch(key: str, octave: int) -> int:
    """MIDI pitch of ``key`` in ``octave`` (``root_pitch("F#", 3)`` -> 54)."""
    return (octave + 1) * 12 + root_pitch_class(key)
