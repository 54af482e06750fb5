"""
Genre labels and per-genre defaults.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class Genre(str, Enum):
    FULL_ON = "Full-On Psytrance"
    POWER_GROOVE = "Psytrance (Power Groove)"
    GOA = "Goa Trance"
    MELODIC_TECHNO = "Melodic Techno"
    TECHNO_PEAK = "Techno (Peak Time)"


# Tempo used when the request leaves BPM selection to the engine.
DEFAULT_BPM: dict[Genre, float] = {
    Genre.FULL_ON: 145.0,
    Genre.POWER_GROOVE: 143.0,
    Genre.GOA: 140.0,
    Genre.MELODIC_TECHNO: 124.0,
    Genre.TECHNO_PEAK: 132.0,
}

# Tempo window each genre is expected to sit in.
TEMPO_RANGE: dict[Genre, tuple[float, float]] = {
    Genre.FULL_ON: (142.0, 150.0),
    Genre.POWER_GROOVE: (140.0, 146.0),
    Genre.GOA: (138.0, 144.0),
    Genre.MELODIC_TECHNO: (122.0, 130.0),
    Genre.TECHNO_PEAK: (128.0, 144.0),
}


def genre_id(label: str) -> str:
    """Stable storage key for a free-form genre label ("Full-On Psytrance" -> "FULL_ON_PSYTRANCE")."""
    return re.sub(r"[^A-Z0-9]+", "_", label.strip().upper()).strip("_")


_BY_ID = {genre_id(g.value): g for g in Genre}
_BY_ID.update({g.name: g for g in Genre})


def resolve_genre(label: Optional[str]) -> Optional[Genre]:
    """Map a label (or enum name) to a known genre; unknown labels give ``None``."""
    if not label:
        return None
    return _BY_ID.get(genre_id(label))


def default_bpm_for(label: Optional[str], fallback: float) -> float:
    genre = resolve_genre(label)
    if genre is None:
        logger.info(f"No default tempo for genre {label!r}; using {fallback}")
        return fallback
    return DEFAULT_BPM[genre]
