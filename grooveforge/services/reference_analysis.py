"""
Reference analysis: statistical fingerprints of ingested reference material.

A reference transcript is reduced to per-track descriptors (density, a
16-slot rhythm histogram, pitch range, mean velocity). Nothing downstream
ever sees the reference's note sequence again, only these numbers.

Role classification is a plain function so it can be swapped or tuned
without touching the aggregation in ``style_profile``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from grooveforge.contracts.json_types import TrackStatsDict
from grooveforge.core.genres import Genre
from grooveforge.core.tick_grid import STEPS_PER_BAR, TICKS_PER_QUARTER

logger = logging.getLogger(__name__)

MIN_BARS_FOR_DENSITY = 0.25

BASS_PITCH_CEILING = 55
BASS_MIN_DENSITY = 2.0
LEAD_PITCH_FLOOR = 60


class TrackRole(str, Enum):
    BASS = "bass"
    LEAD = "lead"
    OTHER = "other"


@dataclass(frozen=True)
class ReferenceNote:
    pitch: int
    start_tick: int
    duration_ticks: int = 120
    velocity: float = 100  # MIDI 0-127 or normalized 0-1


@dataclass
class ReferenceTrack:
    name: str
    notes: list[ReferenceNote] = field(default_factory=list)


@dataclass
class ReferenceTranscript:
    """A transcribed reference track set, as handed over by the import collaborator."""

    name: str
    tracks: list[ReferenceTrack] = field(default_factory=list)
    bpm: float = 0.0
    ppq: int = TICKS_PER_QUARTER
    length_ticks: int | None = None

    @property
    def note_count(self) -> int:
        return sum(len(t.notes) for t in self.tracks)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReferenceTranscript:
        tracks = [
            ReferenceTrack(
                name=str(t.get("name", f"track{i}")),
                notes=[
                    ReferenceNote(
                        pitch=int(n["pitch"]),
                        start_tick=int(n.get("startTick", n.get("start_tick", 0))),
                        duration_ticks=int(n.get("durationTicks", n.get("duration_ticks", 120))),
                        velocity=float(n.get("velocity", 100)),
                    )
                    for n in t.get("notes", [])
                ],
            )
            for i, t in enumerate(data.get("tracks", []))
        ]
        return cls(
            name=str(data.get("name", "reference")),
            tracks=tracks,
            bpm=float(data.get("bpm", 0.0)),
            ppq=int(data.get("ppq", TICKS_PER_QUARTER)),
            length_ticks=data.get("lengthTicks", data.get("length_ticks")),
        )


@dataclass(frozen=True)
class TrackStats:
    """Per-track descriptors; the only thing kept from a reference for aggregation."""

    name: str
    note_count: int
    density: float  # notes per bar
    rhythm_mask16: tuple[float, ...]
    pitch_min: int
    pitch_max: int
    avg_velocity: float  # normalized 0-1

    def to_dict(self) -> TrackStatsDict:
        return {
            "name": self.name,
            "noteCount": self.note_count,
            "density": round(self.density, 4),
            "rhythmMask16": [round(v, 4) for v in self.rhythm_mask16],
            "pitchMin": self.pitch_min,
            "pitchMax": self.pitch_max,
            "avgVelocity": round(self.avg_velocity, 4),
        }


def normalize_mask(counts: list[float]) -> tuple[float, ...]:
    """Scale a histogram so its largest entry is exactly 1.0 (all-zero stays all-zero)."""
    peak = max(counts) if counts else 0.0
    if peak <= 0:
        return tuple(0.0 for _ in counts)
    return tuple(c / peak for c in counts)


def compute_track_stats(track: ReferenceTrack, ppq: int = TICKS_PER_QUARTER, length_ticks: int | None = None) -> TrackStats:
    """Reduce one reference track to its descriptors.

    Density divides by the track's bar span, floored at a quarter bar so that
    very short clips do not explode.
    """
    ticks_per_bar = ppq * 4
    ticks_per_step = ppq / 4
    notes = track.notes
    if not notes:
        return TrackStats(
            name=track.name, note_count=0, density=0.0,
            rhythm_mask16=tuple(0.0 for _ in range(STEPS_PER_BAR)),
            pitch_min=0, pitch_max=0, avg_velocity=0.0,
        )

    span = length_ticks or max(n.start_tick + n.duration_ticks for n in notes)
    bars = max(MIN_BARS_FOR_DENSITY, span / ticks_per_bar)

    histogram = [0.0] * STEPS_PER_BAR
    for n in notes:
        histogram[int(round(n.start_tick / ticks_per_step)) % STEPS_PER_BAR] += 1

    velocities = [n.velocity / 127.0 if n.velocity > 1.0 else n.velocity for n in notes]
    pitches = [n.pitch for n in notes]
    return TrackStats(
        name=track.name,
        note_count=len(notes),
        density=len(notes) / bars,
        rhythm_mask16=normalize_mask(histogram),
        pitch_min=min(pitches),
        pitch_max=max(pitches),
        avg_velocity=sum(velocities) / len(velocities),
    )


def analyze_transcript(transcript: ReferenceTranscript) -> list[TrackStats]:
    return [
        compute_track_stats(track, transcript.ppq, transcript.length_ticks)
        for track in transcript.tracks
    ]


def classify_track(stats: TrackStats) -> TrackRole:
    """Heuristic role guess: low and busy is bass, high is lead."""
    if stats.note_count == 0:
        return TrackRole.OTHER
    if stats.pitch_max < BASS_PITCH_CEILING and stats.density > BASS_MIN_DENSITY:
        return TrackRole.BASS
    if stats.pitch_min > LEAD_PITCH_FLOOR:
        return TrackRole.LEAD
    return TrackRole.OTHER


TrackClassifier = Callable[[TrackStats], TrackRole]


# ---------------------------------------------------------------------------
# Genre detection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenreSignature:
    genre: str
    bpm_min: float
    bpm_max: float
    min_bass_density: float


GENRE_SIGNATURES: tuple[GenreSignature, ...] = (
    GenreSignature(Genre.FULL_ON.value, 142, 150, 10),
    GenreSignature(Genre.POWER_GROOVE.value, 140, 146, 10),
    GenreSignature(Genre.GOA.value, 138, 144, 8),
    GenreSignature(Genre.TECHNO_PEAK.value, 128, 136, 1),
    GenreSignature(Genre.MELODIC_TECHNO.value, 122, 130, 4),
)


def detect_genre(bpm: float, track_stats: list[TrackStats], classifier: TrackClassifier = classify_track) -> str:
    """Best-guess genre label from tempo and bass activity.

    The first signature whose tempo window holds ``bpm`` and whose bass
    density floor is met wins; otherwise the closest tempo window.
    """
    bass = [s.density for s in track_stats if classifier(s) == TrackRole.BASS]
    bass_density = max(bass) if bass else 0.0

    for sig in GENRE_SIGNATURES:
        if sig.bpm_min <= bpm <= sig.bpm_max and bass_density >= sig.min_bass_density:
            return sig.genre

    def distance(sig: GenreSignature) -> float:
        if sig.bpm_min <= bpm <= sig.bpm_max:
            return 0.0
        return min(abs(bpm - sig.bpm_min), abs(bpm - sig.bpm_max))

    best = min(GENRE_SIGNATURES, key=lambda s: (distance(s), abs(bass_density - s.min_bass_density)))
    logger.debug(f"No exact genre signature for {bpm} BPM / bass {bass_density:.1f}; nearest is {best.genre}")
    return best.genre
