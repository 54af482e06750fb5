"""
Style Profile Store ("Genre DNA").

Holds every ingested reference's per-track statistics and one aggregate
``StyleProfile`` per genre label. Profiles are rebuilt wholesale from the
current reference set, never patched, and swapped in only once fully
computed, so readers always see either the old profile or the new one.

Writes (ingest / rebuild / delete) are serialized by a lock; reads are plain
dict lookups of immutable profiles.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from grooveforge.config import settings
from grooveforge.contracts.json_types import StyleProfileDict
from grooveforge.core.genres import genre_id
from grooveforge.core.tick_grid import STEPS_PER_BAR
from grooveforge.services.reference_analysis import (
    ReferenceTranscript,
    TrackClassifier,
    TrackRole,
    TrackStats,
    analyze_transcript,
    classify_track,
    detect_genre,
    normalize_mask,
)

logger = logging.getLogger(__name__)

DEFAULT_PITCH_RANGE: tuple[int, int] = (60, 84)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StyleProfile:
    """Aggregated statistical fingerprint of one genre."""

    genre: str
    avg_lead_density: float = 0.0
    avg_bass_density: float = 0.0
    rhythm_mask16: tuple[float, ...] = tuple(0.0 for _ in range(STEPS_PER_BAR))
    pitch_range: tuple[int, int] = DEFAULT_PITCH_RANGE
    sample_count: int = 0
    lead_track_count: int = 0
    bass_track_count: int = 0
    updated_at: datetime = field(default_factory=_now)

    @property
    def has_rhythm(self) -> bool:
        return any(v > 0 for v in self.rhythm_mask16)

    @property
    def has_lead_data(self) -> bool:
        return self.lead_track_count > 0

    def mask_at(self, step: int) -> float:
        return self.rhythm_mask16[step % STEPS_PER_BAR]

    @classmethod
    def empty(cls, genre: str) -> StyleProfile:
        return cls(genre=genre)

    def to_dict(self) -> StyleProfileDict:
        return {
            "genre": self.genre,
            "avgLeadDensity": round(self.avg_lead_density, 4),
            "avgBassDensity": round(self.avg_bass_density, 4),
            "rhythmMask16": [round(v, 4) for v in self.rhythm_mask16],
            "pitchRange": list(self.pitch_range),
            "sampleCount": self.sample_count,
            "leadTrackCount": self.lead_track_count,
            "bassTrackCount": self.bass_track_count,
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StyleProfile:
        mask = [float(v) for v in data.get("rhythmMask16", [])][:STEPS_PER_BAR]
        mask += [0.0] * (STEPS_PER_BAR - len(mask))
        pitch_range = data.get("pitchRange") or DEFAULT_PITCH_RANGE
        updated = data.get("updatedAt")
        return cls(
            genre=str(data.get("genre", "")),
            avg_lead_density=float(data.get("avgLeadDensity", 0.0)),
            avg_bass_density=float(data.get("avgBassDensity", 0.0)),
            rhythm_mask16=normalize_mask(mask),
            pitch_range=(int(pitch_range[0]), int(pitch_range[1])),
            sample_count=int(data.get("sampleCount", 0)),
            lead_track_count=int(data.get("leadTrackCount", 1 if data.get("avgLeadDensity") else 0)),
            bass_track_count=int(data.get("bassTrackCount", 1 if data.get("avgBassDensity") else 0)),
            updated_at=datetime.fromisoformat(updated) if isinstance(updated, str) else _now(),
        )


@dataclass
class ReferenceRecord:
    """One ingested reference: its per-track stats and, when given, the raw transcript."""

    genre: str
    source_name: str
    track_stats: list[TrackStats]
    transcript: Optional[ReferenceTranscript] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_now)


def aggregate_profile(
    genre: str,
    records: list[ReferenceRecord],
    classifier: TrackClassifier = classify_track,
) -> StyleProfile:
    """Fold every record of one genre into a single profile.

    Lead and bass densities are averaged over tracks classified as such;
    the rhythm mask is the sum of lead masks scaled back to a peak of 1.0.
    """
    lead_densities: list[float] = []
    bass_densities: list[float] = []
    summed_mask = [0.0] * STEPS_PER_BAR
    pitch_lo: list[int] = []
    pitch_hi: list[int] = []

    for record in records:
        for stats in record.track_stats:
            role = classifier(stats)
            if role == TrackRole.LEAD:
                lead_densities.append(stats.density)
                for i, v in enumerate(stats.rhythm_mask16[:STEPS_PER_BAR]):
                    summed_mask[i] += v
            elif role == TrackRole.BASS:
                bass_densities.append(stats.density)
            else:
                continue
            pitch_lo.append(stats.pitch_min)
            pitch_hi.append(stats.pitch_max)

    return StyleProfile(
        genre=genre,
        avg_lead_density=sum(lead_densities) / len(lead_densities) if lead_densities else 0.0,
        avg_bass_density=sum(bass_densities) / len(bass_densities) if bass_densities else 0.0,
        rhythm_mask16=normalize_mask(summed_mask),
        pitch_range=(min(pitch_lo), max(pitch_hi)) if pitch_lo else DEFAULT_PITCH_RANGE,
        sample_count=len(records),
        lead_track_count=len(lead_densities),
        bass_track_count=len(bass_densities),
    )


class StyleProfileStore:
    """Reference corpus plus one rebuilt profile per genre."""

    def __init__(
        self,
        classifier: TrackClassifier = classify_track,
        max_references_per_genre: Optional[int] = None,
    ) -> None:
        self._classifier = classifier
        self._max_refs = max_references_per_genre or settings.max_references_per_genre
        self._references: dict[str, list[ReferenceRecord]] = {}
        self._profiles: dict[str, StyleProfile] = {}
        self._labels: dict[str, str] = {}
        self._write_lock = threading.Lock()

    # -- writes ---------------------------------------------------------------

    def ingest(self, reference: ReferenceTranscript, genre_label: str) -> Optional[ReferenceRecord]:
        """Analyze and store a reference transcript. Empty references are skipped."""
        if reference.note_count == 0:
            logger.warning(f"Reference {reference.name!r} has no notes; not ingested for {genre_label!r}")
            return None
        record = ReferenceRecord(
            genre=genre_label,
            source_name=reference.name,
            track_stats=analyze_transcript(reference),
            transcript=reference,
        )
        self._store(record)
        return record

    def ingest_stats(
        self,
        track_stats: list[TrackStats],
        genre_label: str,
        source_name: str = "external-analysis",
    ) -> Optional[ReferenceRecord]:
        """Store a pre-computed statistics bundle from an external analysis step."""
        if not any(s.note_count > 0 for s in track_stats):
            logger.warning(f"Statistics bundle {source_name!r} describes no notes; not ingested")
            return None
        record = ReferenceRecord(genre=genre_label, source_name=source_name, track_stats=list(track_stats))
        self._store(record)
        return record

    def _store(self, record: ReferenceRecord) -> None:
        key = genre_id(record.genre)
        with self._write_lock:
            bucket = self._references.setdefault(key, [])
            bucket.append(record)
            self._labels.setdefault(key, record.genre)
            overflow = len(bucket) - self._max_refs
            if overflow > 0:
                del bucket[:overflow]
                logger.info(f"Evicted {overflow} oldest reference(s) for {record.genre!r}")
        logger.info(
            f"Ingested reference {record.source_name!r} for {record.genre!r} "
            f"({len(record.track_stats)} tracks)"
        )

    def delete_reference(self, reference_id: str) -> bool:
        with self._write_lock:
            for bucket in self._references.values():
                for i, record in enumerate(bucket):
                    if record.id == reference_id:
                        del bucket[i]
                        return True
        return False

    def rebuild(self, genre_label: str) -> Optional[StyleProfile]:
        """Recompute a genre's profile from all of its stored references.

        Returns the new profile, or ``None`` (leaving any previous profile in
        place) when the genre has no references.
        """
        key = genre_id(genre_label)
        with self._write_lock:
            records = list(self._references.get(key, []))
            if not records:
                logger.info(f"No references for {genre_label!r}; profile left unchanged")
                return None
            profile = aggregate_profile(self._labels.get(key, genre_label), records, self._classifier)
            self._profiles[key] = profile
        logger.info(
            f"Rebuilt style profile for {genre_label!r}: {profile.sample_count} references, "
            f"lead {profile.avg_lead_density:.2f}/bar, bass {profile.avg_bass_density:.2f}/bar"
        )
        return profile

    # -- reads ----------------------------------------------------------------

    def get(self, genre_label: str) -> Optional[StyleProfile]:
        return self._profiles.get(genre_id(genre_label))

    def get_or_empty(self, genre_label: str) -> StyleProfile:
        return self.get(genre_label) or StyleProfile.empty(genre_label)

    def list_profiles(self) -> list[StyleProfile]:
        return list(self._profiles.values())

    def list_references(self, genre_label: Optional[str] = None) -> list[ReferenceRecord]:
        if genre_label is not None:
            return list(self._references.get(genre_id(genre_label), []))
        return [r for bucket in self._references.values() for r in bucket]


@dataclass
class IngestOutcome:
    """What one reference ingestion did to the store."""

    genre: str
    detected: bool
    record: Optional[ReferenceRecord]
    profile: Optional[StyleProfile]


def learn_reference(
    store: StyleProfileStore,
    reference: ReferenceTranscript,
    genre_label: Optional[str] = None,
    rebuild: bool = True,
) -> IngestOutcome:
    """Ingest ``reference`` (detecting its genre from tempo when unlabeled) and optionally rebuild."""
    detected = not genre_label
    label = genre_label or detect_genre(reference.bpm, analyze_transcript(reference))
    if detected:
        logger.info(f"Reference {reference.name!r} detected as {label!r}")
    record = store.ingest(reference, label)
    profile = store.rebuild(label) if rebuild and record is not None else None
    return IngestOutcome(genre=label, detected=detected, record=record, profile=profile)


# Singleton instance
_store: Optional[StyleProfileStore] = None


def get_style_profile_store() -> StyleProfileStore:
    """Get or create the process-wide StyleProfileStore."""
    global _store
    if _store is None:
        _store = StyleProfileStore()
    return _store


def reset_style_profile_store() -> None:
    """Reset the singleton (for tests)."""
    global _store
    _store = None
