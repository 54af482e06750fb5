"""Request models for the GrooveForge API and composer."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from grooveforge.config import settings
from grooveforge.contracts.midi_types import (
    DurationTicks,
    MaskValue,
    MidiPitch,
    TempoBPM,
    Tick,
)
from grooveforge.core.channels import Channel
from grooveforge.core.genres import Genre
from grooveforge.core.tick_grid import STEPS_PER_BAR, TICKS_PER_QUARTER
from grooveforge.models.base import CamelModel
from grooveforge.services.motif import Complexity
from grooveforge.services.reference_analysis import (
    ReferenceNote,
    ReferenceTrack,
    ReferenceTranscript,
    TrackStats,
)
from grooveforge.services.style_profile import DEFAULT_PITCH_RANGE, StyleProfile


class GenerationMode(str, Enum):
    NEW = "NEW"
    EVOLVE = "EVOLVE"


class EnergyMode(str, Enum):
    EARLY_WARMUP = "Early Warmup"
    PEAK_TIME = "Peak Time"
    LATE_NIGHT = "Late Night"


class BpmMode(str, Enum):
    AUTO = "AUTO"
    MANUAL = "MANUAL"


class StyleProfilePayload(CamelModel):
    """A style profile supplied inline by the caller instead of the store."""

    avg_lead_density: float = Field(default=0.0, ge=0.0)
    avg_bass_density: float = Field(default=0.0, ge=0.0)
    rhythm_mask16: list[MaskValue] = Field(
        default_factory=lambda: [0.0] * STEPS_PER_BAR,
        min_length=STEPS_PER_BAR,
        max_length=STEPS_PER_BAR,
    )
    pitch_range: tuple[MidiPitch, MidiPitch] = DEFAULT_PITCH_RANGE
    sample_count: int = Field(default=1, ge=0)

    def to_profile(self, genre: str) -> StyleProfile:
        return StyleProfile.from_dict({
            "genre": genre,
            "avgLeadDensity": self.avg_lead_density,
            "avgBassDensity": self.avg_bass_density,
            "rhythmMask16": self.rhythm_mask16,
            "pitchRange": list(self.pitch_range),
            "sampleCount": self.sample_count,
        })


class GenerateGrooveRequest(CamelModel):
    """Everything the composer needs to produce one groove."""

    genre: str = Field(default=Genre.FULL_ON.value, min_length=1)
    key: str = Field(default_factory=lambda: settings.default_key)
    scale: str = Field(default_factory=lambda: settings.default_scale)
    bpm: Optional[TempoBPM] = Field(
        default=None, description="Genre default tempo when omitted or when bpmMode is AUTO",
    )
    duration_minutes: float = Field(
        default_factory=lambda: settings.default_duration_minutes, gt=0.0, le=30.0,
    )
    mode: GenerationMode = GenerationMode.NEW
    energy_mode: EnergyMode = EnergyMode.PEAK_TIME
    bpm_mode: BpmMode = BpmMode.MANUAL
    channels: Optional[list[Channel]] = Field(
        default=None, description="Channels to populate; all sixteen when omitted",
    )
    motif: Optional[list[int]] = Field(
        default=None, description="Scale-degree indices, -1 for a rest",
    )
    session_mask: Optional[list[int]] = Field(
        default=None, description="16 slots of 0/1 shared across channels",
    )
    style_profile: Optional[StyleProfilePayload] = None
    complexity: Optional[Complexity] = Field(
        default=None, description="Override the complexity implied by the energy mode",
    )
    seed: Optional[int] = None
    name: str = ""

    @field_validator("motif")
    @classmethod
    def _check_motif(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        if v is None:
            return v
        if not 1 <= len(v) <= 64:
            raise ValueError("motif must have between 1 and 64 steps")
        if any(step < -1 for step in v):
            raise ValueError("motif steps must be -1 (rest) or a non-negative degree")
        return v

    @field_validator("session_mask")
    @classmethod
    def _check_session_mask(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        if v is None:
            return v
        if len(v) != STEPS_PER_BAR:
            raise ValueError(f"session mask must have {STEPS_PER_BAR} slots")
        if any(slot not in (0, 1) for slot in v):
            raise ValueError("session mask slots must be 0 or 1")
        return v


class ScoreGrooveRequest(CamelModel):
    groove: dict[str, Any]
    channel_scope: Optional[list[Channel]] = None


class HealGrooveRequest(CamelModel):
    groove: dict[str, Any]
    channels: Optional[list[Channel]] = None
    seed: Optional[int] = None
    score: bool = True


class ReferenceNotePayload(CamelModel):
    pitch: MidiPitch
    start_tick: Tick
    duration_ticks: DurationTicks = 120
    velocity: float = Field(default=100, ge=0, le=127)


class ReferenceTrackPayload(CamelModel):
    name: str = "track"
    notes: list[ReferenceNotePayload] = Field(default_factory=list)


class IngestReferenceRequest(CamelModel):
    """A transcribed reference to learn a genre's statistics from."""

    genre: Optional[str] = Field(default=None, description="Detected from tempo when omitted")
    name: str = "reference"
    bpm: float = Field(default=0.0, ge=0.0)
    ppq: int = Field(default=TICKS_PER_QUARTER, gt=0)
    length_ticks: Optional[int] = Field(default=None, gt=0)
    tracks: list[ReferenceTrackPayload] = Field(default_factory=list)
    rebuild: bool = True

    def to_transcript(self) -> ReferenceTranscript:
        return ReferenceTranscript(
            name=self.name,
            bpm=self.bpm,
            ppq=self.ppq,
            length_ticks=self.length_ticks,
            tracks=[
                ReferenceTrack(
                    name=t.name,
                    notes=[
                        ReferenceNote(n.pitch, n.start_tick, n.duration_ticks, n.velocity)
                        for n in t.notes
                    ],
                )
                for t in self.tracks
            ],
        )


class TrackStatsPayload(CamelModel):
    name: str = "track"
    note_count: int = Field(ge=0)
    density: float = Field(ge=0.0)
    rhythm_mask16: list[MaskValue] = Field(min_length=STEPS_PER_BAR, max_length=STEPS_PER_BAR)
    pitch_min: MidiPitch = 0
    pitch_max: MidiPitch = 0
    avg_velocity: float = Field(default=0.0, ge=0.0, le=1.0)

    def to_stats(self) -> TrackStats:
        return TrackStats(
            name=self.name,
            note_count=self.note_count,
            density=self.density,
            rhythm_mask16=tuple(self.rhythm_mask16),
            pitch_min=self.pitch_min,
            pitch_max=self.pitch_max,
            avg_velocity=self.avg_velocity,
        )


class IngestStatsRequest(CamelModel):
    """A statistics bundle produced by an external analysis step."""

    genre: str = Field(min_length=1)
    source_name: str = "external-analysis"
    tracks: list[TrackStatsPayload] = Field(default_factory=list)
    rebuild: bool = True
