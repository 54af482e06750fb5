"""Response models for the GrooveForge API."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from grooveforge.models.base import CamelModel


class HealingSummary(CamelModel):
    fixes: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed_channels: list[str] = Field(default_factory=list)


class GrooveResponse(CamelModel):
    """A generated groove with its QA verdict.

    ``groove`` is the serialized groove record (camelCase, ``startTick`` and
    derived ``time`` on every note); ``report`` repeats its QA report.
    """

    groove: dict[str, Any]
    report: dict[str, Any]
    accepted: bool
    attempts: int = 1
    all_scores: list[float] = Field(default_factory=list)
    motif: list[int] = Field(default_factory=list)
    session_mask: list[int] = Field(default_factory=list)
    healing: HealingSummary = Field(default_factory=HealingSummary)
    story_map: Optional[dict[str, Any]] = None


class ScoreResponse(CamelModel):
    report: dict[str, Any]


class HealResponse(CamelModel):
    groove: dict[str, Any]
    healing: HealingSummary
    report: Optional[dict[str, Any]] = None


class PlanResponse(CamelModel):
    bpm: float
    total_bars: int
    peak_bar: int
    phases: list[dict[str, Any]]


class ProfileResponse(CamelModel):
    genre: str
    profile: dict[str, Any]
    reference_count: int = 0


class IngestResponse(CamelModel):
    """Outcome of one reference ingestion.

    ``reference_id`` is ``None`` when the reference carried no notes and was
    ignored; ``profile`` is ``None`` unless a rebuild was requested.
    """

    genre: str
    detected_genre: bool = False
    reference_id: Optional[str] = None
    track_stats: list[dict[str, Any]] = Field(default_factory=list)
    profile: Optional[dict[str, Any]] = None
