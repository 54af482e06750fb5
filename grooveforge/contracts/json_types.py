"""Canonical type definitions for serialized GrooveForge data.

Every ``to_dict`` in the engine returns one of these shapes, and every
``from_dict`` accepts one. The keys are camelCase because the records are
handed to external consumers (file serializer, playback scheduler,
persistence) as-is.

## Entity catalog

  NoteEventDict        - one note or chord event on the tick grid
  PhaseDict            - one phase of an arrangement plan
  ArrangementPlanDict  - the full plan with its peak bar
  SubScoresDict        - the six QA sub-scores
  QAReportDict         - the QA report
  GrooveDict           - the persisted groove record
  TrackStatsDict       - per-track reference statistics
  StyleProfileDict     - an aggregated genre profile
  StoryMapDict         - contiguous active-bar segments per channel
"""
from __future__ import annotations

from typing_extensions import NotRequired, TypedDict


class NoteEventDict(TypedDict):
    """Wire shape of a Note Event.

    ``time`` is always derived from ``startTick``; it is never read back
    when ``startTick`` is present.
    """

    note: str | list[str]
    startTick: int | None
    time: str | None
    durationTicks: int
    velocity: float
    tickOffset: NotRequired[int]


class PhaseDict(TypedDict):
    name: str
    startBar: int
    endBar: int
    channels: list[str]
    density: float
    energy: float


class ArrangementPlanDict(TypedDict):
    bpm: float
    totalBars: int
    peakBar: int
    phases: list[PhaseDict]


class SubScoresDict(TypedDict):
    structural: float
    genre: float
    lowEnd: float
    harmonic: float
    density: float
    intelligence: float


class QAReportDict(TypedDict):
    passed: bool
    score: float
    subScores: SubScoresDict
    channelActivity: dict[str, int]
    activeChannels: list[str]
    emptyChannels: list[str]
    genreViolations: list[str]
    harmonicConflicts: list[str]
    warnings: list[str]
    fixes: list[str]


class GrooveDict(TypedDict):
    id: str
    name: str
    genre: str
    bpm: float
    key: str
    scale: str
    energyMode: str
    totalBars: int
    channels: dict[str, list[NoteEventDict]]
    plan: NotRequired[ArrangementPlanDict | None]
    qaReport: NotRequired[QAReportDict | None]


class TrackStatsDict(TypedDict):
    name: str
    noteCount: int
    density: float
    rhythmMask16: list[float]
    pitchMin: int
    pitchMax: int
    avgVelocity: float


class StyleProfileDict(TypedDict):
    genre: str
    avgLeadDensity: float
    avgBassDensity: float
    rhythmMask16: list[float]
    pitchRange: list[int]
    sampleCount: int
    leadTrackCount: int
    bassTrackCount: int
    updatedAt: str


class ChannelSegmentsDict(TypedDict):
    id: str
    segments: list[list[int]]


class StoryMapDict(TypedDict):
    grooveId: str
    totalBars: int
    channels: list[ChannelSegmentsDict]
