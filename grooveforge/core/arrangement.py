"""
Arrangement planner: the six-phase structural blueprint of a track.

The plan is a pure function of its inputs (tempo, optionally a duration or
explicit phase lengths). It tells generation which channels to populate in
each bar range and tells the QA scorer which sections should contain what.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from grooveforge.contracts.json_types import ArrangementPlanDict, PhaseDict
from grooveforge.core.channels import Channel, parse_channel
from grooveforge.core.tick_grid import BEATS_PER_BAR

PHRASE_BARS = 8
MIN_TOTAL_BARS = 48


class PhaseName(str, Enum):
    INTRO = "INTRO"
    BUILD = "BUILD"
    DROP_1 = "DROP_1"
    BREAKDOWN = "BREAKDOWN"
    DROP_2 = "DROP_2"
    OUTRO = "OUTRO"


DROP_PHASES: frozenset[PhaseName] = frozenset({PhaseName.DROP_1, PhaseName.DROP_2})
PEAK_PHASE = PhaseName.DROP_2


@dataclass(frozen=True)
class PhaseTemplate:
    name: PhaseName
    bars: int
    channels: frozenset[Channel]
    density: float
    energy: float


_C = Channel

DEFAULT_BLUEPRINT: tuple[PhaseTemplate, ...] = (
    PhaseTemplate(
        PhaseName.INTRO, 32,
        frozenset({_C.KICK, _C.SUB, _C.PAD, _C.PERC_LOOP, _C.HH_CLOSED}),
        density=0.3, energy=0.1,
    ),
    PhaseTemplate(
        PhaseName.BUILD, 32,
        frozenset({_C.KICK, _C.SUB, _C.HH_CLOSED, _C.ARP_A, _C.PAD, _C.SYNTH}),
        density=0.6, energy=0.3,
    ),
    PhaseTemplate(
        PhaseName.DROP_1, 48,
        frozenset({
            _C.KICK, _C.SUB, _C.MID_BASS, _C.SNARE, _C.CLAP, _C.HH_OPEN,
            _C.HH_CLOSED, _C.LEAD_B, _C.PERC_LOOP,
        }),
        density=0.85, energy=0.7,
    ),
    PhaseTemplate(
        PhaseName.BREAKDOWN, 32,
        frozenset({_C.PAD, _C.LEAD_A, _C.PERC_LOOP, _C.SYNTH}),
        density=0.4, energy=0.5,
    ),
    PhaseTemplate(
        PhaseName.DROP_2, 48,
        frozenset({
            _C.KICK, _C.SUB, _C.MID_BASS, _C.SNARE, _C.CLAP, _C.HH_OPEN,
            _C.HH_CLOSED, _C.PERC_TRIBAL, _C.LEAD_A, _C.ACID, _C.ARP_A, _C.ARP_B,
        }),
        density=1.0, energy=1.0,
    ),
    PhaseTemplate(
        PhaseName.OUTRO, 32,
        frozenset({_C.KICK, _C.SUB, _C.PAD, _C.PERC_LOOP}),
        density=0.3, energy=0.1,
    ),
)


@dataclass(frozen=True)
class Phase:
    name: PhaseName
    start_bar: int
    end_bar: int  # exclusive
    channels: frozenset[Channel]
    density: float
    energy: float

    @property
    def bars(self) -> int:
        return self.end_bar - self.start_bar

    def contains(self, bar: int) -> bool:
        return self.start_bar <= bar < self.end_bar

    def to_dict(self) -> PhaseDict:
        return {
            "name": self.name.value,
            "startBar": self.start_bar,
            "endBar": self.end_bar,
            "channels": sorted(ch.value for ch in self.channels),
            "density": self.density,
            "energy": self.energy,
        }


@dataclass(frozen=True)
class ArrangementPlan:
    bpm: float
    phases: tuple[Phase, ...] = field(default_factory=tuple)

    @property
    def total_bars(self) -> int:
        return self.phases[-1].end_bar if self.phases else 0

    @property
    def peak_bar(self) -> int:
        """First bar of the second drop."""
        return self.phase(PEAK_PHASE).start_bar

    def phase(self, name: PhaseName) -> Phase:
        for phase in self.phases:
            if phase.name == name:
                return phase
        raise KeyError(name)

    def phase_at(self, bar: int) -> Optional[Phase]:
        for phase in self.phases:
            if phase.contains(bar):
                return phase
        return None

    def drops(self) -> list[Phase]:
        return [p for p in self.phases if p.name in DROP_PHASES]

    def channel_active_at(self, channel: Channel, bar: int) -> bool:
        phase = self.phase_at(bar)
        return phase is not None and channel in phase.channels

    def to_dict(self) -> ArrangementPlanDict:
        return {
            "bpm": self.bpm,
            "totalBars": self.total_bars,
            "peakBar": self.peak_bar,
            "phases": [p.to_dict() for p in self.phases],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArrangementPlan:
        phases = tuple(
            Phase(
                name=PhaseName(p["name"]),
                start_bar=int(p["startBar"]),
                end_bar=int(p["endBar"]),
                channels=frozenset(parse_channel(c) for c in p.get("channels", [])),
                density=float(p.get("density", 0.0)),
                energy=float(p.get("energy", 0.0)),
            )
            for p in data.get("phases", [])
        )
        return cls(bpm=float(data.get("bpm", 0.0)), phases=phases)


def minutes_to_bars(minutes: float, bpm: float) -> int:
    """Bars of 4/4 that fit in ``minutes`` at ``bpm``."""
    return int(round(minutes * bpm / BEATS_PER_BAR))


def build_plan(bpm: float, phase_lengths: Optional[dict[PhaseName, int]] = None) -> ArrangementPlan:
    """Lay the six phases end to end.

    ``phase_lengths`` overrides individual phase lengths; each must be a
    positive multiple of eight bars.
    """
    overrides = phase_lengths or {}
    phases: list[Phase] = []
    cursor = 0
    for template in DEFAULT_BLUEPRINT:
        bars = overrides.get(template.name, template.bars)
        if bars <= 0 or bars % PHRASE_BARS:
            raise ValueError(
                f"Phase {template.name.value} must be a positive multiple of "
                f"{PHRASE_BARS} bars, got {bars}"
            )
        phases.append(Phase(
            name=template.name,
            start_bar=cursor,
            end_bar=cursor + bars,
            channels=template.channels,
            density=template.density,
            energy=template.energy,
        ))
        cursor += bars
    return ArrangementPlan(bpm=bpm, phases=tuple(phases))


def plan_for_duration(bpm: float, minutes: float) -> ArrangementPlan:
    """Scale the blueprint so the track lasts roughly ``minutes``.

    Every phase keeps its share of the default 224 bars, rounded to whole
    phrases (at least one each); the drops absorb any rounding remainder.
    """
    target = minutes_to_bars(minutes, bpm)
    target = max(MIN_TOTAL_BARS, int(round(target / PHRASE_BARS)) * PHRASE_BARS)
    default_total = sum(t.bars for t in DEFAULT_BLUEPRINT)

    phrases = {
        t.name: max(1, int(round(t.bars * target / default_total / PHRASE_BARS)))
        for t in DEFAULT_BLUEPRINT
    }
    remainder = target // PHRASE_BARS - sum(phrases.values())
    absorb_order = (PhaseName.DROP_2, PhaseName.DROP_1, PhaseName.BUILD, PhaseName.BREAKDOWN)
    while remainder:
        moved = False
        for name in absorb_order:
            if remainder > 0:
                phrases[name] += 1
                remainder -= 1
                moved = True
            elif phrases[name] > 1:
                phrases[name] -= 1
                remainder += 1
                moved = True
            if not remainder:
                break
        if not moved:
            break
    return build_plan(bpm, {name: count * PHRASE_BARS for name, count in phrases.items()})
