"""
Note Event and Groove: the data every generator writes and every pass reads.

These are plain dataclasses rather than Pydantic models: they are mutated in
place by generation and healing, and only cross the wire through
``to_dict`` / ``from_dict``.
"""
from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from grooveforge.contracts.json_types import GrooveDict, NoteEventDict
from grooveforge.core.channels import ALL_CHANNELS, Channel, parse_channel
from grooveforge.core.tick_grid import (
    TICKS_PER_SIXTEENTH,
    address_to_tick,
    bar_of,
    tick_to_address,
)

if TYPE_CHECKING:
    from grooveforge.core.arrangement import ArrangementPlan
    from grooveforge.services.qa.scorer import QAReport

logger = logging.getLogger(__name__)


def clamp_velocity(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class NoteEvent:
    """One sounded note, or a chord when ``note`` is a list of names.

    ``start_tick`` is ``None`` only for malformed events read from an external
    seed; healing skips them and scoring ignores them.
    """

    note: str | list[str]
    start_tick: Optional[int]
    duration_ticks: int = TICKS_PER_SIXTEENTH
    velocity: float = 0.8
    tick_offset: int = 0

    def __post_init__(self) -> None:
        self.velocity = clamp_velocity(self.velocity)

    @property
    def pitches(self) -> list[str]:
        return list(self.note) if isinstance(self.note, list) else [self.note]

    @property
    def is_chord(self) -> bool:
        return isinstance(self.note, list)

    @property
    def is_valid(self) -> bool:
        return isinstance(self.start_tick, int) and self.start_tick >= 0 and bool(self.pitches)

    @property
    def time(self) -> Optional[str]:
        """``bar:beat:sixteenth`` address, always derived from ``start_tick``."""
        if self.start_tick is None:
            return None
        return tick_to_address(self.start_tick)

    @property
    def bar(self) -> Optional[int]:
        return None if self.start_tick is None else bar_of(self.start_tick)

    @property
    def effective_tick(self) -> int:
        """Where the note actually sounds once micro-timing is applied."""
        if self.start_tick is None:
            raise ValueError("Note has no start tick")
        return max(0, self.start_tick + self.tick_offset)

    @property
    def end_tick(self) -> int:
        if self.start_tick is None:
            raise ValueError("Note has no start tick")
        return self.start_tick + self.duration_ticks

    def copy(self) -> NoteEvent:
        return NoteEvent(
            note=list(self.note) if isinstance(self.note, list) else self.note,
            start_tick=self.start_tick,
            duration_ticks=self.duration_ticks,
            velocity=self.velocity,
            tick_offset=self.tick_offset,
        )

    def to_dict(self) -> NoteEventDict:
        data: NoteEventDict = {
            "note": list(self.note) if isinstance(self.note, list) else self.note,
            "startTick": self.start_tick,
            "time": self.time,
            "durationTicks": self.duration_ticks,
            "velocity": round(self.velocity, 4),
        }
        if self.tick_offset:
            data["tickOffset"] = self.tick_offset
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteEvent:
        """Build from a wire dict; a missing or unreadable start becomes ``None``."""
        start = data.get("startTick", data.get("start_tick"))
        if start is None and isinstance(data.get("time"), str):
            try:
                start = address_to_tick(data["time"])
            except ValueError:
                logger.warning(f"Unreadable time address {data['time']!r}; keeping note as malformed")
                start = None
        if start is not None:
            try:
                start = int(start)
            except (TypeError, ValueError):
                start = None

        duration = data.get("durationTicks", data.get("duration_ticks", TICKS_PER_SIXTEENTH))
        velocity = float(data.get("velocity", 0.8))
        if velocity > 1.0:
            velocity = velocity / 127.0
        note = data.get("note", data.get("pitches", ""))
        return cls(
            note=list(note) if isinstance(note, (list, tuple)) else note,
            start_tick=start,
            duration_ticks=max(1, int(duration)),
            velocity=velocity,
            tick_offset=int(data.get("tickOffset", data.get("tick_offset", 0))),
        )


def read_note(raw: Any) -> NoteEvent:
    """``NoteEvent.from_dict`` that never raises: an unreadable entry comes back malformed."""
    if isinstance(raw, dict):
        try:
            return NoteEvent.from_dict(raw)
        except (TypeError, ValueError) as e:
            reason = str(e)
        note = raw.get("note", "")
    else:
        reason = f"expected an object, got {type(raw).__name__}"
        note = ""
    logger.warning(f"Unreadable note {raw!r} ({reason}); keeping it as malformed")
    if not isinstance(note, str):
        note = [str(p) for p in note] if isinstance(note, (list, tuple)) else ""
    return NoteEvent(note=note, start_tick=None)


def sort_notes(notes: list[NoteEvent]) -> list[NoteEvent]:
    """Order by start tick; malformed notes (no start) sink to the end."""
    return sorted(notes, key=lambda n: (n.start_tick is None, n.start_tick or 0))


def _empty_channels() -> dict[Channel, list[NoteEvent]]:
    return {channel: [] for channel in ALL_CHANNELS}


@dataclass
class Groove:
    """The full 16-channel arrangement for one generated track."""

    bpm: float
    key: str
    scale: str
    total_bars: int
    genre: str = ""
    name: str = ""
    energy_mode: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    channels: dict[Channel, list[NoteEvent]] = field(default_factory=_empty_channels)
    plan: Optional[ArrangementPlan] = None
    qa_report: Optional[QAReport] = None

    def __post_init__(self) -> None:
        for channel in ALL_CHANNELS:
            self.channels.setdefault(channel, [])

    def notes(self, channel: Channel) -> list[NoteEvent]:
        return self.channels[channel]

    def set_notes(self, channel: Channel, notes: list[NoteEvent]) -> None:
        self.channels[channel] = sort_notes(notes)

    def valid_notes(self, channel: Channel) -> list[NoteEvent]:
        return [n for n in self.channels[channel] if n.is_valid]

    def active_bars(self, channel: Channel) -> set[int]:
        return {bar_of(n.start_tick) for n in self.valid_notes(channel)}  # type: ignore[arg-type]

    def copy(self) -> Groove:
        clone = copy.copy(self)
        clone.channels = {ch: [n.copy() for n in notes] for ch, notes in self.channels.items()}
        return clone

    def to_dict(self) -> GrooveDict:
        data: GrooveDict = {
            "id": self.id,
            "name": self.name,
            "genre": self.genre,
            "bpm": self.bpm,
            "key": self.key,
            "scale": self.scale,
            "energyMode": self.energy_mode,
            "totalBars": self.total_bars,
            "channels": {ch.value: [n.to_dict() for n in self.channels[ch]] for ch in ALL_CHANNELS},
        }
        data["plan"] = self.plan.to_dict() if self.plan else None
        data["qaReport"] = self.qa_report.to_dict() if self.qa_report else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Groove:
        """Load an external seed. Unknown channel ids are dropped with a warning.

        The QA report is not read back; score the groove again instead.
        """
        channels = _empty_channels()
        for raw_channel, raw_notes in (data.get("channels") or {}).items():
            try:
                channel = parse_channel(raw_channel)
            except ValueError:
                logger.warning(f"Ignoring unknown channel {raw_channel!r} in groove seed")
                continue
            channels[channel] = sort_notes([read_note(n) for n in raw_notes or []])

        plan = None
        if data.get("plan"):
            from grooveforge.core.arrangement import ArrangementPlan

            plan = ArrangementPlan.from_dict(data["plan"])

        groove = cls(
            bpm=float(data.get("bpm", 140.0)),
            key=str(data.get("key", "C")),
            scale=str(data.get("scale", "Major")),
            total_bars=int(data.get("totalBars", data.get("total_bars", 0))),
            genre=str(data.get("genre", "")),
            name=str(data.get("name", "")),
            energy_mode=str(data.get("energyMode", data.get("energy_mode", ""))),
            channels=channels,
            plan=plan,
        )
        if data.get("id"):
            groove.id = str(data["id"])
        if not groove.total_bars:
            last = [n.bar for ch in ALL_CHANNELS for n in channels[ch] if n.bar is not None]
            groove.total_bars = (max(last) + 1) if last else 0
        return groove
