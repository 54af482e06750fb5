"""Canonical note-data primitive type aliases.

Single source of truth for the value ranges used throughout GrooveForge.

These ``Annotated`` aliases carry constraint metadata at every layer:

- **Pydantic BaseModel fields**: ``Field`` constraints are enforced at
  parse/validation time, so invalid values raise ``ValidationError``
  before they ever reach the generators.
- **TypedDicts**: the named alias self-documents the expected range.
- **Dataclasses**: use ``_assert_range`` in ``__post_init__`` for runtime checks.

Ranges
------
+-------------------+-------------------+----------------------------------+
| Primitive         | Range             | Notes                            |
+===================+===================+==================================+
| Pitch             | 0 – 127           | C-1=0, Middle C=60               |
| Velocity          | 0.0 – 1.0         | Normalized; 1.0 = full accent    |
| Tick              | ≥ 0               | 480 per quarter, 1920 per bar    |
| Duration          | > 0               | Ticks; strictly positive         |
| Tempo (BPM)       | 60 – 200          | Dance tempos live in 120–150     |
| Bars              | ≥ 1               | Positive integer                 |
| Mask slot         | 0.0 – 1.0         | One per sixteenth, 16 per bar    |
+-------------------+-------------------+----------------------------------+
"""
from __future__ import annotations

from typing import Annotated

from pydantic import Field


MidiPitch = Annotated[int, Field(ge=0, le=127)]
"""MIDI note number. C-1 = 0, Middle C = 60."""

MidiVelocity = Annotated[int, Field(ge=0, le=127)]
"""Raw MIDI velocity, as found in reference transcripts."""

UnitVelocity = Annotated[float, Field(ge=0.0, le=1.0)]
"""Normalized note velocity used by every generated Note Event."""

Tick = Annotated[int, Field(ge=0)]
"""Absolute tick position on the 480-PPQ grid."""

DurationTicks = Annotated[int, Field(gt=0)]
"""Note duration in ticks. Zero-length notes are invalid."""

TempoBPM = Annotated[float, Field(ge=60.0, le=200.0)]
"""Composition tempo in beats per minute."""

Bars = Annotated[int, Field(ge=1)]
"""Bar count. Always a positive integer."""

MaskValue = Annotated[float, Field(ge=0.0, le=1.0)]
"""Weight of one sixteenth-note slot in a rhythm mask."""


def _assert_range(value: int | float, lo: int | float, hi: int | float, name: str) -> None:
    """Raise ``ValueError`` when ``value`` is outside ``[lo, hi]``.

    Used in dataclass ``__post_init__`` methods where Pydantic's field
    validation is unavailable.
    """
    if not (lo <= value <= hi):
        raise ValueError(f"{name} must be in [{lo}, {hi}], got {value!r}")
