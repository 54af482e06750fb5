"""
Tick grid: the one place tick positions and "bar:beat:sixteenth" addresses meet.

The grid is fixed at 480 ticks per quarter note in 4/4, so a bar is 1920
ticks and a sixteenth is 120. Addresses are always derived from ticks with
``tick_to_address``; nothing in the engine stores an address on its own.
"""
from __future__ import annotations

TICKS_PER_QUARTER = 480
BEATS_PER_BAR = 4
TICKS_PER_BAR = TICKS_PER_QUARTER * BEATS_PER_BAR
TICKS_PER_SIXTEENTH = TICKS_PER_QUARTER // 4
STEPS_PER_BAR = TICKS_PER_BAR // TICKS_PER_SIXTEENTH
STEPS_PER_BEAT = STEPS_PER_BAR // BEATS_PER_BAR


def tick_to_address(tick: int) -> str:
    """Return the ``bar:beat:sixteenth`` address for an absolute tick."""
    if tick < 0:
        raise ValueError(f"tick must be non-negative, got {tick}")
    bar = tick // TICKS_PER_BAR
    beat = (tick % TICKS_PER_BAR) // TICKS_PER_QUARTER
    sixteenth = (tick % TICKS_PER_QUARTER) // TICKS_PER_SIXTEENTH
    return f"{bar}:{beat}:{sixteenth}"


def address_to_tick(address: str) -> int:
    """Parse a ``bar:beat:sixteenth`` address back to its tick."""
    parts = address.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Malformed time address: {address!r}")
    bar, beat, sixteenth = (int(p) for p in parts)
    if bar < 0 or not 0 <= beat < BEATS_PER_BAR or not 0 <= sixteenth < STEPS_PER_BEAT:
        raise ValueError(f"Time address out of range: {address!r}")
    return bar * TICKS_PER_BAR + beat * TICKS_PER_QUARTER + sixteenth * TICKS_PER_SIXTEENTH


def step_tick(bar_index: int, step: int) -> int:
    """Tick of a sixteenth-note step inside a bar."""
    return bar_index * TICKS_PER_BAR + step * TICKS_PER_SIXTEENTH


def bar_of(tick: int) -> int:
    return tick // TICKS_PER_BAR


def step_of(tick: int) -> int:
    """Sixteenth-note step (0-15) within the bar containing ``tick``."""
    return (tick % TICKS_PER_BAR) // TICKS_PER_SIXTEENTH


def is_on_quarter(tick: int) -> bool:
    return tick % TICKS_PER_QUARTER == 0


def quantize(tick: int, grid: int = TICKS_PER_SIXTEENTH) -> int:
    """Round a tick to the nearest multiple of ``grid``."""
    return int(round(tick / grid)) * grid
