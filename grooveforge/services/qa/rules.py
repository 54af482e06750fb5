"""Per-genre rule sets consulted by the scorer and by generation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from grooveforge.core.arrangement import PEAK_PHASE, Phase
from grooveforge.core.channels import DRIVER_CHANNELS, Channel
from grooveforge.core.genres import TEMPO_RANGE, Genre, resolve_genre


@dataclass(frozen=True)
class GenreRules:
    """
    What a genre demands of a finished arrangement.

    Attributes:
        genre: Genre these rules belong to (None for the generic fallback).
        min_sub_coverage: Share of drop kick bars that must carry sub; below is a violation.
        max_lead_notes_per_bar: Ceiling on lead events per drop bar (sparse genres).
        min_lead_notes_per_bar: Floor on lead events per drop bar (busy genres).
        tempo_range: Expected BPM window.
        forbid_pad_in_peak: The peak phase must not carry the pad.
        max_peak_drivers: Most melodic drivers allowed to play in the peak phase.
        peak_drivers: Drivers kept in the peak when ``max_peak_drivers`` applies, in priority order.
    """
    genre: Optional[Genre] = None
    min_sub_coverage: Optional[float] = None
    max_lead_notes_per_bar: Optional[float] = None
    min_lead_notes_per_bar: Optional[float] = None
    tempo_range: Optional[tuple[float, float]] = None
    forbid_pad_in_peak: bool = False
    max_peak_drivers: Optional[int] = None
    peak_drivers: tuple[Channel, ...] = (Channel.LEAD_A, Channel.ACID, Channel.ARP_A)

    def phase_channels(self, phase: Phase) -> frozenset[Channel]:
        """The phase's allow-list after this genre's peak restrictions."""
        allowed = set(phase.channels)
        if phase.name != PEAK_PHASE:
            return frozenset(allowed)
        if self.forbid_pad_in_peak:
            allowed.discard(Channel.PAD)
        if self.max_peak_drivers is not None:
            drivers = [c for c in self.peak_drivers if c in allowed]
            drivers += sorted((c for c in allowed & DRIVER_CHANNELS if c not in drivers), key=lambda c: c.value)
            for extra in drivers[self.max_peak_drivers:]:
                allowed.discard(extra)
        return frozenset(allowed)


GENERIC_RULES = GenreRules()

GENRE_RULES: dict[Genre, GenreRules] = {
    Genre.FULL_ON: GenreRules(
        genre=Genre.FULL_ON,
        min_sub_coverage=0.9,
        min_lead_notes_per_bar=1.0,
        tempo_range=TEMPO_RANGE[Genre.FULL_ON],
    ),
    Genre.POWER_GROOVE: GenreRules(
        genre=Genre.POWER_GROOVE,
        tempo_range=TEMPO_RANGE[Genre.POWER_GROOVE],
    ),
    Genre.GOA: GenreRules(
        genre=Genre.GOA,
        tempo_range=TEMPO_RANGE[Genre.GOA],
    ),
    Genre.MELODIC_TECHNO: GenreRules(
        genre=Genre.MELODIC_TECHNO,
        max_lead_notes_per_bar=4.0,
        tempo_range=TEMPO_RANGE[Genre.MELODIC_TECHNO],
    ),
    Genre.TECHNO_PEAK: GenreRules(
        genre=Genre.TECHNO_PEAK,
        max_lead_notes_per_bar=4.0,
        tempo_range=TEMPO_RANGE[Genre.TECHNO_PEAK],
        forbid_pad_in_peak=True,
        max_peak_drivers=1,
    ),
}


def rules_for(genre_label: Optional[str]) -> GenreRules:
    genre = resolve_genre(genre_label)
    if genre is None:
        return GENERIC_RULES
    return GENRE_RULES[genre]
