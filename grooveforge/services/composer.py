"""
Composer: turns a generation request into a scored, healed groove.

Flow for one attempt:
  plan -> session mask + motif -> per-channel bars (inside allowed phases)
  -> phrase dynamics -> healing -> QA score

A failing attempt is re-healed once with the corrective steps and scored
again. If it still fails, a new attempt runs with a fresh seed, up to
``settings.max_generation_attempts``; the best-scoring groove is returned
either way.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Sequence

from grooveforge.config import settings
from grooveforge.contracts.json_types import ChannelSegmentsDict, StoryMapDict
from grooveforge.core.arrangement import ArrangementPlan, plan_for_duration
from grooveforge.core.channels import (
    ALL_CHANNELS,
    CHANNEL_ROLES,
    LEAD_CHANNELS,
    ROLE_OCTAVES,
    Channel,
    Role,
)
from grooveforge.core.genres import default_bpm_for
from grooveforge.core.groove import Groove, NoteEvent
from grooveforge.core.theory import root_pitch, scale_intervals
from grooveforge.core.tick_grid import STEPS_PER_BAR, bar_of, is_on_quarter, quantize
from grooveforge.models.requests import (
    BpmMode,
    EnergyMode,
    GenerateGrooveRequest,
    GenerationMode,
)
from grooveforge.services.expressiveness import apply_phrase_dynamics
from grooveforge.services.foundation import (
    MID_BASS_ANSWER_DEGREE,
    PERCUSSION_CHANNELS,
    BassPattern,
    KickArchetype,
    render_bass_bar,
    render_kick_bar,
    render_percussion_bar,
    select_bass_pattern,
    select_kick_archetype,
)
from grooveforge.services.healing import (
    CORRECTIVE_STEPS,
    HealingReport,
    heal_groove,
)
from grooveforge.services.motif import (
    Complexity,
    Motif,
    create_motif,
    motif_from_ints,
    motif_to_ints,
    mutate_motif,
    render_bar,
)
from grooveforge.services.qa import QAReport, rules_for, score_groove
from grooveforge.services.qa.rules import GenreRules
from grooveforge.services.style_profile import (
    StyleProfile,
    StyleProfileStore,
    get_style_profile_store,
)

logger = logging.getLogger(__name__)

MOTIF_LENGTH = STEPS_PER_BAR
MOTIF_DEGREE_RANGE = 7
# When set, complex mode plays the base motif unmutated every N bars.
RESTATE_EVERY_BARS: Optional[int] = None
LOOP_BARS = 4
LOOP_GRID_TICKS = 30

ENERGY_COMPLEXITY: dict[EnergyMode, Complexity] = {
    EnergyMode.EARLY_WARMUP: Complexity.SIMPLE,
    EnergyMode.PEAK_TIME: Complexity.COMPLEX,
    EnergyMode.LATE_NIGHT: Complexity.COMPLEX,
}


@dataclass
class GeneratedGroove:
    """
    A freshly generated (not yet healed) groove and the choices behind it.

    Attributes:
        groove: The arrangement with its plan attached.
        motif: Base motif every melodic channel was drawn from.
        session_mask: Coherence mask shared by every channel in the run.
        complexity: Complexity the bars were rendered at.
        kick_archetype: Name of the kick archetype used.
        bass_pattern: Name of the bass pattern used.
    """
    groove: Groove
    motif: Motif
    session_mask: list[int]
    complexity: Complexity
    kick_archetype: str
    bass_pattern: str


@dataclass
class CompositionResult:
    groove: Groove
    report: QAReport
    healing: HealingReport
    attempts: int
    accepted: bool
    motif: list[int] = field(default_factory=list)
    session_mask: list[int] = field(default_factory=list)
    all_scores: list[float] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Request resolution
# -----------------------------------------------------------------------------

def resolve_complexity(request: GenerateGrooveRequest) -> Complexity:
    if request.complexity is not None:
        return request.complexity
    return ENERGY_COMPLEXITY[request.energy_mode]


def resolve_bpm(request: GenerateGrooveRequest) -> float:
    """AUTO mode (or no tempo at all) takes the genre's default; MANUAL keeps the request's."""
    if request.bpm_mode == BpmMode.AUTO or request.bpm is None:
        return default_bpm_for(request.genre, request.bpm or settings.default_bpm)
    return float(request.bpm)


def resolve_profile(
    request: GenerateGrooveRequest,
    store: Optional[StyleProfileStore] = None,
) -> Optional[StyleProfile]:
    """An inline profile wins over the stored one for the request's genre."""
    if request.style_profile is not None:
        return request.style_profile.to_profile(request.genre)
    store = store or get_style_profile_store()
    return store.get(request.genre)


def build_session_mask(rng: random.Random) -> list[int]:
    return [1 if rng.random() < 0.5 else 0 for _ in range(STEPS_PER_BAR)]


def resolve_motif(
    request: GenerateGrooveRequest,
    profile: Optional[StyleProfile],
    rng: random.Random,
) -> Motif:
    if request.mode == GenerationMode.EVOLVE:
        if request.motif:
            return mutate_motif(motif_from_ints(request.motif), MOTIF_DEGREE_RANGE, rng=rng)
        logger.info("EVOLVE requested without a motif; drawing a new one")
    elif request.motif:
        return motif_from_ints(request.motif)
    return create_motif(MOTIF_LENGTH, MOTIF_DEGREE_RANGE, profile, rng=rng)


# -----------------------------------------------------------------------------
# Channel rendering
# -----------------------------------------------------------------------------

def bar_motif(
    motif: Motif,
    bar_index: int,
    complexity: Complexity,
    rng: random.Random,
    restate_every: Optional[int] = None,
) -> Motif:
    """Complex mode mutates every bar after the first; simple never does.

    ``restate_every`` (default ``RESTATE_EVERY_BARS``) keeps the base motif on
    every N-th bar instead.
    """
    restate_every = restate_every or RESTATE_EVERY_BARS
    if complexity == Complexity.SIMPLE or bar_index == 0:
        return motif
    if restate_every and bar_index % restate_every == 0:
        return motif
    return mutate_motif(motif, MOTIF_DEGREE_RANGE, rng=rng)


def render_channel_bar(
    channel: Channel,
    bar_index: int,
    key: str,
    intervals: Sequence[int],
    motif: Motif,
    complexity: Complexity,
    profile: Optional[StyleProfile],
    session_mask: Sequence[int],
    rng: random.Random,
    kick_archetype: Optional[KickArchetype] = None,
    bass_pattern: Optional[BassPattern] = None,
) -> list[NoteEvent]:
    """Dispatch one bar of one channel to the generator its role calls for."""
    role = CHANNEL_ROLES[channel]
    if role == Role.KICK:
        return render_kick_bar(bar_index, complexity, kick_archetype, profile, session_mask)
    if channel in PERCUSSION_CHANNELS:
        return render_percussion_bar(channel, bar_index, complexity, session_mask)

    root = root_pitch(key, ROLE_OCTAVES[channel])
    if role == Role.BASS:
        answer = intervals[MID_BASS_ANSWER_DEGREE % len(intervals)] if channel == Channel.MID_BASS else None
        return render_bass_bar(bar_index, root, complexity, bass_pattern, profile, session_mask, answer)

    return render_bar(
        bar_index, root, intervals, role,
        bar_motif(motif, bar_index, complexity, rng),
        complexity, profile, session_mask, rng=rng,
    )


def channel_bars(plan: ArrangementPlan, channel: Channel, rules: GenreRules) -> list[int]:
    """Bars in which ``channel`` may play under the plan and the genre's peak rules."""
    return [
        bar
        for phase in plan.phases
        if channel in rules.phase_channels(phase)
        for bar in range(phase.start_bar, phase.end_bar)
    ]


def thin_lead_bars(groove: Groove, max_per_bar: float) -> int:
    """Cap lead events per bar, keeping quarter-note hits first. Returns notes dropped."""
    cap = int(max_per_bar)
    dropped = 0
    for channel in LEAD_CHANNELS:
        by_bar: dict[int, list[NoteEvent]] = {}
        for note in groove.valid_notes(channel):
            by_bar.setdefault(bar_of(note.start_tick), []).append(note)  # type: ignore[arg-type]
        kept: list[NoteEvent] = []
        for notes in by_bar.values():
            if len(notes) > cap:
                ranked = sorted(notes, key=lambda n: (not is_on_quarter(n.start_tick), n.start_tick))  # type: ignore[arg-type]
                dropped += len(notes) - cap
                notes = ranked[:cap]
            kept.extend(notes)
        groove.set_notes(channel, kept)
    if dropped:
        logger.debug(f"Thinned {dropped} lead notes to {cap}/bar")
    return dropped


def generate_groove(
    request: GenerateGrooveRequest,
    profile: Optional[StyleProfile] = None,
    rng: Optional[random.Random] = None,
) -> GeneratedGroove:
    """Build one unhealed groove for ``request``."""
    rng = rng or random.Random()
    bpm = resolve_bpm(request)
    plan = plan_for_duration(bpm, request.duration_minutes)
    rules = rules_for(request.genre)
    complexity = resolve_complexity(request)
    intervals = scale_intervals(request.scale)

    session_mask = list(request.session_mask) if request.session_mask else build_session_mask(rng)
    motif = resolve_motif(request, profile, rng)
    kick_archetype = select_kick_archetype(profile, rng)
    bass_pattern = select_bass_pattern(rng)

    groove = Groove(
        bpm=bpm,
        key=request.key,
        scale=request.scale,
        total_bars=plan.total_bars,
        genre=request.genre,
        name=request.name or f"{request.genre} Session",
        energy_mode=request.energy_mode.value,
        plan=plan,
    )

    channels = request.channels or list(ALL_CHANNELS)
    for channel in channels:
        notes: list[NoteEvent] = []
        for bar_index in channel_bars(plan, channel, rules):
            notes.extend(render_channel_bar(
                channel, bar_index, request.key, intervals, motif, complexity,
                profile, session_mask, rng, kick_archetype, bass_pattern,
            ))
        groove.set_notes(channel, notes)

    apply_phrase_dynamics(groove, list(channels), rng)
    if rules.max_lead_notes_per_bar is not None:
        thin_lead_bars(groove, rules.max_lead_notes_per_bar)

    logger.info(
        f"Generated {groove.name!r}: {plan.total_bars} bars at {bpm:g} BPM, "
        f"{complexity.value.lower()}, kick {kick_archetype.name}, bass {bass_pattern.name}"
    )
    return GeneratedGroove(
        groove=groove,
        motif=motif,
        session_mask=session_mask,
        complexity=complexity,
        kick_archetype=kick_archetype.name,
        bass_pattern=bass_pattern.name,
    )


# -----------------------------------------------------------------------------
# Generate -> heal -> score loop
# -----------------------------------------------------------------------------

def heal_and_score(
    groove: Groove,
    channels: Sequence[Channel],
    rng: random.Random,
    pass_threshold: float,
) -> tuple[QAReport, HealingReport]:
    """Full healing pass, score, and one corrective re-heal if the score fails."""
    healing = heal_groove(groove, channels, rng=rng)
    report = score_groove(groove, channels, pass_threshold)
    if not report.passed:
        logger.info(f"QA failed at {report.score}; re-healing")
        healing.absorb(heal_groove(groove, channels, rng=rng, steps=CORRECTIVE_STEPS))
        report = score_groove(groove, channels, pass_threshold)
    report.fixes = healing.fixes
    groove.qa_report = report
    return report, healing


def compose_groove(
    request: GenerateGrooveRequest,
    store: Optional[StyleProfileStore] = None,
    max_attempts: Optional[int] = None,
) -> CompositionResult:
    """Generate, heal and score until a groove passes or attempts run out."""
    max_attempts = settings.max_generation_attempts if max_attempts is None else max_attempts
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    threshold = settings.qa_pass_threshold
    profile = resolve_profile(request, store)
    channels = request.channels or list(ALL_CHANNELS)
    seeder = random.Random(request.seed)

    best: Optional[CompositionResult] = None
    all_scores: list[float] = []
    for attempt in range(max_attempts):
        rng = random.Random(seeder.getrandbits(32))
        generated = generate_groove(request, profile, rng)
        report, healing = heal_and_score(generated.groove, channels, rng, threshold)
        all_scores.append(report.score)

        if best is None or report.score > best.report.score:
            best = CompositionResult(
                groove=generated.groove,
                report=report,
                healing=healing,
                attempts=attempt + 1,
                accepted=report.passed,
                motif=motif_to_ints(generated.motif),
                session_mask=list(generated.session_mask),
            )
        if report.passed:
            logger.info(f"Groove accepted at attempt {attempt + 1} with score {report.score}")
            break
    else:
        logger.warning(
            f"No groove passed QA in {max_attempts} attempts; best score {best.report.score if best else 0}"
        )

    best.attempts = len(all_scores)
    best.all_scores = all_scores
    return best


# -----------------------------------------------------------------------------
# Single-channel loop & story map
# -----------------------------------------------------------------------------

def generate_loop(
    channel: Channel,
    key: str,
    scale: str,
    complexity: Complexity = Complexity.COMPLEX,
    motif: Optional[Sequence[int]] = None,
    session_mask: Optional[Sequence[int]] = None,
    profile: Optional[StyleProfile] = None,
    rng: Optional[random.Random] = None,
) -> list[NoteEvent]:
    """Four bars of one channel on their own, snapped to a 64th-note grid.

    The motif is mutated per bar only in complex mode, so a simple loop
    repeats exactly.
    """
    rng = rng or random.Random()
    base = motif_from_ints(motif) if motif else create_motif(MOTIF_LENGTH, MOTIF_DEGREE_RANGE, profile, rng=rng)
    intervals = scale_intervals(scale)
    kick_archetype = select_kick_archetype(profile, rng)
    bass_pattern = select_bass_pattern(rng)

    notes: list[NoteEvent] = []
    for bar_index in range(LOOP_BARS):
        notes.extend(render_channel_bar(
            channel, bar_index, key, intervals, base, complexity,
            profile, session_mask or [], rng, kick_archetype, bass_pattern,
        ))
    for note in notes:
        if note.start_tick is not None:
            note.start_tick = quantize(note.start_tick, LOOP_GRID_TICKS)
    return notes


def build_story_map(groove: Groove) -> StoryMapDict:
    """Contiguous ``[start, end)`` active-bar segments for every channel."""
    total = groove.total_bars
    channels: list[ChannelSegmentsDict] = []
    for channel in ALL_CHANNELS:
        active = groove.active_bars(channel)
        segments: list[list[int]] = []
        start: Optional[int] = None
        for bar in range(total):
            if bar in active and start is None:
                start = bar
            elif bar not in active and start is not None:
                segments.append([start, bar])
                start = None
        if start is not None:
            segments.append([start, total])
        channels.append({"id": channel.value, "segments": segments})
    return {"grooveId": groove.id, "totalBars": total, "channels": channels}
