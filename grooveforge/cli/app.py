"""GrooveForge CLI: Typer application root.

Entry point for the ``grooveforge`` console script.

Commands
--------

``grooveforge generate``
    Compose, heal and score a full groove; write the record as JSON.

``grooveforge plan``
    Print the phase boundaries for a tempo and duration.

``grooveforge score <groove.json>``
    Score an existing groove record.

``grooveforge ingest <reference.json>``
    Analyze a reference transcript and print the genre profile it yields.
    The store lives in-process, so the profile is only kept for this run.
"""
from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Optional

import typer
from pydantic import ValidationError
from typing_extensions import Annotated

from grooveforge.cli.errors import ExitCode, GrooveForgeCLIError, InputFileError
from grooveforge.config import settings
from grooveforge.core.arrangement import plan_for_duration
from grooveforge.core.channels import Channel, parse_channel
from grooveforge.core.groove import Groove
from grooveforge.models.requests import (
    EnergyMode,
    GenerateGrooveRequest,
    GenerationMode,
    IngestReferenceRequest,
)
from grooveforge.services.composer import compose_groove
from grooveforge.services.motif import Complexity
from grooveforge.services.qa import QAReport, score_groove
from grooveforge.services.style_profile import get_style_profile_store, learn_reference

logger = logging.getLogger(__name__)

cli = typer.Typer(
    name="grooveforge",
    help="GrooveForge - procedural composer for 16-channel EDM grooves.",
    no_args_is_help=True,
)


@cli.callback()
def _main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose or settings.debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_json(path: pathlib.Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        raise InputFileError(f"File not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise InputFileError(f"{path} is not valid JSON: {exc}") from None
    if not isinstance(data, dict):
        raise InputFileError(f"{path} must hold a JSON object")
    return data


def _parse_channels(raw: Optional[list[str]]) -> Optional[list[Channel]]:
    if not raw:
        return None
    try:
        return [parse_channel(value) for value in raw]
    except ValueError as exc:
        raise GrooveForgeCLIError(str(exc), ExitCode.USER_ERROR) from None


def _parse_motif(raw: Optional[str]) -> Optional[list[int]]:
    if raw is None:
        return None
    try:
        return [int(v) for v in raw.replace(",", " ").split()]
    except ValueError:
        raise GrooveForgeCLIError(
            f"Motif must be integers separated by spaces or commas, got {raw!r}", ExitCode.USER_ERROR,
        ) from None


def _format_report(report: QAReport) -> str:
    sub = report.sub_scores
    lines = [
        f"QA score {report.score:g}/100 - {'PASS' if report.passed else 'FAIL'}",
        f"  structural {sub.structural:g}  genre {sub.genre:g}  low end {sub.low_end:g}  "
        f"harmonic {sub.harmonic:g}  density {sub.density:g}  intelligence {sub.intelligence:g}",
        f"  active channels: {len(report.active_channels)}  empty: {', '.join(report.empty_channels) or '-'}",
    ]
    for title, entries in (
        ("Genre violations", report.genre_violations),
        ("Harmonic conflicts", report.harmonic_conflicts),
        ("Warnings", report.warnings),
        ("Fixes", report.fixes),
    ):
        if entries:
            lines.append(f"{title}:")
            lines.extend(f"  - {entry}" for entry in entries)
    return "\n".join(lines)


def _fail(command: str, exc: Exception) -> typer.Exit:
    if isinstance(exc, GrooveForgeCLIError):
        typer.echo(f"❌ {exc}", err=True)
        return typer.Exit(code=exc.exit_code)
    if isinstance(exc, ValidationError):
        typer.echo(f"❌ Invalid input:\n{exc}", err=True)
        return typer.Exit(code=ExitCode.USER_ERROR)
    typer.echo(f"❌ grooveforge {command} failed: {exc}", err=True)
    logger.error(f"❌ grooveforge {command} error: {exc}", exc_info=True)
    return typer.Exit(code=ExitCode.INTERNAL_ERROR)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@cli.command("generate")
def generate(
    genre: Annotated[str, typer.Option("--genre", "-g", help="Genre label.")] = "Full-On Psytrance",
    key: Annotated[str, typer.Option("--key", "-k", help="Root note, e.g. F#.")] = settings.default_key,
    scale: Annotated[str, typer.Option("--scale", "-s", help="Scale / mode name.")] = settings.default_scale,
    bpm: Annotated[
        Optional[float],
        typer.Option("--bpm", help="Tempo; the genre default when omitted.", show_default=False),
    ] = None,
    minutes: Annotated[
        float, typer.Option("--minutes", "-m", help="Target track length.", min=0.1),
    ] = settings.default_duration_minutes,
    energy: Annotated[EnergyMode, typer.Option("--energy", help="Energy mode.")] = EnergyMode.PEAK_TIME,
    complexity: Annotated[
        Optional[Complexity],
        typer.Option("--complexity", help="Override the energy mode's complexity.", show_default=False),
    ] = None,
    channel: Annotated[
        Optional[list[str]],
        typer.Option("--channel", "-c", help="Channel to populate (repeatable); all when omitted.", show_default=False),
    ] = None,
    motif: Annotated[
        Optional[str],
        typer.Option("--motif", help="Seed motif, e.g. '0 -1 2 -1 4'.", show_default=False),
    ] = None,
    evolve: Annotated[bool, typer.Option("--evolve", help="Mutate --motif instead of reusing it.")] = False,
    seed: Annotated[Optional[int], typer.Option("--seed", help="RNG seed.", show_default=False)] = None,
    output: Annotated[
        Optional[pathlib.Path],
        typer.Option("--output", "-o", help="Write the groove record here.", show_default=False),
    ] = None,
) -> None:
    """Compose, heal and score a full groove."""
    try:
        request = GenerateGrooveRequest(
            genre=genre,
            key=key,
            scale=scale,
            bpm=bpm,
            duration_minutes=minutes,
            energy_mode=energy,
            complexity=complexity,
            channels=_parse_channels(channel),
            motif=_parse_motif(motif),
            mode=GenerationMode.EVOLVE if evolve else GenerationMode.NEW,
            seed=seed,
        )
        result = compose_groove(request)
    except Exception as exc:
        raise _fail("generate", exc) from exc

    groove = result.groove
    typer.echo(
        f"🎛  {groove.name}: {groove.total_bars} bars at {groove.bpm:g} BPM in {groove.key} {groove.scale} "
        f"({result.attempts} attempt(s))"
    )
    typer.echo(_format_report(result.report))
    if output is not None:
        output.write_text(json.dumps(groove.to_dict(), indent=2))
        typer.echo(f"✅ Wrote {output}")
    if not result.accepted:
        typer.echo("⚠️  No attempt passed QA; kept the best-scoring groove")


@cli.command("plan")
def plan(
    bpm: Annotated[float, typer.Option("--bpm", help="Tempo.", min=60, max=200)] = settings.default_bpm,
    minutes: Annotated[float, typer.Option("--minutes", "-m", help="Target length.", min=0.1)] = settings.default_duration_minutes,
    as_json: Annotated[bool, typer.Option("--json", help="Emit machine-readable JSON output.")] = False,
) -> None:
    """Print the arrangement plan for a tempo and duration."""
    arrangement = plan_for_duration(bpm, minutes)
    if as_json:
        typer.echo(json.dumps(arrangement.to_dict(), indent=2))
        return
    typer.echo(f"{arrangement.total_bars} bars at {bpm:g} BPM (peak at bar {arrangement.peak_bar})")
    for phase in arrangement.phases:
        typer.echo(
            f"  {phase.name.value:<10} bars {phase.start_bar:>4}-{phase.end_bar - 1:<4} "
            f"{', '.join(sorted(c.value for c in phase.channels))}"
        )


@cli.command("score")
def score(
    path: Annotated[pathlib.Path, typer.Argument(help="Groove record (JSON).")],
    channel: Annotated[
        Optional[list[str]],
        typer.Option("--channel", "-c", help="Limit the audit to these channels (repeatable).", show_default=False),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Emit machine-readable JSON output.")] = False,
) -> None:
    """Score an existing groove record without modifying it."""
    try:
        groove = Groove.from_dict(_read_json(path))
        report = score_groove(groove, _parse_channels(channel), settings.qa_pass_threshold)
    except Exception as exc:
        raise _fail("score", exc) from exc

    typer.echo(json.dumps(report.to_dict(), indent=2) if as_json else _format_report(report))
    if not report.passed:
        raise typer.Exit(code=ExitCode.USER_ERROR)


@cli.command("ingest")
def ingest(
    path: Annotated[pathlib.Path, typer.Argument(help="Reference transcript (JSON).")],
    genre: Annotated[
        Optional[str],
        typer.Option("--genre", "-g", help="Genre label; detected from tempo when omitted.", show_default=False),
    ] = None,
) -> None:
    """Analyze a reference transcript and print the resulting genre profile."""
    try:
        request = IngestReferenceRequest.model_validate(_read_json(path))
        outcome = learn_reference(
            get_style_profile_store(), request.to_transcript(), genre or request.genre, rebuild=True,
        )
    except Exception as exc:
        raise _fail("ingest", exc) from exc

    if outcome.record is None:
        typer.echo(f"⚠️  {path} has no notes; nothing ingested")
        raise typer.Exit(code=ExitCode.USER_ERROR)
    label = f"{outcome.genre} (detected)" if outcome.detected else outcome.genre
    typer.echo(f"✅ Ingested {outcome.record.source_name!r} as {label}")
    if outcome.profile is not None:
        typer.echo(json.dumps(outcome.profile.to_dict(), indent=2))


if __name__ == "__main__":
    cli()
