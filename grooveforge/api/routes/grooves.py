"""Groove routes: generate, score, heal, and preview an arrangement plan.

Endpoint summary:
  POST /grooves          - generate, heal and score a full groove
  POST /grooves/score    - score an existing groove record
  POST /grooves/heal     - run the healing pass over an existing groove record
  GET  /plan             - arrangement plan for a tempo and duration
"""
from __future__ import annotations

import logging
import random
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from grooveforge.config import settings
from grooveforge.core.arrangement import plan_for_duration
from grooveforge.core.groove import Groove
from grooveforge.models.requests import (
    GenerateGrooveRequest,
    HealGrooveRequest,
    ScoreGrooveRequest,
)
from grooveforge.models.responses import (
    GrooveResponse,
    HealResponse,
    HealingSummary,
    PlanResponse,
    ScoreResponse,
)
from grooveforge.services.composer import build_story_map, compose_groove
from grooveforge.services.healing import HealingReport, heal_groove
from grooveforge.services.qa import score_groove

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_groove(data: dict[str, Any]) -> Groove:
    try:
        return Groove.from_dict(data)
    except (ValueError, KeyError, TypeError) as e:
        logger.info(f"Rejected malformed groove record: {e}")
        raise HTTPException(status_code=422, detail=f"Malformed groove record: {e}") from e


def _summary(report: HealingReport) -> HealingSummary:
    return HealingSummary(
        fixes=report.fixes,
        skipped=list(report.skipped),
        failed_channels=list(report.failed_channels),
    )


@router.post("/grooves")
async def generate(request: GenerateGrooveRequest) -> GrooveResponse:
    """Generate a groove, heal it and score it, retrying until one passes QA."""
    result = compose_groove(request)
    return GrooveResponse(
        groove=dict(result.groove.to_dict()),
        report=dict(result.report.to_dict()),
        accepted=result.accepted,
        attempts=result.attempts,
        all_scores=result.all_scores,
        motif=result.motif,
        session_mask=result.session_mask,
        healing=_summary(result.healing),
        story_map=dict(build_story_map(result.groove)),
    )


@router.post("/grooves/score")
async def score(request: ScoreGrooveRequest) -> ScoreResponse:
    """Score a groove record as-is; the record is not modified."""
    groove = _load_groove(request.groove)
    report = score_groove(groove, request.channel_scope, settings.qa_pass_threshold)
    return ScoreResponse(report=dict(report.to_dict()))


@router.post("/grooves/heal")
async def heal(request: HealGrooveRequest) -> HealResponse:
    """Heal a groove record and, unless told otherwise, score the result."""
    groove = _load_groove(request.groove)
    healing = heal_groove(groove, request.channels, rng=random.Random(request.seed))
    report = None
    if request.score:
        qa = score_groove(groove, request.channels, settings.qa_pass_threshold)
        qa.fixes = healing.fixes
        groove.qa_report = qa
        report = dict(qa.to_dict())
    return HealResponse(groove=dict(groove.to_dict()), healing=_summary(healing), report=report)


@router.get("/plan")
async def plan(
    bpm: float = Query(default=settings.default_bpm, ge=60, le=200),
    minutes: float = Query(default=settings.default_duration_minutes, gt=0, le=30),
) -> PlanResponse:
    """Phase boundaries for a track of ``minutes`` at ``bpm``."""
    arrangement = plan_for_duration(bpm, minutes)
    return PlanResponse(
        bpm=arrangement.bpm,
        total_bars=arrangement.total_bars,
        peak_bar=arrangement.peak_bar,
        phases=[dict(p.to_dict()) for p in arrangement.phases],
    )
