"""Reference ingestion and style profile routes.

Endpoint summary:
  POST /references                  - ingest a transcribed reference track
  POST /references/stats            - ingest a pre-computed statistics bundle
  GET  /profiles                    - every rebuilt profile
  GET  /profiles/{genre}            - one genre's profile
  POST /profiles/{genre}/rebuild    - rebuild a genre's profile from its references
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from grooveforge.models.requests import IngestReferenceRequest, IngestStatsRequest
from grooveforge.models.responses import IngestResponse, ProfileResponse
from grooveforge.services.style_profile import (
    StyleProfile,
    get_style_profile_store,
    learn_reference,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _profile_response(profile: StyleProfile) -> ProfileResponse:
    store = get_style_profile_store()
    return ProfileResponse(
        genre=profile.genre,
        profile=dict(profile.to_dict()),
        reference_count=len(store.list_references(profile.genre)),
    )


@router.post("/references")
async def ingest_reference(request: IngestReferenceRequest) -> IngestResponse:
    """Analyze a reference transcript into the genre's corpus.

    The genre is detected from tempo and bass activity when omitted. A
    reference without notes is accepted but ignored (``referenceId`` null).
    """
    outcome = learn_reference(
        get_style_profile_store(), request.to_transcript(), request.genre, request.rebuild,
    )
    record = outcome.record
    return IngestResponse(
        genre=outcome.genre,
        detected_genre=outcome.detected,
        reference_id=record.id if record else None,
        track_stats=[dict(s.to_dict()) for s in record.track_stats] if record else [],
        profile=dict(outcome.profile.to_dict()) if outcome.profile else None,
    )


@router.post("/references/stats")
async def ingest_stats(request: IngestStatsRequest) -> IngestResponse:
    """Store statistics computed by an external analysis step."""
    store = get_style_profile_store()
    stats = [t.to_stats() for t in request.tracks]
    record = store.ingest_stats(stats, request.genre, request.source_name)
    profile = store.rebuild(request.genre) if request.rebuild and record is not None else None
    return IngestResponse(
        genre=request.genre,
        reference_id=record.id if record else None,
        track_stats=[dict(s.to_dict()) for s in stats] if record else [],
        profile=dict(profile.to_dict()) if profile else None,
    )


@router.get("/profiles")
async def list_profiles() -> list[ProfileResponse]:
    return [_profile_response(p) for p in get_style_profile_store().list_profiles()]


@router.get("/profiles/{genre}")
async def get_profile(genre: str) -> ProfileResponse:
    profile = get_style_profile_store().get(genre)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No style profile for genre {genre!r}")
    return _profile_response(profile)


@router.post("/profiles/{genre}/rebuild")
async def rebuild_profile(genre: str) -> ProfileResponse:
    """Recompute the profile from every stored reference; 404 when there are none."""
    profile = get_style_profile_store().rebuild(genre)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"No references ingested for genre {genre!r}")
    return _profile_response(profile)
