"""
GrooveForge API

FastAPI application for procedural EDM groove composition.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grooveforge.api.routes import grooves, health, references
from grooveforge.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(
        f"Defaults: {settings.default_bpm:g} BPM, {settings.default_key} {settings.default_scale}, "
        f"QA threshold {settings.qa_pass_threshold:g}"
    )
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="GrooveForge API",
    version=settings.app_version,
    description=(
        "Procedural composer for 16-channel electronic dance music grooves.\n\n"
        "Generate a full arrangement from a genre, key and scale; every groove "
        "is healed and scored by the QA gate before it is returned. Reference "
        "tracks teach each genre its rhythm and density profile."
    ),
    lifespan=lifespan,
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(grooves.router, prefix="/api/v1", tags=["grooves"])
app.include_router(references.router, prefix="/api/v1", tags=["references"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
