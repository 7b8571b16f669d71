"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with dependency status (GET /health/detailed)
"""

from __future__ import annotations

import os
import shutil

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from dialtune import __version__
from dialtune.config import Settings, get_settings

router = APIRouter()

REQUIRED_CHECKS = ("yt_dlp", "ffmpeg", "groq", "media_dir")
PASSING = frozenset({"ok", "configured"})


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    active_calls: int
    active_media_jobs: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> DetailedHealthResponse:
    """Detailed health check including dependency status.

    Checks:
    - yt-dlp and ffmpeg executables on PATH
    - Groq credentials configured (not called)
    - Media directory writable
    - Caller allow-list non-empty
    """
    checks: dict[str, str] = {}

    checks["yt_dlp"] = "ok" if shutil.which(settings.ytdlp_binary) else "missing"
    checks["ffmpeg"] = "ok" if shutil.which(settings.ffmpeg_binary) else "missing"
    checks["groq"] = "configured" if settings.groq_key_list else "missing"

    media_path = settings.media_path
    checks["media_dir"] = (
        "ok" if media_path.is_dir() and os.access(media_path, os.W_OK) else "missing"
    )
    checks["allowed_callers"] = "configured" if settings.allowed_caller_set else "empty"

    status = "healthy" if all(checks[name] in PASSING for name in REQUIRED_CHECKS) else "degraded"

    flow = getattr(request.app.state, "call_flow", None)
    return DetailedHealthResponse(
        status=status,
        checks=checks,
        active_calls=flow.sessions.active_count if flow is not None else 0,
        active_media_jobs=flow.jobs.active_count if flow is not None else 0,
        version=__version__,
    )
