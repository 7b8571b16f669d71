"""FastAPI application entry point.

Dialtune - telephone IVR bot: AI chat and music on any phone.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from dialtune import __version__
from dialtune.api.routes import diagnostics, health, ivr, media, metrics
from dialtune.config import Settings, get_settings
from dialtune.core.call_flow import CallFlow
from dialtune.logging_config import get_logger, setup_logging

logger: Any = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging
    - Create the media directory
    - Build the call flow (unless one was injected)

    Shutdown:
    - Cancel media jobs and delete produced files
    - Close AI clients
    """
    settings: Settings = app.state.settings

    # Startup
    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
        buffer_lines=settings.log_buffer_lines,
    )
    settings.media_path.mkdir(parents=True, exist_ok=True)

    if app.state.call_flow is None:
        app.state.call_flow = CallFlow.build(settings)

    if not settings.allowed_caller_set:
        logger.warning("ALLOWED_CALLERS is empty: every call will be rejected")

    yield

    # Shutdown
    await app.state.call_flow.close()


def create_app(
    settings: Settings | None = None,
    call_flow: CallFlow | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    resolved = settings or get_settings()

    app = FastAPI(
        title="Dialtune IVR",
        description="Telephone IVR bot: AI chat and music on any phone",
        version=__version__,
        docs_url="/docs" if not resolved.is_production else None,
        redoc_url="/redoc" if not resolved.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = resolved
    app.state.call_flow = call_flow

    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: resolved

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Plivo IVR webhooks
    app.include_router(ivr.router, prefix="/api")

    # Audio for Play elements
    app.include_router(media.router, tags=["Media"])

    # Recent log lines for live debugging
    app.include_router(diagnostics.router)

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    return app


# Application instance
app = create_app()
