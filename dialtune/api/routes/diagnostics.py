"""Password-protected view of recent log lines.

Meant for a phone or laptop browser during a test call: plain text,
auto-refreshing every few seconds.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from dialtune.config import Settings, get_settings
from dialtune.logging_config import get_logger, log_buffer
from dialtune.security.auth import verify_password

router = APIRouter(prefix="/diagnostics", tags=["Diagnostics"])
logger: Any = get_logger(__name__)

REFRESH_SECONDS = 5


@router.get("/logs", response_class=PlainTextResponse)
async def recent_logs(
    password: str = Query(default=""),
    lines: int = Query(default=200, ge=1, le=5000),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """Most recent log lines, oldest first.

    Disabled (404) unless DIAGNOSTICS_PASSWORD_HASH is set.
    """
    if not settings.diagnostics_password_hash:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    if not verify_password(password, settings.diagnostics_password_hash):
        logger.warning("Diagnostics access denied")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    tail = log_buffer.tail(lines)
    return PlainTextResponse(
        "\n".join(tail) + ("\n" if tail else ""),
        headers={"Refresh": str(REFRESH_SECONDS), "Cache-Control": "no-store"},
    )
