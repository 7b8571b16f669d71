"""Webhook authentication.

Plivo signs every webhook with X-Plivo-Signature-V3 over the URL it called,
a per-request nonce and the POST parameters. Verification is opt-in so the
IVR can run behind tunnels whose public URL differs from the signed one.
"""

from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status

from dialtune.config import Settings, get_settings
from dialtune.logging_config import get_logger
from dialtune.services.telephony.plivo import validate_signature

logger: Any = get_logger(__name__)

SIGNATURE_HEADER = "X-Plivo-Signature-V3"
NONCE_HEADER = "X-Plivo-Signature-V3-Nonce"


def signed_url(request: Request, settings: Settings) -> str:
    """The URL Plivo called, as seen from outside any proxy."""
    url = f"{settings.public_base_url.rstrip('/')}{request.url.path}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


async def verify_plivo_request(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject webhooks without a valid Plivo signature (when enabled)."""
    if not settings.verify_plivo_signature:
        return

    form_data = await request.form()
    params = {k: str(v) for k, v in form_data.items()}

    valid = validate_signature(
        settings,
        method=request.method,
        url=signed_url(request, settings),
        nonce=request.headers.get(NONCE_HEADER),
        signature=request.headers.get(SIGNATURE_HEADER),
        params=params,
    )
    if not valid:
        logger.warning(f"Rejected unsigned webhook on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid webhook signature",
        )
