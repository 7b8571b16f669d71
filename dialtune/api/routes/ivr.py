"""Plivo IVR webhooks.

Handles:
- Answer webhook: call start, allow-list check, greeting
- State webhooks: one route per call state; GetInput actions and Redirects
  post back here and the state machine produces the next XML document
- Hangup webhook: drops the call's session and media job
- Fallback webhook: apology and hangup when the answer URL fails
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from dialtune.api.auth import verify_plivo_request
from dialtune.config import Settings, get_settings
from dialtune.core.call_flow import CallFlow
from dialtune.core.conversation_state import CallState
from dialtune.logging_config import get_logger
from dialtune.services.telephony.plivo import PlivoEvent, PlivoRenderer

router = APIRouter(
    prefix="/ivr",
    tags=["IVR"],
    dependencies=[Depends(verify_plivo_request)],
)
logger: Any = get_logger(__name__)

FALLBACK_APOLOGY = "Sorry, we are having technical trouble. Please call again later."


def get_call_flow(request: Request) -> CallFlow:
    """The application's call flow, built at startup."""
    return request.app.state.call_flow


def get_renderer(settings: Settings = Depends(get_settings)) -> PlivoRenderer:
    """Dependency injection for PlivoRenderer."""
    return PlivoRenderer(settings=settings)


async def _form_dict(request: Request) -> dict[str, str]:
    form_data = await request.form()
    return {k: str(v) for k, v in form_data.items()}


async def _respond(
    state: CallState,
    request: Request,
    flow: CallFlow,
    renderer: PlivoRenderer,
) -> Response:
    event = PlivoEvent.from_webhook(await _form_dict(request)).to_call_event()
    reply = await flow.handle(state, event)
    return Response(content=renderer.render(reply), media_type="application/xml")


@router.post("/answer")
async def ivr_answer(
    request: Request,
    flow: CallFlow = Depends(get_call_flow),
    renderer: PlivoRenderer = Depends(get_renderer),
) -> Response:
    """Handle an incoming call (Plivo answer URL).

    Expected form data:
    - CallUUID: Unique call identifier
    - From: Caller phone number
    - To: Called phone number
    """
    return await _respond(CallState.IDLE, request, flow, renderer)


@router.post("/hangup")
async def ivr_hangup(
    request: Request,
    flow: CallFlow = Depends(get_call_flow),
) -> dict[str, bool]:
    """Handle call hangup event from Plivo.

    Expected form data:
    - CallUUID: Unique call identifier
    - Duration: Call duration in seconds
    - HangupCause: Reason for hangup
    """
    form_data = await _form_dict(request)
    call_uuid = form_data.get("CallUUID", "")

    logger.info(
        f"Call ended: {call_uuid} after {form_data.get('Duration', '0')}s "
        f"({form_data.get('HangupCause', 'unknown')})"
    )

    if call_uuid:
        await flow.end_call(call_uuid)
    return {"ok": True}


@router.post("/fallback")
async def ivr_fallback(
    request: Request,
    renderer: PlivoRenderer = Depends(get_renderer),
) -> Response:
    """Fallback handler for Plivo errors.

    Called when the primary answer webhook fails.
    Returns a simple apology message and hangs up.
    """
    form_data = await _form_dict(request)
    call_uuid = form_data.get("CallUUID", "")
    error = form_data.get("ErrorMessage", "Unknown error")

    logger.error(f"Plivo fallback triggered: {call_uuid} - {error}")

    return Response(
        content=renderer.generate_hangup_xml(reason=FALLBACK_APOLOGY),
        media_type="application/xml",
    )


@router.post("/{state}")
async def ivr_event(
    state: CallState,
    request: Request,
    flow: CallFlow = Depends(get_call_flow),
    renderer: PlivoRenderer = Depends(get_renderer),
) -> Response:
    """Handle an event produced in ``state`` (GetInput action or Redirect).

    Expected form data:
    - CallUUID, From: as on answer
    - Digits: pressed key(s), for DTMF input
    - Speech: recognized text, for speech input
    """
    return await _respond(state, request, flow, renderer)
