"""Plivo telephony integration for the IVR.

Handles:
- Parsing Plivo webhook form data into call events
- Rendering call-flow replies as Plivo XML
- Validating X-Plivo-Signature-V3 on inbound webhooks
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from xml.etree.ElementTree import Element, SubElement, tostring

from dialtune.config import Settings, get_settings
from dialtune.core.actions import Action, Collect, Hangup, Play, Redirect, Reply, Speak, Wait
from dialtune.core.call_flow import CallEvent
from dialtune.core.conversation_state import CallState
from dialtune.logging_config import get_logger

logger: Any = get_logger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# GetInput executionTimeout bounds accepted by Plivo
MIN_INPUT_TIMEOUT = 5
MAX_INPUT_TIMEOUT = 60


@dataclass(frozen=True, slots=True)
class PlivoEvent:
    """Fields of a Plivo webhook the IVR cares about."""

    call_uuid: str
    from_number: str
    to_number: str
    digits: str | None = None
    speech: str | None = None
    input_type: str | None = None

    @classmethod
    def from_webhook(cls, form_data: Mapping[str, str]) -> PlivoEvent:
        """Create from Plivo webhook form data."""
        return cls(
            call_uuid=form_data.get("CallUUID", "").strip(),
            from_number=form_data.get("From", ""),
            to_number=form_data.get("To", ""),
            digits=form_data.get("Digits", "").strip() or None,
            speech=form_data.get("Speech", "").strip() or None,
            input_type=form_data.get("InputType") or None,
        )

    def to_call_event(self) -> CallEvent:
        # One input per event; a key press wins over stray speech
        if self.digits:
            return CallEvent(call_id=self.call_uuid, caller=self.from_number, digit=self.digits)
        return CallEvent(call_id=self.call_uuid, caller=self.from_number, speech=self.speech)


class PlivoRenderer:
    """Renders ``Reply`` documents as Plivo XML."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def route_url(self, state: CallState) -> str:
        """Webhook URL the provider posts to for events produced in ``state``."""
        return f"{self._settings.public_base_url.rstrip('/')}/api/ivr/{state.value}"

    def render(self, reply: Reply) -> str:
        response = Element("Response")
        for action in reply.actions:
            self._append(response, action)
        return _to_xml(response)

    def generate_hangup_xml(self, reason: str = "") -> str:
        """Speak ``reason`` (if any) and hang up."""
        response = Element("Response")
        if reason:
            self._speak(response, reason)
        SubElement(response, "Hangup")
        return _to_xml(response)

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _append(self, parent: Element, action: Action) -> None:
        if isinstance(action, Speak):
            self._speak(parent, action.text)
        elif isinstance(action, Play):
            play = SubElement(parent, "Play")
            play.text = action.url
        elif isinstance(action, Wait):
            wait = SubElement(parent, "Wait")
            wait.set("length", str(max(1, action.seconds)))
        elif isinstance(action, Redirect):
            redirect = SubElement(parent, "Redirect")
            redirect.set("method", "POST")
            redirect.text = self.route_url(action.target)
        elif isinstance(action, Hangup):
            hangup = SubElement(parent, "Hangup")
            if action.reason:
                hangup.set("reason", action.reason)
        elif isinstance(action, Collect):
            self._get_input(parent, action)
        else:
            raise TypeError(f"Cannot render {type(action).__name__}")

    def _speak(self, parent: Element, text: str) -> Element:
        speak = SubElement(parent, "Speak")
        speak.set("voice", self._settings.speak_voice)
        speak.set("language", self._settings.speak_language)
        speak.text = text
        return speak

    def _get_input(self, parent: Element, collect: Collect) -> None:
        get_input = SubElement(parent, "GetInput")
        get_input.set("action", self.route_url(collect.target))
        get_input.set("method", "POST")
        get_input.set("inputType", collect.kind)
        get_input.set("redirect", "true")
        timeout = min(max(collect.timeout, MIN_INPUT_TIMEOUT), MAX_INPUT_TIMEOUT)
        get_input.set("executionTimeout", str(timeout))

        if "dtmf" in collect.kind:
            get_input.set("numDigits", str(collect.num_digits))
            get_input.set("digitEndTimeout", "auto")
        if "speech" in collect.kind:
            get_input.set("language", self._settings.speak_language)
            get_input.set("speechEndTimeout", "auto")

        for prompt in collect.prompts:
            self._append(get_input, prompt)


def validate_signature(
    settings: Settings,
    *,
    method: str,
    url: str,
    nonce: str | None,
    signature: str | None,
    params: Mapping[str, str],
) -> bool:
    """Check an X-Plivo-Signature-V3 header against the account auth token."""
    token = settings.plivo_auth_token
    if token is None or not token.get_secret_value():
        logger.error("Signature verification enabled but PLIVO_AUTH_TOKEN is not set")
        return False
    if not nonce or not signature:
        return False

    from plivo.utils.signature_v3 import validate_v3_signature

    try:
        return bool(
            validate_v3_signature(
                method,
                url,
                nonce,
                token.get_secret_value(),
                signature,
                dict(params),
            )
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Malformed Plivo signature: {e}")
        return False


def _to_xml(response: Element) -> str:
    return f"{XML_DECLARATION}{tostring(response, encoding='unicode')}"
