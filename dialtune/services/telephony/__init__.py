"""Telephony services (Plivo).

- PlivoEvent: webhook form data -> call event
- PlivoRenderer: call-flow replies -> Plivo XML
"""

from dialtune.services.telephony.plivo import PlivoEvent, PlivoRenderer, validate_signature

__all__ = [
    "PlivoEvent",
    "PlivoRenderer",
    "validate_signature",
]
