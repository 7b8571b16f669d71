"""Call-flow error taxonomy.

Every one of these is caught at the state-machine boundary and turned into a
spoken reply; none reaches the telephony provider as a failed request.
"""

from dialtune.services.llm.exceptions import AIBackendUnavailable


class CallFlowError(Exception):
    """Base exception for call-flow errors."""

    pass


class Unauthorized(CallFlowError):
    """Caller is not on the allow-list. Terminal: the call is rejected."""

    pass


class MalformedEvent(CallFlowError):
    """Inbound webhook is missing required fields."""

    pass


class MediaJobFailed(CallFlowError):
    """The acquisition backend produced no usable file after its retry."""

    pass


class MediaJobTimeout(MediaJobFailed):
    """The job was still pending when the wait budget ran out."""

    pass


class ResliceFailed(CallFlowError):
    """A resume-time trim could not produce a valid offset file."""

    pass


__all__ = [
    "CallFlowError",
    "Unauthorized",
    "MalformedEvent",
    "MediaJobFailed",
    "MediaJobTimeout",
    "ResliceFailed",
    "AIBackendUnavailable",
]
