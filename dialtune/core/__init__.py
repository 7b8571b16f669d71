"""Core IVR logic: call state machine, sessions and playback."""

from dialtune.core.actions import Action, Collect, Hangup, Play, Redirect, Reply, Speak, Wait
from dialtune.core.call_flow import CallEvent, CallFlow
from dialtune.core.conversation_state import CallState, Mode
from dialtune.core.exceptions import (
    CallFlowError,
    MalformedEvent,
    MediaJobFailed,
    MediaJobTimeout,
    ResliceFailed,
    Unauthorized,
)
from dialtune.core.playback import PlaybackTracker
from dialtune.core.session import CallSession, Track
from dialtune.core.session_store import SessionStore

__all__ = [
    # State machine
    "CallFlow",
    "CallEvent",
    "CallState",
    "Mode",
    # Replies
    "Reply",
    "Action",
    "Speak",
    "Play",
    "Wait",
    "Redirect",
    "Hangup",
    "Collect",
    # Sessions
    "CallSession",
    "SessionStore",
    "Track",
    "PlaybackTracker",
    # Errors
    "CallFlowError",
    "Unauthorized",
    "MalformedEvent",
    "MediaJobFailed",
    "MediaJobTimeout",
    "ResliceFailed",
]
