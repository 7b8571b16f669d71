"""Per-call session state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from dialtune.core.conversation_state import Mode
from dialtune.services.llm.protocol import Message, Role

VOICE_MAX_SENTENCES = 2
VOICE_MAX_CHARS = 320
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True, slots=True)
class Track:
    """A fetched track in the caller's play history."""

    title: str
    url: str
    source_file: Path


@dataclass
class CallSession:
    """State for a single phone call.

    Created on the first event for a call id, replaced on call start and
    dropped on hangup.
    """

    call_id: str
    caller: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    mode: Mode = Mode.IDLE
    last_seen: float = 0.0

    transcript: list[Message] = field(default_factory=list)
    last_reply_text: str = ""

    play_history: list[Track] = field(default_factory=list)
    history_cursor: int = -1
    current_track: Track | None = None
    playing_url: str | None = None
    play_started_at: float | None = None
    accumulated_play_seconds: float = 0.0

    pending_input: list[str] = field(default_factory=list)
    pending_query: str | None = None

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def add_user_message(self, content: str) -> Message:
        msg = Message(role=Role.USER, content=content)
        self.transcript.append(msg)
        return msg

    def add_assistant_message(self, content: str) -> Message:
        msg = Message(role=Role.ASSISTANT, content=content)
        self.transcript.append(msg)
        self.last_reply_text = content
        return msg

    @property
    def turn_count(self) -> int:
        return sum(1 for m in self.transcript if m.role is Role.USER)

    # ------------------------------------------------------------------
    # Play history
    # ------------------------------------------------------------------

    def append_track(self, track: Track) -> int:
        """Add a freshly fetched track and point the cursor at it."""
        self.play_history.append(track)
        self.history_cursor = len(self.play_history) - 1
        return self.history_cursor

    def step_history(self, step: int) -> tuple[Track | None, bool]:
        """Move the cursor by ``step`` within the history bounds.

        Returns the track under the cursor and whether the move was clamped
        at the first or last entry. Returns ``(None, False)`` for an empty
        history.
        """
        if not self.play_history:
            return None, False

        last = len(self.play_history) - 1
        cursor = min(max(self.history_cursor, 0), last)
        target = cursor + step
        clamped = target < 0 or target > last
        self.history_cursor = min(max(target, 0), last)
        return self.play_history[self.history_cursor], clamped

    # ------------------------------------------------------------------
    # Transient state
    # ------------------------------------------------------------------

    def clear_transient(self) -> None:
        """Forget in-progress typing, searches and playback position."""
        self.pending_input.clear()
        self.pending_query = None
        self.current_track = None
        self.playing_url = None
        self.play_started_at = None
        self.accumulated_play_seconds = 0.0


def normalize_for_speech(text: str) -> str:
    """Normalize AI text to sound natural when spoken by the provider's TTS."""
    cleaned = " ".join(text.split())
    if not cleaned:
        return text

    sentences = [s.strip() for s in SENTENCE_SPLIT_RE.split(cleaned) if s.strip()]

    # Drop consecutive duplicates that can sound robotic in TTS.
    deduped: list[str] = []
    for sentence in sentences:
        if deduped and deduped[-1].lower() == sentence.lower():
            continue
        deduped.append(sentence)

    if len(deduped) > VOICE_MAX_SENTENCES:
        deduped = deduped[:VOICE_MAX_SENTENCES]

    normalized = " ".join(deduped) if deduped else cleaned
    if len(normalized) > VOICE_MAX_CHARS:
        normalized = normalized[:VOICE_MAX_CHARS].rstrip(" ,")

    if normalized and normalized[-1] not in ".!?":
        normalized += "."

    return normalized
