"""Call-keyed session store.

Manages the lifecycle of call sessions across the stateless webhooks.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

from dialtune.core.session import CallSession
from dialtune.logging_config import get_logger
from dialtune.observability.metrics import set_active_sessions

logger: Any = get_logger(__name__)


class SessionStore:
    """Registry of call sessions keyed by call id."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: dict[str, CallSession] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def reset(self, call_id: str, *, caller: str = "") -> CallSession:
        """Discard any session for ``call_id`` and create a fresh one.

        Used on call start: nothing carries over between calls, even when a
        provider reuses an id.
        """
        async with self._lock:
            previous = self._sessions.pop(call_id, None)
            session = CallSession(call_id=call_id, caller=caller, last_seen=self._clock())
            self._sessions[call_id] = session
            set_active_sessions(len(self._sessions))

        if previous is not None:
            logger.info(f"Replaced existing session for call {call_id}")
        else:
            logger.info(f"Created session for call {call_id} (active: {len(self._sessions)})")
        return session

    async def get_or_create(self, call_id: str) -> CallSession:
        """Get the call's session, creating it on first sight."""
        async with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                session = CallSession(call_id=call_id)
                self._sessions[call_id] = session
                set_active_sessions(len(self._sessions))
                logger.debug(f"Created session for unseen call {call_id}")
            session.last_seen = self._clock()
            return session

    async def get(self, call_id: str) -> CallSession | None:
        async with self._lock:
            return self._sessions.get(call_id)

    async def remove(self, call_id: str) -> CallSession | None:
        """Drop the call's session (hangup)."""
        async with self._lock:
            session = self._sessions.pop(call_id, None)
            set_active_sessions(len(self._sessions))

        if session is not None:
            logger.info(f"Removed session for call {call_id} (active: {len(self._sessions)})")
        return session

    async def prune_idle(self, max_idle_seconds: float) -> list[str]:
        """Drop sessions with no event for longer than ``max_idle_seconds``.

        Returns the pruned call ids so their other resources can go too.
        """
        cutoff = self._clock() - max_idle_seconds
        async with self._lock:
            stale = [cid for cid, s in self._sessions.items() if s.last_seen < cutoff]
            for call_id in stale:
                del self._sessions[call_id]
            if stale:
                set_active_sessions(len(self._sessions))

        for call_id in stale:
            logger.warning(f"Forgot idle call {call_id}; hangup webhook never arrived")
        return stale

    async def clear(self) -> None:
        async with self._lock:
            self._sessions.clear()
            set_active_sessions(0)

    @property
    def active_count(self) -> int:
        """Number of sessions held."""
        return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._sessions
