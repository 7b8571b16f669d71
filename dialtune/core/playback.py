"""Playback position tracking across pause/resume.

The playback primitive cannot seek, so resuming means re-encoding the
original track from the stored offset and playing the new file.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dialtune.config import Settings, get_settings
from dialtune.core.exceptions import ResliceFailed
from dialtune.core.session import CallSession, Track
from dialtune.logging_config import get_logger
from dialtune.observability.metrics import record_reslice
from dialtune.services.media.exceptions import MediaTrimError
from dialtune.services.media.jobs import delete_media_file, media_url
from dialtune.services.media.protocol import MediaTrimmer

logger: Any = get_logger(__name__)


class PlaybackTracker:
    """Tracks seconds played per session and produces resume slices."""

    def __init__(
        self,
        trimmer: MediaTrimmer,
        schedule_deletion: Callable[[Path], None],
        settings: Settings | None = None,
    ) -> None:
        self._trimmer = trimmer
        self._schedule_deletion = schedule_deletion
        self._settings = settings or get_settings()

    def start(self, session: CallSession, track: Track, now: float) -> None:
        """Begin playing ``track`` from the top.

        Each play pushes back the expiry of the track's source file.
        """
        self._schedule_deletion(track.source_file)
        session.current_track = track
        session.playing_url = track.url
        session.play_started_at = now
        session.accumulated_play_seconds = 0.0

    def mark_pause(self, session: CallSession, now: float) -> float:
        """Fold the time since the last start/resume into the played total.

        Returns the offset a resume should start from. Calling it again
        without a resume in between adds nothing.
        """
        if session.play_started_at is not None:
            elapsed = max(0.0, now - session.play_started_at)
            session.accumulated_play_seconds += elapsed
            session.play_started_at = None
        return session.accumulated_play_seconds

    async def prepare_resume(self, session: CallSession, now: float) -> str:
        """Trim the current track from the played offset and return its URL.

        Raises:
            ResliceFailed: No track, trim failure, or an empty slice (offset
                past the end of the track).
        """
        track = session.current_track
        if track is None:
            record_reslice("no_track")
            raise ResliceFailed("Nothing to resume")

        self._schedule_deletion(track.source_file)
        offset = session.accumulated_play_seconds
        stem = uuid.uuid4().hex

        try:
            sliced = await self._trimmer.trim(track.source_file, offset, stem)
        except MediaTrimError as e:
            record_reslice("failed")
            logger.warning(f"Re-slice of {track.source_file.name} at {offset:.1f}s failed: {e}")
            raise ResliceFailed(str(e)) from e

        if not self._is_plausible(sliced):
            record_reslice("empty")
            delete_media_file(sliced)
            raise ResliceFailed(f"Slice at {offset:.1f}s is empty; offset beyond track end?")

        self._schedule_deletion(sliced)
        record_reslice("ok")

        url = media_url(self._settings, sliced.name)
        session.playing_url = url
        session.play_started_at = now
        logger.info(f"Resuming {track.title!r} at {offset:.1f}s from {sliced.name}")
        return url

    def _is_plausible(self, path: Path) -> bool:
        try:
            return path.stat().st_size >= self._settings.slice_min_bytes
        except FileNotFoundError:
            return False
