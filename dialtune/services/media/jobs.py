"""Media job runner: one acquisition job per call, polled by the call flow.

The runner owns the call-keyed job table. ``start_job`` returns at once and
the search/download runs as an asyncio task; the webhook handlers only ever
read snapshots through ``get_status``. Snapshots are immutable and replaced
wholesale, so a poll never sees a half-written job.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from dialtune.config import Settings, get_settings
from dialtune.logging_config import get_logger
from dialtune.observability.metrics import record_media_job
from dialtune.services.media.exceptions import MediaBackendError
from dialtune.services.media.protocol import FetchedMedia, MediaFetcher

logger: Any = get_logger(__name__)


class JobStatus(str, Enum):
    """Media job status. Only ever moves pending -> done or pending -> error."""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MediaResult:
    """A playable track produced by a finished job."""

    title: str
    url: str
    filename: str
    path: Path


@dataclass(frozen=True, slots=True)
class MediaJob:
    """Snapshot of a call's acquisition job."""

    job_id: str
    call_id: str
    query: str
    started_at: float
    status: JobStatus = JobStatus.PENDING
    result: MediaResult | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not JobStatus.PENDING

    def elapsed(self, now: float) -> float:
        return now - self.started_at


def media_url(settings: Settings, filename: str) -> str:
    """Public URL of a file served by the media route."""
    return f"{settings.public_base_url.rstrip('/')}/media/{filename}"


def delete_media_file(path: Path) -> bool:
    """Remove a produced file if it is still there.

    Safe to race with a request still serving the file or with another
    cleanup of the same path.
    """
    if not path.exists():
        return False
    with suppress(FileNotFoundError):
        path.unlink()
        logger.debug(f"Deleted media file {path.name}")
        return True
    return False


class MediaJobRunner:
    """Launches and supervises media acquisition jobs keyed by call id."""

    def __init__(
        self,
        fetcher: MediaFetcher,
        settings: Settings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings or get_settings()
        self._clock = clock
        self._jobs: dict[str, MediaJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._deletions: dict[Path, asyncio.Task] = {}

    @property
    def active_count(self) -> int:
        """Jobs whose task is still running."""
        return len(self._tasks)

    def start_job(self, call_id: str, query: str) -> MediaJob:
        """Record a pending job for ``call_id`` and start acquiring ``query``.

        Any job already running for the call is cancelled first, so a call
        never has two acquisitions in flight.
        """
        self._cancel_task(call_id)

        job = MediaJob(
            job_id=uuid.uuid4().hex,
            call_id=call_id,
            query=query,
            started_at=self._clock(),
        )
        self._jobs[call_id] = job

        task = asyncio.create_task(self._run(job), name=f"media-job-{job.job_id}")
        self._tasks[call_id] = task
        task.add_done_callback(lambda t, cid=call_id: self._forget_task(cid, t))

        logger.info(f"Started media job {job.job_id} for call {call_id}: {query!r}")
        return job

    def get_status(self, call_id: str) -> MediaJob | None:
        """Current job snapshot for the call, or None. Never blocks or mutates."""
        return self._jobs.get(call_id)

    def discard(self, call_id: str) -> None:
        """Cancel and forget the call's job (reset, timeout, hangup)."""
        self._cancel_task(call_id)
        job = self._jobs.pop(call_id, None)
        if job is not None:
            logger.debug(f"Discarded media job {job.job_id} ({job.status.value})")

    def schedule_deletion(self, path: Path, delay: float | None = None) -> None:
        """Delete ``path`` after the retention window."""
        delay = self._settings.media_retention_seconds if delay is None else delay
        previous = self._deletions.pop(path, None)
        if previous is not None:
            previous.cancel()

        task = asyncio.create_task(self._delete_later(path, delay), name=f"expire-{path.name}")
        self._deletions[path] = task
        task.add_done_callback(lambda t, p=path: self._forget_deletion(p, t))

    async def close(self) -> None:
        """Cancel all jobs and remove files still waiting for expiry."""
        for call_id in list(self._tasks):
            self._cancel_task(call_id)
        self._jobs.clear()

        pending = list(self._deletions.items())
        self._deletions.clear()
        for path, task in pending:
            task.cancel()
            delete_media_file(path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, job: MediaJob) -> None:
        try:
            result = await self._acquire(job)
        except asyncio.CancelledError:
            record_media_job("cancelled", self._clock() - job.started_at)
            logger.info(f"Media job {job.job_id} cancelled")
            raise
        except Exception as e:
            logger.exception(f"Media job {job.job_id} crashed: {e}")
            self._finish(job, None, f"internal error: {type(e).__name__}")
            return

        if result is None:
            self._finish(job, None, "no usable file after retry")
        else:
            self._finish(job, result, None)

    async def _acquire(self, job: MediaJob) -> MediaResult | None:
        for broad in (False, True):
            # Fresh stem per attempt: never reuse a path another job may own
            stem = uuid.uuid4().hex
            try:
                fetched = await self._fetcher.fetch(job.query, stem, broad=broad)
            except MediaBackendError as e:
                logger.warning(f"Media job {job.job_id} attempt failed (broad={broad}): {e}")
                continue

            if self._is_usable(fetched):
                self.schedule_deletion(fetched.path)
                return MediaResult(
                    title=fetched.title,
                    url=media_url(self._settings, fetched.path.name),
                    filename=fetched.path.name,
                    path=fetched.path,
                )

            logger.warning(
                f"Media job {job.job_id} produced no usable file (broad={broad}), "
                f"{'giving up' if broad else 'retrying without filters'}"
            )
            delete_media_file(fetched.path)

        return None

    def _is_usable(self, fetched: FetchedMedia) -> bool:
        try:
            return fetched.path.stat().st_size >= self._settings.media_min_bytes
        except FileNotFoundError:
            return False

    def _finish(self, job: MediaJob, result: MediaResult | None, error: str | None) -> None:
        status = JobStatus.DONE if result is not None else JobStatus.ERROR
        record_media_job(status.value, self._clock() - job.started_at)

        current = self._jobs.get(job.call_id)
        if current is None or current.job_id != job.job_id:
            # Superseded, discarded or the call hung up: nobody will play this
            logger.info(f"Dropping stale result of media job {job.job_id}")
            if result is not None:
                self._drop_deletion(result.path)
                delete_media_file(result.path)
            return

        self._jobs[job.call_id] = replace(current, status=status, result=result, error=error)
        if result is not None:
            logger.info(f"Media job {job.job_id} done: {result.title!r}")
        else:
            logger.warning(f"Media job {job.job_id} failed: {error}")

    def _cancel_task(self, call_id: str) -> None:
        task = self._tasks.pop(call_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _forget_task(self, call_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(call_id) is task:
            del self._tasks[call_id]

    def _drop_deletion(self, path: Path) -> None:
        task = self._deletions.pop(path, None)
        if task is not None:
            task.cancel()

    def _forget_deletion(self, path: Path, task: asyncio.Task) -> None:
        if self._deletions.get(path) is task:
            del self._deletions[path]

    async def _delete_later(self, path: Path, delay: float) -> None:
        await asyncio.sleep(delay)
        delete_media_file(path)
