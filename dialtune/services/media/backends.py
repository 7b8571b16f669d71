"""Subprocess-backed media backends (yt-dlp search/download, ffmpeg trim)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dialtune.config import Settings, get_settings
from dialtune.logging_config import get_logger
from dialtune.services.media.exceptions import MediaFetchError, MediaTrimError
from dialtune.services.media.protocol import FetchedMedia

logger: Any = get_logger(__name__)

MEDIA_SUFFIX = ".mp3"


@dataclass(frozen=True, slots=True)
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


async def run_process(argv: list[str], timeout: float) -> ProcessResult:
    """Run a subprocess to completion, killing it on timeout or cancellation.

    Raises:
        FileNotFoundError: When the executable does not exist.
        TimeoutError: When the process outlived ``timeout``.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except BaseException:
        # Timeout or task cancellation: reap the child before propagating
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    return ProcessResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class YtDlpFetcher:
    """Search YouTube with yt-dlp and extract the first hit as mp3.

    The first attempt filters out live streams and very long uploads; the
    retry (``broad=True``) takes whatever the plain search returns.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._media_dir = self._settings.media_path

    def build_command(self, query: str, stem: str, *, broad: bool = False) -> list[str]:
        output_template = str(self._media_dir / f"{stem}.%(ext)s")
        argv = [
            self._settings.ytdlp_binary,
            f"ytsearch1:{query}",
            "-x",
            "--audio-format",
            "mp3",
            "--no-playlist",
            "--force-ipv4",
            "--no-progress",
            "--extractor-args",
            "youtube:player_client=android",
            "--print",
            "after_move:%(title)s",
            "-o",
            output_template,
        ]
        if not broad:
            argv[2:2] = [
                "--match-filter",
                f"!is_live & duration < {self._settings.max_track_seconds}",
            ]
        return argv

    async def fetch(self, query: str, stem: str, *, broad: bool = False) -> FetchedMedia:
        self._media_dir.mkdir(parents=True, exist_ok=True)
        argv = self.build_command(query, stem, broad=broad)
        logger.info(f"yt-dlp search ({'broad' if broad else 'filtered'}): {query!r}")

        try:
            result = await run_process(argv, timeout=self._settings.ytdlp_timeout_seconds)
        except FileNotFoundError as e:
            raise MediaFetchError(f"yt-dlp not found: {self._settings.ytdlp_binary}") from e
        except TimeoutError as e:
            raise MediaFetchError(
                f"yt-dlp timed out after {self._settings.ytdlp_timeout_seconds:.0f}s"
            ) from e

        if result.returncode != 0:
            logger.warning(f"yt-dlp exited {result.returncode}: {result.stderr.strip()[-500:]}")
            raise MediaFetchError(f"yt-dlp exited with code {result.returncode}")

        titles = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return FetchedMedia(
            path=self._media_dir / f"{stem}{MEDIA_SUFFIX}",
            title=titles[-1] if titles else query,
        )


class FfmpegTrimmer:
    """Re-encode a track from an offset; the playback layer cannot seek."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._media_dir = self._settings.media_path

    def build_command(self, source: Path, offset_seconds: float, target: Path) -> list[str]:
        return [
            self._settings.ffmpeg_binary,
            "-hide_banner",
            "-loglevel",
            "error",
            "-y",
            "-ss",
            f"{offset_seconds:.3f}",
            "-i",
            str(source),
            "-vn",
            "-acodec",
            "libmp3lame",
            "-b:a",
            "128k",
            str(target),
        ]

    async def trim(self, source: Path, offset_seconds: float, stem: str) -> Path:
        if not source.exists():
            raise MediaTrimError(f"Source file is gone: {source.name}")

        target = self._media_dir / f"{stem}{MEDIA_SUFFIX}"
        argv = self.build_command(source, max(0.0, offset_seconds), target)

        try:
            result = await run_process(argv, timeout=self._settings.ffmpeg_timeout_seconds)
        except FileNotFoundError as e:
            raise MediaTrimError(f"ffmpeg not found: {self._settings.ffmpeg_binary}") from e
        except TimeoutError as e:
            raise MediaTrimError("ffmpeg trim timed out") from e

        if result.returncode != 0:
            logger.warning(f"ffmpeg exited {result.returncode}: {result.stderr.strip()[-500:]}")
            raise MediaTrimError(f"ffmpeg exited with code {result.returncode}")

        return target
