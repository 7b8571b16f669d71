"""Media acquisition services (yt-dlp, ffmpeg) and the job runner.

- MediaJobRunner: one background acquisition per call, non-blocking polls
- YtDlpFetcher: search + download + mp3 extraction
- FfmpegTrimmer: re-encode from an offset for pause/resume
"""

from dialtune.services.media.backends import FfmpegTrimmer, YtDlpFetcher, run_process
from dialtune.services.media.exceptions import (
    MediaBackendError,
    MediaFetchError,
    MediaTrimError,
)
from dialtune.services.media.jobs import (
    JobStatus,
    MediaJob,
    MediaJobRunner,
    MediaResult,
    delete_media_file,
    media_url,
)
from dialtune.services.media.protocol import FetchedMedia, MediaFetcher, MediaTrimmer

__all__ = [
    # Runner
    "MediaJobRunner",
    "MediaJob",
    "MediaResult",
    "JobStatus",
    "media_url",
    "delete_media_file",
    # Backends
    "YtDlpFetcher",
    "FfmpegTrimmer",
    "run_process",
    # Protocols
    "MediaFetcher",
    "MediaTrimmer",
    "FetchedMedia",
    # Exceptions
    "MediaBackendError",
    "MediaFetchError",
    "MediaTrimError",
]
