"""Media backend protocols and data types."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class FetchedMedia:
    """A file produced by one acquisition attempt."""

    path: Path
    title: str


class MediaFetcher(Protocol):
    """Searches a catalog and downloads the best match as an mp3."""

    async def fetch(self, query: str, stem: str, *, broad: bool = False) -> FetchedMedia:
        """Download the best match for ``query`` to ``<media_dir>/<stem>.mp3``.

        Args:
            query: Free-text search
            stem: Unique file stem for this attempt
            broad: Drop result filters (used for the retry attempt)

        Raises:
            MediaFetchError: When the backend failed outright.
        """
        ...


class MediaTrimmer(Protocol):
    """Re-encodes a file starting at an offset."""

    async def trim(self, source: Path, offset_seconds: float, stem: str) -> Path:
        """Write ``source`` from ``offset_seconds`` onwards to a new file.

        Raises:
            MediaTrimError: When the re-encode failed.
        """
        ...
