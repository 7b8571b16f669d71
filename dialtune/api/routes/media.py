"""Media file serving.

The telephony provider fetches every Play URL from here, so downloaded
tracks and resume slices must stay readable until their retention window
expires.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from dialtune.config import Settings, get_settings
from dialtune.services.media.backends import MEDIA_SUFFIX

router = APIRouter()


@router.get("/media/{filename}")
async def get_media(
    filename: str,
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    """Serve a produced audio file by name.

    Only bare ``.mp3`` names inside the media directory are served.
    """
    if Path(filename).name != filename or not filename.endswith(MEDIA_SUFFIX):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    path = settings.media_path / filename
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    return FileResponse(path, media_type="audio/mpeg")
