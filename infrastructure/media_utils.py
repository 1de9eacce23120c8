"""Media type detection for picked files."""

from __future__ import annotations

import mimetypes
from pathlib import Path

from core.models import VIDEO_EXTENSIONS, PendingFile

DEFAULT_IMAGE_NAME = "image.jpg"
DEFAULT_VIDEO_NAME = "video.mp4"
DEFAULT_IMAGE_MIME = "image/jpeg"
DEFAULT_VIDEO_MIME = "video/mp4"


def is_video(path: str) -> bool:
    """Check if a file path is a video based on extension.

    Args:
        path: File path to check

    Returns:
        bool: True if the file is a video format
    """
    ext = Path(path).suffix.lower()
    return ext in VIDEO_EXTENSIONS


def guess_mime_type(path: str) -> str:
    """Return the content type to upload `path` with.

    Falls back to `video/mp4` or `image/jpeg` when the extension is unknown or
    not a media type.
    """
    guessed, _ = mimetypes.guess_type(path)
    if guessed and guessed.startswith(("image/", "video/")):
        return guessed
    return DEFAULT_VIDEO_MIME if is_video(path) else DEFAULT_IMAGE_MIME


def pending_file_from_path(path: str | Path) -> PendingFile:
    """Describe a picked local file for upload.

    Raises:
        FileNotFoundError: If `path` is not an existing file.
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Not a file: {p}")
    name = p.name or (DEFAULT_VIDEO_NAME if is_video(str(p)) else DEFAULT_IMAGE_NAME)
    return PendingFile(path=str(p), name=name, mime_type=guess_mime_type(name))
