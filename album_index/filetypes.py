"""
Supported file formats.

Single source of truth for which extensions count as audio or cover images
and which mime type each one is served with.  The index and the HTTP layer
both classify files through these helpers so they never disagree.
"""

from pathlib import PurePath
from typing import Optional, Union

# ---------------------------------------------------------------------------
# Allow-lists
# ---------------------------------------------------------------------------

AUDIO_FORMATS: dict[str, str] = {
    ".flac": "audio/flac",
    ".mp3":  "audio/mpeg",
    ".ogg":  "audio/ogg",
}

IMAGE_FORMATS: dict[str, str] = {
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
}

# Non-standard spellings seen in the wild → canonical mime type
_IMAGE_MIME_ALIASES: dict[str, str] = {
    "image/jpg": "image/jpeg",
}

PathLike = Union[str, PurePath]


def _extension(path: PathLike) -> str:
    return PurePath(path).suffix.lower()


def is_supported_audio_file(path: PathLike) -> bool:
    return _extension(path) in AUDIO_FORMATS


def is_supported_image_file(path: PathLike) -> bool:
    return _extension(path) in IMAGE_FORMATS


def mime_type_for_audio_file(path: PathLike) -> Optional[str]:
    """Mime type to serve an audio file with, or None if unsupported."""
    return AUDIO_FORMATS.get(_extension(path))


def mime_type_for_image_file(path: PathLike) -> Optional[str]:
    """Mime type to serve an image file with, or None if unsupported."""
    return IMAGE_FORMATS.get(_extension(path))


def normalize_image_mime_type(mime_type: Optional[str]) -> str:
    """Lower-case a picture mime type and fold aliases (``image/jpg`` → ``image/jpeg``)."""
    mime = (mime_type or "").strip().lower()
    return _IMAGE_MIME_ALIASES.get(mime, mime)


def is_supported_image_mime_type(mime_type: Optional[str]) -> bool:
    return normalize_image_mime_type(mime_type) in IMAGE_FORMATS.values()
