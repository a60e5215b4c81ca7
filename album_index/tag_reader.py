"""
Tag reading using mutagen.

Reads the handful of fields the index needs from ID3 (MP3) and Vorbis
comment (FLAC, Ogg) tags, normalising them into ``RawTags`` regardless of
the container format.  Also resolves embedded pictures and stream
properties for the HTTP layer.
"""

from __future__ import annotations

import base64
import binascii
import math
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import mutagen
from mutagen.flac import Picture
from mutagen.id3 import ID3
from loguru import logger

from .filetypes import is_supported_image_mime_type, normalize_image_mime_type
from .models import EmbeddedPicture, RawTags

FRONT_COVER = 3

_REPLAYGAIN_FIELDS = (
    "replaygain_album_gain",
    "replaygain_album_peak",
    "replaygain_track_gain",
    "replaygain_track_peak",
)

_VORBIS_ALBUM_ARTIST_KEYS = ("albumartist", "album artist", "album_artist")


class TagReadError(RuntimeError):
    """The file could not be opened or parsed as a supported audio file."""


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def _clean(values: list[str]) -> list[str]:
    return [v.strip() for v in values if v and v.strip()]


def _first(values: list[str]) -> Optional[str]:
    cleaned = _clean(values)
    return cleaned[0] if cleaned else None


def _parse_number(value: Optional[str]) -> int:
    """Parse ``'5'`` or ``'5/12'`` into 5; anything unparseable is 0."""
    if not value:
        return 0
    head = value.split("/", 1)[0].strip()
    try:
        number = int(head)
    except ValueError:
        return 0
    return number if number > 0 else 0


def _parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a ReplayGain value such as ``'-6.54 dB'`` or ``'0.988'``."""
    if not value:
        return None
    text = value.strip()
    if text.lower().endswith("db"):
        text = text[:-2].strip()
    try:
        number = float(text)
    except ValueError:
        return None
    return None if math.isnan(number) else number


# ---------------------------------------------------------------------------
# Pictures
# ---------------------------------------------------------------------------

def _iter_pictures(audio: Any) -> Iterator[tuple[str, int, bytes]]:
    """Yield ``(mime, picture_type, data)`` for every embedded picture."""
    tags = getattr(audio, "tags", None)

    if isinstance(tags, ID3):
        for frame in tags.getall("APIC"):
            yield frame.mime, int(frame.type), frame.data
        return

    # FLAC picture metadata blocks
    for picture in getattr(audio, "pictures", None) or []:
        yield picture.mime, int(picture.type), picture.data

    # Ogg Vorbis keeps FLAC-style picture blocks base64-encoded in a comment
    if tags is not None and "metadata_block_picture" in tags:
        for encoded in tags["metadata_block_picture"]:
            try:
                picture = Picture(base64.b64decode(encoded))
            except (binascii.Error, mutagen.MutagenError, ValueError) as exc:
                logger.debug(f"Skipping undecodable metadata_block_picture: {exc}")
                continue
            yield picture.mime, int(picture.type), picture.data


def _picture_summaries(audio: Any) -> list[EmbeddedPicture]:
    return [
        EmbeddedPicture(mime=mime, picture_type=picture_type, size=len(data))
        for mime, picture_type, data in _iter_pictures(audio)
    ]


# ---------------------------------------------------------------------------
# Format-specific field extraction
# ---------------------------------------------------------------------------

def _id3_text(tags: ID3, frame_id: str) -> list[str]:
    values: list[str] = []
    for frame in tags.getall(frame_id):
        values.extend(str(text) for text in frame.text)
    return values


def _id3_txxx(tags: ID3, description: str) -> Optional[str]:
    """User-defined text frame lookup; taggers disagree on the case of the description."""
    wanted = description.lower()
    for frame in tags.getall("TXXX"):
        if frame.desc.lower() == wanted:
            return _first([str(text) for text in frame.text])
    return None


def raw_tags_from_id3(tags: ID3, pictures: Optional[list[EmbeddedPicture]] = None) -> RawTags:
    """Map an ID3 tag onto ``RawTags``."""
    gains = {name: _parse_float(_id3_txxx(tags, name)) for name in _REPLAYGAIN_FIELDS}
    return RawTags(
        performers=_clean(_id3_text(tags, "TPE1")),
        album_artists=_clean(_id3_text(tags, "TPE2")),
        album=_first(_id3_text(tags, "TALB")),
        title=_first(_id3_text(tags, "TIT2")),
        track=_parse_number(_first(_id3_text(tags, "TRCK"))),
        disc=_parse_number(_first(_id3_text(tags, "TPOS"))),
        pictures=pictures or [],
        **gains,
    )


def _vorbis_values(tags: Any, key: str) -> list[str]:
    if tags is None or key not in tags:
        return []
    return [str(v) for v in tags[key]]


def raw_tags_from_vorbis(tags: Any, pictures: Optional[list[EmbeddedPicture]] = None) -> RawTags:
    """Map a Vorbis comment block (FLAC, Ogg) onto ``RawTags``."""
    album_artists: list[str] = []
    for key in _VORBIS_ALBUM_ARTIST_KEYS:
        album_artists = _clean(_vorbis_values(tags, key))
        if album_artists:
            break

    gains = {
        name: _parse_float(_first(_vorbis_values(tags, name)))
        for name in _REPLAYGAIN_FIELDS
    }
    return RawTags(
        performers=_clean(_vorbis_values(tags, "artist")),
        album_artists=album_artists,
        album=_first(_vorbis_values(tags, "album")),
        title=_first(_vorbis_values(tags, "title")),
        track=_parse_number(_first(_vorbis_values(tags, "tracknumber"))),
        disc=_parse_number(_first(_vorbis_values(tags, "discnumber"))),
        pictures=pictures or [],
        **gains,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _open(path: Union[str, Path]) -> Any:
    try:
        audio = mutagen.File(str(path))
    except (mutagen.MutagenError, OSError) as exc:
        raise TagReadError(f"Could not read {path}: {exc}") from exc
    if audio is None:
        raise TagReadError(f"Unrecognised audio format: {path}")
    return audio


def read_tags(path: Union[str, Path]) -> RawTags:
    """
    Read the tag fields of one audio file.

    A file without any tag block gives ``RawTags()``.

    Raises:
        TagReadError: mutagen can't open, identify or parse the file.
    """
    audio = _open(path)
    tags = audio.tags
    pictures = _picture_summaries(audio)

    if tags is None:
        return RawTags(pictures=pictures)
    if isinstance(tags, ID3):
        return raw_tags_from_id3(tags, pictures)
    return raw_tags_from_vorbis(tags, pictures)


def read_embedded_picture(path: Union[str, Path]) -> Optional[tuple[bytes, str]]:
    """
    Return ``(data, mime)`` of the embedded picture best suited as a cover.

    Only pictures with a supported image mime type are considered; a front
    cover wins over any other picture type.  None if there is no such picture.
    """
    audio = _open(path)
    candidates = [
        (mime, picture_type, data)
        for mime, picture_type, data in _iter_pictures(audio)
        if is_supported_image_mime_type(mime)
    ]
    if not candidates:
        return None
    # sorted() is stable: tag order breaks ties between front covers
    mime, _, data = sorted(candidates, key=lambda c: c[1] != FRONT_COVER)[0]
    return data, normalize_image_mime_type(mime)


def read_audio_properties(path: Union[str, Path]) -> dict[str, Any]:
    """Stream properties of one audio file (length, bitrate, sample rate, channels)."""
    info = getattr(_open(path), "info", None)
    return {
        "length_seconds": round(float(getattr(info, "length", 0.0) or 0.0), 2),
        "bitrate":        int(getattr(info, "bitrate", 0) or 0),
        "sample_rate":    int(getattr(info, "sample_rate", 0) or 0),
        "channels":       int(getattr(info, "channels", 0) or 0),
    }
