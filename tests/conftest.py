"""Shared fixtures: tiny real FLAC files that mutagen can read and write."""

import struct
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from mutagen.flac import FLAC, Picture


def _streaminfo_block() -> bytes:
    # 44.1 kHz, 2 channels, 16 bit, 0 samples, no MD5
    packed = (44100 << 44) | (1 << 41) | (15 << 36)
    body = (
        struct.pack(">HH", 4096, 4096)
        + (0).to_bytes(3, "big")
        + (0).to_bytes(3, "big")
        + packed.to_bytes(8, "big")
        + bytes(16)
    )
    # last-metadata-block flag set, block type 0 (STREAMINFO)
    return bytes([0x80]) + len(body).to_bytes(3, "big") + body


def write_flac(
    path: Path,
    tags: Optional[Dict[str, List[str]]] = None,
    pictures: Optional[List[Tuple[bytes, str, int]]] = None,
) -> Path:
    """Write a metadata-only FLAC file with the given Vorbis comments and pictures."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"fLaC" + _streaminfo_block())

    audio = FLAC(str(path))
    if audio.tags is None:
        audio.add_tags()
    for key, values in (tags or {}).items():
        audio.tags[key] = values
    for data, mime, picture_type in pictures or []:
        picture = Picture()
        picture.data = data
        picture.mime = mime
        picture.type = picture_type
        audio.add_picture(picture)
    audio.save()
    return path


@pytest.fixture
def flac_file(tmp_path):
    """Factory fixture: ``flac_file("Artist/Album/01.flac", tags={...}, pictures=[...])``."""

    def _make(relative: str, **kwargs) -> Path:
        return write_flac(tmp_path / relative, **kwargs)

    return _make
