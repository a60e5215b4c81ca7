"""
Album aggregation: walks the library tree and builds a Snapshot.

A directory becomes an album when at least one supported audio file sits
directly inside it.  Each album gets its tracks in playback order,
album-level tag states, a display artist/name, and a cover chosen by a
deterministic ranking of the image files found anywhere below it.

Usage:
    snapshot = scan_library("/music")
    for album in snapshot.albums:
        print(album.artist, album.name, album.cover_path)
"""

from __future__ import annotations

import os
import re
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from loguru import logger

from .filetypes import is_supported_audio_file, is_supported_image_file
from .models import Album, RawTags, Snapshot, TagState, Track, UNKNOWN
from .tag_reader import read_tags
from .track_builder import build_track

TagReader = Callable[[Path], RawTags]

COVER_KEYWORDS = ("cover", "folder", "front")

_NUMBER_RE = re.compile(r"\d+")


def _raise(exc: OSError) -> None:
    raise exc


def _walk(directory: Path) -> Iterator[tuple[Path, list[str]]]:
    """Deterministic ``os.walk`` that propagates I/O errors instead of skipping them."""
    for dirpath, dirnames, filenames in os.walk(directory, onerror=_raise):
        dirnames.sort()
        yield Path(dirpath), sorted(filenames)


def _relative(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def album_directories(root: Path) -> Iterator[tuple[Path, list[Path]]]:
    """
    Yield ``(directory, audio_files)`` for every directory under ``root``
    (``root`` included) that directly contains a supported audio file.
    """
    for directory, filenames in _walk(root):
        audio_files = [directory / name for name in filenames if is_supported_audio_file(name)]
        if audio_files:
            yield directory, audio_files


# ---------------------------------------------------------------------------
# Tag states
# ---------------------------------------------------------------------------

def aggregate_state(states: Iterable[TagState], values: Iterable[Any]) -> TagState:
    """
    Album-level state of one field.

    MISSING if any track lacks the field; otherwise MIXED if the tracks carry
    more than one distinct non-blank value; otherwise CONSISTENT.
    """
    if any(state == TagState.MISSING for state in states):
        return TagState.MISSING
    distinct = {v for v in values if not (isinstance(v, str) and not v.strip())}
    return TagState.MIXED if len(distinct) > 1 else TagState.CONSISTENT


def _grouping_artist(track: Track) -> str:
    return track.album_artist or track.artist


def _directory_name(root: Path, directory: Path) -> str:
    """Name of ``directory``, or '?' if it lies outside the index or has no name."""
    try:
        directory.relative_to(root)
    except ValueError:
        return UNKNOWN
    return directory.name or UNKNOWN


# ---------------------------------------------------------------------------
# Cover selection
# ---------------------------------------------------------------------------

def _first_number(stem: str) -> int:
    match = _NUMBER_RE.search(stem)
    return int(match.group()) if match else sys.maxsize


def _image_size(root: Path, image: Path) -> Optional[int]:
    """Size of a cover candidate, or None if it can't be stat'ed (dangling link, deleted mid-scan)."""
    try:
        return image.stat().st_size
    except OSError as exc:
        logger.debug(f"Skipping cover candidate {_relative(root, image)}: {exc}")
        return None


def _cover_rank(root: Path, image: Path, size: int) -> tuple:
    stem = image.stem.lower()
    keyword_hits = sum(1 for keyword in COVER_KEYWORDS if keyword in stem)
    return (
        -keyword_hits,
        len(_relative(root, image.parent)),
        _first_number(stem),
        size,  # big multi-MB scans are a poor thumbnail
        _relative(root, image),
    )


def select_cover(root: Path, directory: Path, tracks: Sequence[Track]) -> str:
    """
    Pick the album cover.

    1. The best ranked supported image anywhere under ``directory``.
    2. Otherwise the first track (playback order) with an embedded picture.
    3. Otherwise "", meaning no cover.
    """
    ranked = []
    for folder, filenames in _walk(directory):
        for name in filenames:
            if not is_supported_image_file(name):
                continue
            image = folder / name
            size = _image_size(root, image)
            if size is not None:
                ranked.append(_cover_rank(root, image, size))
    if ranked:
        return min(ranked)[-1]

    for track in tracks:
        if track.has_cover:
            return track.path
    return ""


# ---------------------------------------------------------------------------
# Album construction
# ---------------------------------------------------------------------------

def _read_track(root: Path, file_path: Path, reader: TagReader) -> Track:
    path = _relative(root, file_path)
    try:
        tags = reader(file_path)
    except Exception as exc:  # noqa: BLE001
        logger.warning(f"Could not read tags from {path}, indexing it untagged: {exc}")
        tags = None
    return build_track(tags, path)


def build_album(
    root: Path,
    directory: Path,
    audio_files: Iterable[Path],
    reader: TagReader = read_tags,
) -> Album:
    """Build the Album for one directory from the audio files directly inside it."""
    tracks = sorted(
        (_read_track(root, f, reader) for f in audio_files),
        key=lambda t: (t.disc_no, t.track_no, t.path),
    )

    artist_state = aggregate_state(
        (t.artist_state for t in tracks), (_grouping_artist(t) for t in tracks)
    )
    name_state = aggregate_state((t.album_state for t in tracks), (t.album for t in tracks))
    replay_gain_state = aggregate_state(
        (t.replay_gain_state for t in tracks), (t.gain for t in tracks)
    )

    # Fall back to the folder layout: <artist>/<album>/
    artist = (
        _grouping_artist(tracks[0])
        if artist_state == TagState.CONSISTENT
        else _directory_name(root, directory.parent)
    )
    name = tracks[0].album if name_state == TagState.CONSISTENT else _directory_name(root, directory)

    return Album(
        artist=artist,
        name=name,
        tracks=tuple(tracks),
        cover_path=select_cover(root, directory, tracks),
        artist_state=artist_state,
        name_state=name_state,
        replay_gain_state=replay_gain_state,
        directory=_relative(root, directory),
    )


def scan_library(root: Union[str, Path], reader: TagReader = read_tags) -> Snapshot:
    """
    Walk the whole tree under ``root`` and build a fresh Snapshot.

    Per-file tag failures are logged and indexed untagged.  Anything that
    stops the walk itself (missing root, permission denied, a directory
    vanishing mid-scan) propagates to the caller.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Library root does not exist or is not a directory: {root}")

    started = time.perf_counter()
    albums = [
        build_album(root, directory, audio_files, reader)
        for directory, audio_files in album_directories(root)
    ]
    albums.sort(key=lambda a: (a.artist.casefold(), a.name.casefold(), a.directory))
    elapsed = time.perf_counter() - started

    snapshot = Snapshot(
        root=str(root),
        albums=tuple(albums),
        scan_id=uuid.uuid4().hex,
        built_at=datetime.now(timezone.utc).isoformat(),
        duration_seconds=round(elapsed, 3),
    )
    logger.info(
        f"Scanned {root}: {len(albums)} albums, {snapshot.track_count} tracks "
        f"in {elapsed:.2f}s"
    )
    return snapshot
