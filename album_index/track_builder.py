"""
Track construction.

Turns one file's ``RawTags`` into an immutable ``Track``.  Every derived
field has its own small pure function so each fallback rule can be tested
without touching the filesystem.
"""

import math
from pathlib import PurePosixPath
from typing import Any, Optional

from .filetypes import is_supported_image_mime_type
from .models import RawTags, TagState, Track, UNKNOWN


def _numeric(value: Optional[float]) -> Optional[float]:
    if value is None or math.isnan(value):
        return None
    return value


def field_state(value: Any) -> TagState:
    """MISSING for None, blank strings, zero and NaN; CONSISTENT otherwise."""
    if value is None:
        return TagState.MISSING
    if isinstance(value, str):
        return TagState.CONSISTENT if value.strip() else TagState.MISSING
    if isinstance(value, float) and math.isnan(value):
        return TagState.MISSING
    if isinstance(value, (int, float)) and value == 0:
        return TagState.MISSING
    return TagState.CONSISTENT


# ---------------------------------------------------------------------------
# Field derivation
# ---------------------------------------------------------------------------

def _tagged_artist(tags: RawTags) -> str:
    return tags.joined_performers or tags.joined_album_artists


def derive_artist(tags: RawTags) -> str:
    return _tagged_artist(tags) or UNKNOWN


def derive_album_artist(tags: RawTags) -> str:
    # Only used when grouping tracks into an album, never as a display fallback.
    return tags.joined_album_artists


def derive_album(tags: RawTags) -> str:
    return (tags.album or "").strip() or UNKNOWN


def derive_title(tags: RawTags, path: str) -> str:
    return (tags.title or "").strip() or PurePosixPath(path).name


def derive_gain(tags: RawTags) -> float:
    for value in (tags.replaygain_album_gain, tags.replaygain_track_gain):
        if _numeric(value) is not None:
            return value
    return 0.0


def derive_peak(tags: RawTags) -> float:
    # 1.0 = full scale, i.e. no attenuation needed
    for value in (tags.replaygain_album_peak, tags.replaygain_track_peak):
        if _numeric(value) is not None:
            return value
    return 1.0


def derive_has_cover(tags: RawTags) -> bool:
    return any(is_supported_image_mime_type(p.mime) for p in tags.pictures)


def derive_replay_gain_state(tags: RawTags) -> TagState:
    if _numeric(tags.replaygain_album_gain) is None and _numeric(tags.replaygain_track_gain) is None:
        return TagState.MISSING
    return TagState.CONSISTENT


# ---------------------------------------------------------------------------
# Track
# ---------------------------------------------------------------------------

def build_track(tags: Optional[RawTags], path: str) -> Track:
    """
    Build the Track for one file.

    Args:
        tags: Tag data read from the file, or None if reading failed.  A
              failed read is indexed with the all-blank tag, so the file is
              still listed with every field state MISSING.
        path: POSIX path of the file relative to the index root.
    """
    if tags is None:
        tags = RawTags()

    return Track(
        artist=derive_artist(tags),
        album_artist=derive_album_artist(tags),
        album=derive_album(tags),
        title=derive_title(tags, path),
        track_no=tags.track,
        disc_no=tags.disc,
        gain=derive_gain(tags),
        peak=derive_peak(tags),
        has_cover=derive_has_cover(tags),
        artist_state=field_state(_tagged_artist(tags)),
        album_state=field_state(tags.album),
        title_state=field_state(tags.title),
        track_no_state=field_state(tags.track),
        replay_gain_state=derive_replay_gain_state(tags),
        path=path,
    )
