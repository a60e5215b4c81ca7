"""
Data Models for the Album Index

Immutable value types produced by a scan: raw tag data read from one file,
the per-file Track record, the per-directory Album record, and the Snapshot
that the live index publishes.
"""

from enum import Enum
from typing import Optional, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "?"


class TagState(str, Enum):
    """Consistency of one tag field, for a single track or across an album."""

    MISSING = "missing"
    MIXED = "mixed"  # e.g. compilation where tracks may all have different artists.
    CONSISTENT = "consistent"


# ---------------------------------------------------------------------------
# Raw tag data (metadata reader output)
# ---------------------------------------------------------------------------

class EmbeddedPicture(BaseModel):
    """Description of a picture embedded in a tag (the bytes are not kept)."""

    model_config = ConfigDict(frozen=True)

    mime: str = Field("", description="Mime type as stored in the tag")
    picture_type: int = Field(0, description="ID3/FLAC picture type, 3 = front cover")
    size: int = Field(0, ge=0, description="Picture size in bytes")


class RawTags(BaseModel):
    """Tag fields of one audio file, before any fallback rules are applied.

    ``RawTags()`` is the all-blank tag substituted when a file can't be read.
    """

    model_config = ConfigDict(frozen=True)

    performers: List[str] = Field(default_factory=list, description="Track artist names")
    album_artists: List[str] = Field(default_factory=list, description="Album artist names")
    album: Optional[str] = None
    title: Optional[str] = None
    track: int = Field(0, ge=0, description="Track number, 0 when absent")
    disc: int = Field(0, ge=0, description="Disc number, 0 when absent")
    replaygain_album_gain: Optional[float] = None
    replaygain_album_peak: Optional[float] = None
    replaygain_track_gain: Optional[float] = None
    replaygain_track_peak: Optional[float] = None
    pictures: List[EmbeddedPicture] = Field(default_factory=list)

    @property
    def joined_performers(self) -> str:
        return "; ".join(p.strip() for p in self.performers if p and p.strip())

    @property
    def joined_album_artists(self) -> str:
        return "; ".join(a.strip() for a in self.album_artists if a and a.strip())


# ---------------------------------------------------------------------------
# Index records
# ---------------------------------------------------------------------------

class Track(BaseModel):
    """One audio file in the index."""

    model_config = ConfigDict(frozen=True)

    artist: str = Field(..., description="Performer(s), or album artist, or '?'")
    album_artist: str = Field("", description="Album artist, empty when untagged")
    album: str = Field(..., description="Album tag, or '?'")
    title: str = Field(..., description="Title tag, or the file name")
    track_no: int = Field(0, ge=0)
    disc_no: int = Field(0, ge=0)
    gain: float = Field(0.0, description="ReplayGain adjustment in dB")
    peak: float = Field(1.0, description="ReplayGain peak, linear scale")
    has_cover: bool = False
    artist_state: TagState
    album_state: TagState
    title_state: TagState
    track_no_state: TagState
    replay_gain_state: TagState
    path: str = Field(..., description="POSIX path relative to the index root")


class Album(BaseModel):
    """All audio files sitting directly in one directory."""

    model_config = ConfigDict(frozen=True)

    artist: str
    name: str
    tracks: Tuple[Track, ...] = Field(..., description="Playback order: disc, track number, path")
    cover_path: str = Field("", description="Image or audio file holding the cover; empty = no cover")
    artist_state: TagState
    name_state: TagState
    replay_gain_state: TagState
    directory: str = Field(..., description="Album directory relative to the index root")


class Snapshot(BaseModel):
    """The complete album list produced by one scan. Never mutated after publication."""

    model_config = ConfigDict(frozen=True)

    root: str
    albums: Tuple[Album, ...] = ()
    scan_id: str = Field(..., description="Random token identifying this scan (used as an ETag)")
    built_at: str = Field(..., description="ISO-8601 UTC timestamp of scan completion")
    duration_seconds: float = 0.0

    @property
    def track_count(self) -> int:
        return sum(len(album.tracks) for album in self.albums)

    def find_track(self, path: str) -> Optional[Track]:
        for album in self.albums:
            for track in album.tracks:
                if track.path == path:
                    return track
        return None

    def has_track(self, path: str) -> bool:
        return self.find_track(path) is not None

    def has_cover(self, path: str) -> bool:
        return bool(path) and any(album.cover_path == path for album in self.albums)
