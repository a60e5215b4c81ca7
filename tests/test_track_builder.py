"""Unit tests for per-file Track derivation and its fallback rules."""

import math

import pytest
from pydantic import ValidationError

from album_index.models import EmbeddedPicture, RawTags, TagState, UNKNOWN
from album_index.track_builder import (
    build_track,
    derive_album,
    derive_album_artist,
    derive_artist,
    derive_gain,
    derive_has_cover,
    derive_peak,
    derive_replay_gain_state,
    derive_title,
    field_state,
)


def make_tags(**kwargs) -> RawTags:
    return RawTags(**kwargs)


class TestFieldState:
    @pytest.mark.parametrize("value", [None, "", "   ", 0, 0.0, math.nan])
    def test_missing(self, value):
        assert field_state(value) == TagState.MISSING

    @pytest.mark.parametrize("value", ["x", 1, -3.5, 12])
    def test_consistent(self, value):
        assert field_state(value) == TagState.CONSISTENT


class TestArtist:
    def test_performers_joined(self):
        tags = make_tags(performers=["A", "B"], album_artists=["C"])
        assert derive_artist(tags) == "A; B"

    def test_falls_back_to_album_artist(self):
        tags = make_tags(performers=["  "], album_artists=["Various", "Others"])
        assert derive_artist(tags) == "Various; Others"

    def test_unknown_marker(self):
        assert derive_artist(make_tags()) == UNKNOWN

    def test_album_artist_is_never_a_display_fallback(self):
        assert derive_album_artist(make_tags(performers=["A"])) == ""
        assert derive_album_artist(make_tags(album_artists=["X", "Y"])) == "X; Y"


class TestAlbumAndTitle:
    def test_album(self):
        assert derive_album(make_tags(album="Greatest Hits")) == "Greatest Hits"
        assert derive_album(make_tags(album=" ")) == UNKNOWN

    def test_title_falls_back_to_file_name(self):
        assert derive_title(make_tags(title="Song"), "A/B/01.mp3") == "Song"
        assert derive_title(make_tags(), "A/B/01 - Intro.mp3") == "01 - Intro.mp3"


class TestReplayGain:
    def test_album_values_win(self):
        tags = make_tags(
            replaygain_album_gain=-7.0, replaygain_album_peak=0.9,
            replaygain_track_gain=-5.0, replaygain_track_peak=0.7,
        )
        assert derive_gain(tags) == -7.0
        assert derive_peak(tags) == 0.9

    def test_track_values_used_when_album_missing(self):
        tags = make_tags(replaygain_track_gain=-5.0, replaygain_track_peak=0.7)
        assert derive_gain(tags) == -5.0
        assert derive_peak(tags) == 0.7

    def test_nan_is_not_numeric(self):
        tags = make_tags(replaygain_album_gain=math.nan, replaygain_track_gain=-2.5)
        assert derive_gain(tags) == -2.5

    def test_defaults(self):
        assert derive_gain(make_tags()) == 0.0
        assert derive_peak(make_tags()) == 1.0

    def test_state(self):
        assert derive_replay_gain_state(make_tags()) == TagState.MISSING
        assert derive_replay_gain_state(make_tags(replaygain_album_peak=0.5)) == TagState.MISSING
        assert derive_replay_gain_state(make_tags(replaygain_track_gain=0.0)) == TagState.CONSISTENT


class TestHasCover:
    def test_supported_picture(self):
        tags = make_tags(pictures=[EmbeddedPicture(mime="image/jpg", picture_type=3, size=10)])
        assert derive_has_cover(tags)

    def test_only_unsupported_pictures(self):
        tags = make_tags(pictures=[EmbeddedPicture(mime="image/gif"), EmbeddedPicture(mime="-->")])
        assert not derive_has_cover(tags)

    def test_no_pictures(self):
        assert not derive_has_cover(make_tags())


class TestBuildTrack:
    def test_fully_tagged(self):
        tags = make_tags(
            performers=["A"], album_artists=["AA"], album="Alb", title="T",
            track=3, disc=1, replaygain_track_gain=-4.0,
            pictures=[EmbeddedPicture(mime="image/png")],
        )
        track = build_track(tags, "A/Alb/03.flac")
        assert track.artist == "A"
        assert track.album_artist == "AA"
        assert track.album == "Alb"
        assert track.title == "T"
        assert (track.disc_no, track.track_no) == (1, 3)
        assert track.gain == -4.0
        assert track.peak == 1.0
        assert track.has_cover
        assert track.path == "A/Alb/03.flac"
        for state in (track.artist_state, track.album_state, track.title_state,
                      track.track_no_state, track.replay_gain_state):
            assert state == TagState.CONSISTENT

    def test_read_failure_gives_all_missing(self):
        track = build_track(None, "A/Alb/broken.mp3")
        assert track.artist == UNKNOWN
        assert track.album == UNKNOWN
        assert track.title == "broken.mp3"
        assert (track.gain, track.peak) == (0.0, 1.0)
        assert not track.has_cover
        for state in (track.artist_state, track.album_state, track.title_state,
                      track.track_no_state, track.replay_gain_state):
            assert state == TagState.MISSING

    def test_artist_state_uses_album_artist(self):
        track = build_track(make_tags(album_artists=["AA"]), "x.mp3")
        assert track.artist == "AA"
        assert track.artist_state == TagState.CONSISTENT

    def test_track_is_immutable(self):
        track = build_track(make_tags(title="T"), "x.mp3")
        with pytest.raises(ValidationError):
            track.title = "changed"
