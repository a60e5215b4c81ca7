"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from album_index.config import IndexSettings


class TestFromEnv:
    def test_defaults(self):
        settings = IndexSettings.from_env({})
        assert settings.root is None
        assert settings.debounce_seconds == 7.0
        assert settings.watch is True
        assert settings.host == "0.0.0.0"
        assert settings.port == 8888
        assert settings.log_level == "INFO"

    def test_all_variables(self):
        settings = IndexSettings.from_env({
            "ALBUM_INDEX_ROOT": "/srv/music",
            "ALBUM_INDEX_DEBOUNCE_SECONDS": "2.5",
            "ALBUM_INDEX_WATCH": "true",
            "ALBUM_INDEX_HOST": "127.0.0.1",
            "ALBUM_INDEX_PORT": "9000",
            "ALBUM_INDEX_LOG_LEVEL": "debug",
        })
        assert settings.root == Path("/srv/music")
        assert settings.debounce_seconds == 2.5
        assert settings.host == "127.0.0.1"
        assert settings.port == 9000
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("value", ["0", "false", "No", " OFF "])
    def test_watch_disabled(self, value):
        assert IndexSettings.from_env({"ALBUM_INDEX_WATCH": value}).watch is False

    def test_blank_values_keep_defaults(self):
        settings = IndexSettings.from_env({"ALBUM_INDEX_ROOT": "  ", "ALBUM_INDEX_PORT": ""})
        assert settings.root is None
        assert settings.port == 8888

    def test_invalid_debounce(self):
        with pytest.raises(ValidationError):
            IndexSettings.from_env({"ALBUM_INDEX_DEBOUNCE_SECONDS": "0"})


class TestRequireRoot:
    def test_unset(self):
        with pytest.raises(RuntimeError, match="ALBUM_INDEX_ROOT"):
            IndexSettings().require_root()

    def test_set(self, tmp_path):
        assert IndexSettings(root=tmp_path).require_root() == tmp_path
