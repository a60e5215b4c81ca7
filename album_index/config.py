"""
Settings for the album index server, read from environment variables.

  ALBUM_INDEX_ROOT               library root (required to serve)
  ALBUM_INDEX_DEBOUNCE_SECONDS   quiet period before a rescan (default 7)
  ALBUM_INDEX_WATCH              watch the root for changes (default true)
  ALBUM_INDEX_HOST / _PORT       HTTP bind address (default 0.0.0.0:8888)
  ALBUM_INDEX_LOG_LEVEL          loguru level (default INFO)
"""

import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .live_index import DEFAULT_DEBOUNCE_SECONDS

ENV_PREFIX = "ALBUM_INDEX_"

_FALSE_VALUES = {"0", "false", "no", "off"}


class IndexSettings(BaseModel):
    root: Optional[Path] = Field(None, description="Library root directory")
    debounce_seconds: float = Field(DEFAULT_DEBOUNCE_SECONDS, gt=0)
    watch: bool = True
    host: str = "0.0.0.0"
    port: int = Field(8888, ge=1, le=65535)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "IndexSettings":
        """Build settings from ``ALBUM_INDEX_*`` variables; unset ones keep their defaults."""
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        values: dict = {}
        if get("ROOT"):
            values["root"] = Path(get("ROOT")).expanduser()
        if get("DEBOUNCE_SECONDS"):
            values["debounce_seconds"] = float(get("DEBOUNCE_SECONDS"))
        if get("WATCH"):
            values["watch"] = get("WATCH").lower() not in _FALSE_VALUES
        if get("HOST"):
            values["host"] = get("HOST")
        if get("PORT"):
            values["port"] = int(get("PORT"))
        if get("LOG_LEVEL"):
            values["log_level"] = get("LOG_LEVEL").upper()
        return cls(**values)

    def require_root(self) -> Path:
        if self.root is None:
            raise RuntimeError(
                f"{ENV_PREFIX}ROOT is not set; point it at the music library directory."
            )
        return self.root


def configure_logging(level: str = "INFO") -> None:
    """Send loguru output to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level)
