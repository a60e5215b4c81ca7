"""
FastAPI Web Application for the Album Index

Endpoints:
  GET  /api/status                - Index status (root, scan state, counts)
  GET  /api/albums                - Current album list (ETag / If-None-Match aware)
  GET  /api/track?path=...        - Raw audio file of an indexed track
  GET  /api/cover?path=...        - Album cover: image file or embedded picture
  GET  /api/tags?path=...         - Live tag data and stream properties of a track

Paths are the opaque keys published in the album list; anything not in the
current snapshot is a 404, so only indexed files are ever served.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from loguru import logger

from .config import IndexSettings, configure_logging
from .filetypes import (
    is_supported_audio_file,
    is_supported_image_file,
    mime_type_for_audio_file,
    mime_type_for_image_file,
)
from .live_index import LiveIndex
from .tag_reader import TagReadError, read_audio_properties, read_embedded_picture, read_tags

LONG_CACHE = "public, max-age=604800"   # a week: indexed files are addressed by path
SHORT_CACHE = "public, max-age=300"


def get_index(request: Request) -> LiveIndex:
    index = getattr(request.app.state, "index", None)
    if index is None:
        raise HTTPException(status_code=503, detail="Album index not initialized")
    return index


def _existing_file(index: LiveIndex, path: str) -> Path:
    """Absolute path of an indexed file; 404 if it is gone since the last scan."""
    abs_path = index.root / path
    if not abs_path.is_file():
        logger.debug(f"Indexed file no longer on disk: {path}")
        raise HTTPException(status_code=404, detail="File no longer exists")
    return abs_path


def create_app(
    index: Optional[LiveIndex] = None,
    settings: Optional[IndexSettings] = None,
) -> FastAPI:
    """
    Build the web application.

    Pass an existing ``index`` to serve it as-is (the caller keeps ownership).
    Otherwise one is built from ``settings`` (default: environment) during
    startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        if index is not None:
            app_instance.state.index = index
            yield
            return

        cfg = settings or IndexSettings.from_env()
        owned = LiveIndex(
            cfg.require_root(),
            debounce_seconds=cfg.debounce_seconds,
            watch=cfg.watch,
        )
        app_instance.state.index = owned
        logger.info(f"Album index ready: {owned!r}")
        try:
            yield
        finally:
            owned.close()
            app_instance.state.index = None

    app = FastAPI(title="Album Index", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
        expose_headers=["ETag"],
    )

    # ------------------------------------------------------------------
    # Album list
    # ------------------------------------------------------------------

    @app.get("/api/status")
    def status(request: Request):
        live = get_index(request)
        snapshot = live.current_snapshot()
        return {
            "root": str(live.root),
            "state": live.state.value,
            "albums": len(snapshot.albums),
            "tracks": snapshot.track_count,
            "built_at": snapshot.built_at,
            "scans": live.scan_count,
            "failed_scans": live.failure_count,
        }

    @app.get("/api/albums")
    def albums(request: Request):
        snapshot = get_index(request).current_snapshot()
        etag = f'"{snapshot.scan_id}"'

        if request.headers.get("if-none-match") == etag:
            return Response(status_code=304, headers={"ETag": etag})

        return JSONResponse(
            {
                "built_at": snapshot.built_at,
                "albums": [a.model_dump(mode="json") for a in snapshot.albums],
            },
            headers={"ETag": etag},
        )

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    @app.get("/api/track")
    def track(request: Request, path: str):
        live = get_index(request)
        if not live.current_snapshot().has_track(path):
            raise HTTPException(status_code=404, detail="Track not found")

        mime_type = mime_type_for_audio_file(path)
        if mime_type is None:
            raise HTTPException(status_code=404, detail="Unsupported file format")

        # FileResponse handles Range requests, so clients can seek.
        return FileResponse(
            _existing_file(live, path),
            media_type=mime_type,
            headers={"Cache-Control": LONG_CACHE},
        )

    @app.get("/api/cover")
    def cover(request: Request, path: str):
        live = get_index(request)
        if not live.current_snapshot().has_cover(path):
            raise HTTPException(status_code=404, detail="Cover not found")

        abs_path = _existing_file(live, path)

        if is_supported_image_file(path):
            return FileResponse(
                abs_path,
                media_type=mime_type_for_image_file(path),
                headers={"Cache-Control": LONG_CACHE},
            )

        if is_supported_audio_file(path):
            try:
                picture = read_embedded_picture(abs_path)
            except TagReadError as e:
                logger.warning(f"Could not read embedded cover from {path}: {e}")
                picture = None
            if picture is None:
                raise HTTPException(status_code=404, detail="No embedded cover")
            data, mime_type = picture
            return Response(content=data, media_type=mime_type, headers={"Cache-Control": LONG_CACHE})

        raise HTTPException(status_code=404, detail="Unsupported file format")

    @app.get("/api/tags")
    def tags(request: Request, path: str):
        live = get_index(request)
        if not live.current_snapshot().has_track(path):
            raise HTTPException(status_code=404, detail="Track not found")

        abs_path = _existing_file(live, path)
        try:
            raw = read_tags(abs_path)
            properties = read_audio_properties(abs_path)
        except TagReadError as e:
            raise HTTPException(status_code=422, detail=str(e))

        return JSONResponse(
            {
                "name": abs_path.name,
                "size": abs_path.stat().st_size,
                "properties": properties,
                "tags": raw.model_dump(mode="json"),
            },
            headers={"Cache-Control": SHORT_CACHE},
        )

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    settings = IndexSettings.from_env()
    configure_logging(settings.log_level)
    logger.info(f"Starting album index on {settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
