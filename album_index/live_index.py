"""
Live Index: keeps a Snapshot of the library current while files change.

The first scan runs synchronously in the constructor, so an index always
has a snapshot.  A watchdog observer, started before that scan, reports
changes under the root; every relevant event restarts a debounce timer,
and when the timer finally fires a full rescan runs on the timer thread.

Rescans never overlap and never queue up: if the timer fires while a scan
is still running, the timer is simply re-armed.  However many events arrive
during a scan, they collapse into one more scan after the delay.  A failed
scan keeps the previous snapshot published and re-arms the timer to retry.

Usage:
    with LiveIndex("/music") as index:
        albums = index.current_snapshot().albums
"""

from __future__ import annotations

import threading
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .aggregator import scan_library
from .filetypes import is_supported_audio_file, is_supported_image_file
from .models import Snapshot

DEFAULT_DEBOUNCE_SECONDS = 7.0

Scanner = Callable[[Path], Snapshot]


class IndexState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


# ---------------------------------------------------------------------------
# Debounce timer
# ---------------------------------------------------------------------------

class DebounceTimer:
    """
    One-shot timer that can only be (re)started or cancelled.

    ``restart()`` drops any pending fire and schedules a new one ``delay``
    seconds from now.  The lock only covers swapping the timer object; the
    callback runs without it.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._closed = False

    def restart(self) -> None:
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._callback)
            self._timer.daemon = True
            self._timer.name = "album-index-debounce"
            self._timer.start()

    def cancel(self) -> None:
        """Disarm for good; later ``restart()`` calls are ignored."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None and self._timer.is_alive()


# ---------------------------------------------------------------------------
# Watchdog bridge
# ---------------------------------------------------------------------------

class _IndexEventHandler(FileSystemEventHandler):
    def __init__(self, index: "LiveIndex") -> None:
        super().__init__()
        self._index = index

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._index.on_filesystem_event(event)


def is_relevant_event(event: FileSystemEvent) -> bool:
    """
    Whether an event can change the album list.

    Creations, deletions and renames always count.  A modification only
    counts for supported audio and image files, whose tags or size may have
    changed; on other files, and on directories, it is mtime/attribute noise.
    Open/close events are ignored.
    """
    if event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED):
        return True
    if event.event_type != EVENT_TYPE_MODIFIED or event.is_directory:
        return False
    path = str(event.src_path)
    return is_supported_audio_file(path) or is_supported_image_file(path)


# ---------------------------------------------------------------------------
# LiveIndex
# ---------------------------------------------------------------------------

class LiveIndex:
    """
    Owns the current Snapshot of one library root.

    Readers call ``current_snapshot()``, which never blocks and always
    returns a complete snapshot: publication is a single reference swap.
    ``close()`` releases the filesystem subscription and the timer.
    """

    def __init__(
        self,
        root: Union[str, Path],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        scanner: Scanner = scan_library,
        watch: bool = True,
    ) -> None:
        self._root = Path(root)
        self._scanner = scanner
        self._scan_guard = threading.Lock()
        self._state = IndexState.IDLE
        self._scan_count = 0
        self._failure_count = 0
        self._observer: Optional[Observer] = None
        self._closed = False

        # Subscribe first: changes made while the initial scan runs arm the
        # timer and are picked up by one rescan once it finishes.
        self._timer = DebounceTimer(debounce_seconds, self._on_timer)
        if watch and self._root.is_dir():
            self._start_watching()

        logger.info(f"Loading album list from {self._root}")
        try:
            with self._scan_guard:
                self._state = IndexState.SCANNING
                try:
                    self._snapshot: Snapshot = self._scanner(self._root)
                finally:
                    self._state = IndexState.IDLE
        except BaseException:
            self.close()
            raise
        self._scan_count = 1
        logger.info(
            f"Loaded album list in {self._snapshot.duration_seconds}s "
            f"({len(self._snapshot.albums)} albums)"
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def scan_count(self) -> int:
        """Successful scans so far, the initial one included."""
        return self._scan_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def debounce_seconds(self) -> float:
        return self._timer.delay

    def current_snapshot(self) -> Snapshot:
        return self._snapshot

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def _start_watching(self) -> None:
        observer = Observer()
        observer.daemon = True
        observer.schedule(_IndexEventHandler(self), str(self._root), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug(f"Watching {self._root} for changes")

    def on_filesystem_event(self, event: FileSystemEvent) -> None:
        """Restart the debounce timer for any event that can change the album list."""
        if not is_relevant_event(event):
            return
        logger.debug(f"Filesystem {event.event_type}: {event.src_path}")
        self._timer.restart()

    def _on_timer(self) -> None:
        if self._closed:
            return
        if not self._scan_guard.acquire(blocking=False):
            # Coalesce: one retry after the delay covers every event seen mid-scan
            logger.debug("Rescan already in progress, deferring")
            self._timer.restart()
            return

        failed = False
        try:
            self._state = IndexState.SCANNING
            logger.info(f"Rescanning {self._root}")
            try:
                snapshot = self._scanner(self._root)
            except Exception:
                failed = True
                self._failure_count += 1
                logger.exception(
                    f"Rescan of {self._root} failed; keeping the previous album list"
                )
            else:
                self._snapshot = snapshot
                self._scan_count += 1
        finally:
            self._state = IndexState.IDLE
            self._scan_guard.release()

        if failed:
            self._timer.restart()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._timer.cancel()
        logger.debug(f"Stopped watching {self._root}")

    def __enter__(self) -> "LiveIndex":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        snapshot = self._snapshot
        return (
            f"LiveIndex({self._root}, {self._state.value}, "
            f"{len(snapshot.albums)} albums, {snapshot.track_count} tracks)"
        )
