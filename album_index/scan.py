"""
scan: one-shot scan of a library directory, printed to stdout.

Usage:
    python -m album_index.scan /path/to/music
    python -m album_index.scan /path/to/music --output json
    album-index-scan /path/to/music -v
"""

from __future__ import annotations

import argparse
import sys

from .aggregator import scan_library
from .config import configure_logging
from .models import Snapshot, TagState

_STATE_MARK = {
    TagState.CONSISTENT: " ",
    TagState.MIXED:      "~",
    TagState.MISSING:    "!",
}


def _print_pretty(snapshot: Snapshot) -> None:
    print()
    print(f"Album index of {snapshot.root}")
    print("=" * 50)
    for album in snapshot.albums:
        marks = "".join(
            _STATE_MARK[s] for s in (album.artist_state, album.name_state, album.replay_gain_state)
        )
        print(f"[{marks}] {album.artist} - {album.name}  ({len(album.tracks)} tracks)")
        print(f"      dir:   {album.directory}")
        print(f"      cover: {album.cover_path or 'none'}")
    print()
    print(f"  {len(snapshot.albums)} albums, {snapshot.track_count} tracks "
          f"in {snapshot.duration_seconds}s")
    print("  Flags: artist/name/replaygain, '~' mixed, '!' missing")
    print()


def _cli_main() -> None:
    parser = argparse.ArgumentParser(
        prog="album-index-scan",
        description="Scan a music directory and print the album index.",
    )
    parser.add_argument("root", help="Library root directory")
    parser.add_argument(
        "--output", choices=["pretty", "json"], default="pretty",
        help="Output format (default: pretty)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log per-file problems (default: warnings and errors only)",
    )
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "WARNING")

    try:
        snapshot = scan_library(args.root)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output == "json":
        print(snapshot.model_dump_json(indent=2))
    else:
        _print_pretty(snapshot)


if __name__ == "__main__":
    _cli_main()
