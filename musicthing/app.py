"""Headless QCoreApplication bootstrap and command line."""

from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
import sys
from typing import Sequence

from PySide6.QtCore import QCoreApplication

from musicthing.config.settings import AppSettings
from musicthing.core.catalog import StoredAlbum
from musicthing.core.library import DEFAULT_PAGE_SIZE, LibraryService
from musicthing.errors import MusicThingError, format_error_for_user

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(settings: AppSettings, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger("musicthing")
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler = RotatingFileHandler(
        settings.logs_dir / "musicthing.log",
        maxBytes=512_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger.addHandler(console)
    logger.propagate = False
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="musicthing",
        description="Index a music folder into an album catalog.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="scan a folder and remember it")
    scan.add_argument("folder")

    sub.add_parser("rescan", help="scan the remembered folder again")
    sub.add_parser("status", help="show the configured folder and catalog size")

    albums = sub.add_parser("albums", help="list albums")
    albums.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE)
    albums.add_argument("--offset", type=int, default=0)

    search = sub.add_parser("search", help="search albums by title or artist")
    search.add_argument("text")
    search.add_argument("--limit", type=int, default=DEFAULT_PAGE_SIZE)

    tracks = sub.add_parser("tracks", help="list the tracks of one album")
    tracks.add_argument("album_id", type=int)
    return parser


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def _print_albums(albums: list[StoredAlbum]) -> None:
    if not albums:
        print("No albums found.")
        return
    for album in albums:
        year = f" ({album.year})" if album.year else ""
        cover = "" if album.cover_art is None else " [cover]"
        print(
            f"{album.id:>5}  {album.artist} - {album.title}{year}  "
            f"{album.track_count} tracks, {_format_duration(album.total_duration)}{cover}"
        )


def _print_progress(percent: float) -> None:
    sys.stderr.write(f"\rScanning... {percent:5.1f}%")
    sys.stderr.flush()


def run_command(service: LibraryService, args: argparse.Namespace) -> int:
    if args.command in {"scan", "rescan"}:
        root = args.folder if args.command == "scan" else service.configured_root()
        summary = service.scan_now(root, on_progress=_print_progress)
        sys.stderr.write("\n")
        print(
            f"Scanned {summary.files_found} files into {summary.albums_written} albums "
            f"({summary.tracks_written} tracks, {len(summary.failed_files)} unreadable)."
        )
        return 0
    if args.command == "status":
        status = service.get_scan_status()
        root = service.settings.library_root if service.settings is not None else ""
        print(f"Folder:  {root or '(not configured)'}")
        print(f"Albums:  {service.catalog.count_albums()}")
        print(f"Tracks:  {service.catalog.count_tracks()}")
        print(f"Scan:    {status.phase.value} {status.progress:.1f}%")
        return 0
    if args.command == "albums":
        _print_albums(service.list_albums(args.limit, args.offset))
        return 0
    if args.command == "search":
        _print_albums(service.search_albums(args.text, args.limit))
        return 0
    if args.command == "tracks":
        album = service.get_album(args.album_id)
        if album is None:
            print(f"No album with id {args.album_id}.", file=sys.stderr)
            return 1
        print(f"{album.artist} - {album.title}")
        for track in service.get_album_tracks(album.id):
            number = track.track_number or "-"
            lyrics = " [lyrics]" if track.lyrics_path else ""
            print(f"  {number:>5}  {track.title}  {_format_duration(track.duration)}{lyrics}")
        return 0
    return 2


def run_app(argv: Sequence[str] | None = None) -> int:
    """Initialize the application and run one command."""
    args = build_parser().parse_args(argv)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("MusicThing")
    app.setOrganizationName("MusicThing")

    settings = AppSettings()
    logger = configure_logging(settings, verbose=args.verbose)
    logger.info("command=%s", args.command)

    try:
        service = LibraryService.from_settings(settings)
    except MusicThingError as exc:
        print(format_error_for_user(exc), file=sys.stderr)
        return 1
    try:
        return run_command(service, args)
    except MusicThingError as exc:
        print(format_error_for_user(exc), file=sys.stderr)
        return 1
    finally:
        service.close()
