"""Discover, resolve, aggregate and persist a music folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from musicthing.core.aggregator import AlbumAggregator, AlbumGroup
from musicthing.core.catalog import CatalogStore
from musicthing.core.metadata import MetadataResolver
from musicthing.core.scan_state import ScanState
from musicthing.core.scanner import FileScanner, normalize_path
from musicthing.errors import (
    ErrorCode,
    MusicThingError,
    ScanAlreadyRunningError,
    classify_exception,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass
class ScanSummary:
    """What one completed scan did to the catalog."""
    root: Path
    files_found: int = 0
    albums_written: int = 0
    tracks_written: int = 0
    albums_removed: int = 0
    failed_files: list[Path] = field(default_factory=list)


def progress_percent(processed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return processed * 100.0 / total


class LibraryScanner:
    """Runs one scan at a time against a shared ScanState and CatalogStore."""

    def __init__(
        self,
        catalog: CatalogStore,
        state: ScanState,
        *,
        resolver: MetadataResolver | None = None,
        extensions: Iterable[str] | None = None,
    ) -> None:
        self._catalog = catalog
        self._state = state
        self._resolver = resolver or MetadataResolver()
        self._extensions = extensions

    @property
    def state(self) -> ScanState:
        return self._state

    def begin(self, root: str | Path | None = None) -> None:
        """Claim the scan slot or raise ScanAlreadyRunningError.

        A rejected request leaves flag and progress untouched.
        """
        if not self._state.try_begin():
            raise ScanAlreadyRunningError(root)

    def scan(self, root: str | Path, on_progress: ProgressCallback | None = None) -> ScanSummary:
        """begin() + run() for synchronous callers."""
        self.begin(root)
        return self.run(root, on_progress)

    def run(self, root: str | Path, on_progress: ProgressCallback | None = None) -> ScanSummary:
        """Scan ``root`` into the catalog. Must be preceded by begin().

        Per-file problems are absorbed. Anything else marks the scan failed,
        releases the scanning flag and is raised as a MusicThingError.
        """
        root = normalize_path(root)
        summary = ScanSummary(root=root)
        try:
            if not root.is_dir():
                raise MusicThingError(
                    ErrorCode.PATH_INVALID,
                    message=f"Music folder does not exist: {root}",
                    path=root,
                )

            logger.info("scan started root=%s", root)
            files = list(FileScanner(root, self._extensions).scan_iter())
            total = len(files)
            summary.files_found = total

            aggregator = AlbumAggregator()
            for index, audio_file in enumerate(files, start=1):
                track = self._resolver.resolve(audio_file.path, audio_file.mtime)
                if track.read_error:
                    summary.failed_files.append(track.path)
                aggregator.add(track)
                self._publish(progress_percent(index, total), on_progress)

            self._persist(root, aggregator.groups(), summary)

            self._state.complete()
            if on_progress is not None:
                on_progress(100.0)
            logger.info(
                "scan completed root=%s files=%d albums=%d removed=%d",
                root,
                summary.files_found,
                summary.albums_written,
                summary.albums_removed,
            )
            return summary
        except Exception as exc:
            error = classify_exception(exc, root)
            self._state.fail(error.message)
            logger.error("scan failed root=%s: %s", root, error)
            if error is exc:
                raise
            raise error from exc
        finally:
            self._state.release()

    def _publish(self, percent: float, on_progress: ProgressCallback | None) -> None:
        current = self._state.set_progress(percent)
        if on_progress is not None:
            on_progress(current)

    def _persist(self, root: Path, groups: list[AlbumGroup], summary: ScanSummary) -> None:
        with self._catalog.transaction():
            summary.albums_removed = self._catalog.delete_albums_by_location(root)

        for group in groups:
            with self._catalog.transaction():
                album_id = self._catalog.upsert_album(group.album)
                for track in group.tracks:
                    self._catalog.upsert_track(album_id, track)
            summary.albums_written += 1
            summary.tracks_written += len(group.tracks)
