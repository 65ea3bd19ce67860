"""Library operations exposed to the UI / command layer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from PySide6.QtCore import QObject, QThread, Qt, Signal

from musicthing.core.catalog import CatalogStore, StoredAlbum, StoredTrack
from musicthing.core.library_scan import LibraryScanner, ProgressCallback, ScanSummary
from musicthing.core.metadata import MetadataResolver
from musicthing.core.scan_state import ScanState, ScanStatus
from musicthing.core.scanner import normalize_path
from musicthing.errors import ErrorCode, MusicThingError
from musicthing.workers.scan_worker import LibraryScanWorker

if TYPE_CHECKING:
    from musicthing.config.settings import AppSettings

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class LibraryService(QObject):
    """Owns the catalog, the scan state and the background scan thread.

    Progress is pushed through ``scan_progress`` while a scan runs and is
    also available at any time from ``get_scan_status()``.
    """

    scan_started = Signal(str)          # root folder
    scan_progress = Signal(float)       # percent complete
    scan_completed = Signal(object)     # ScanSummary
    scan_failed = Signal(str)           # user-facing error message

    def __init__(
        self,
        catalog: CatalogStore,
        *,
        state: ScanState | None = None,
        settings: AppSettings | None = None,
        resolver: MetadataResolver | None = None,
        extensions: Iterable[str] | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._catalog = catalog
        self._state = state or ScanState()
        self._settings = settings
        self._scanner = LibraryScanner(
            catalog,
            self._state,
            resolver=resolver,
            extensions=extensions,
        )
        self._thread: QThread | None = None
        self._worker: LibraryScanWorker | None = None

    @classmethod
    def from_settings(cls, settings: AppSettings) -> LibraryService:
        catalog = CatalogStore(settings.catalog_db_path)
        catalog.open()
        return cls(catalog, settings=settings, extensions=settings.audio_extensions)

    @property
    def catalog(self) -> CatalogStore:
        return self._catalog

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def settings(self) -> AppSettings | None:
        return self._settings

    # -- scanning --

    def start_scan(self, root: str | Path) -> None:
        """Start scanning ``root`` in the background.

        Raises:
            ScanAlreadyRunningError: If a scan is already in progress. Nothing
                about the running scan changes.
        """
        root = normalize_path(root)
        self._scanner.begin(root)
        try:
            self._remember_root(root)
            self._join_previous_thread()

            worker = LibraryScanWorker(self._scanner, root)
            thread = QThread()
            worker.moveToThread(thread)
            thread.started.connect(worker.run)
            worker.progress.connect(self.scan_progress)
            worker.finished.connect(self.scan_completed)
            worker.error.connect(self.scan_failed)
            # quit() is thread-safe; call it from the worker thread so the
            # thread ends even when no event loop runs on this side.
            worker.finished.connect(thread.quit, type=Qt.ConnectionType.DirectConnection)
            worker.error.connect(thread.quit, type=Qt.ConnectionType.DirectConnection)
            self._thread = thread
            self._worker = worker
            thread.start()
        except Exception:
            self._state.release()
            raise
        logger.info("background scan started root=%s", root)
        self.scan_started.emit(str(root))

    def scan_now(self, root: str | Path, on_progress: ProgressCallback | None = None) -> ScanSummary:
        """Scan ``root`` on the calling thread (used by the CLI)."""
        root = normalize_path(root)
        self._scanner.begin(root)
        try:
            self._remember_root(root)
        except Exception:
            self._state.release()
            raise
        return self._scanner.run(root, on_progress)

    def rescan(self) -> None:
        """Re-read the configured library root and start scanning it."""
        self.start_scan(self.configured_root())

    def configured_root(self) -> Path:
        root = self._settings.library_root if self._settings is not None else ""
        if not root:
            raise MusicThingError(
                ErrorCode.CONFIG_MISSING,
                suggestion="Scan a music folder first so it can be remembered.",
            )
        return Path(root)

    def get_scan_status(self) -> ScanStatus:
        return self._state.snapshot()

    def wait_for_scan(self, timeout_ms: int | None = None) -> bool:
        """Block until the background scan thread exits. Returns False on timeout."""
        if self._thread is None:
            return True
        if timeout_ms is None:
            return self._thread.wait()
        return self._thread.wait(int(timeout_ms))

    # -- queries --

    def list_albums(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> list[StoredAlbum]:
        return self._catalog.query_albums(limit, offset)

    def search_albums(self, query: str, limit: int = DEFAULT_PAGE_SIZE) -> list[StoredAlbum]:
        text = (query or "").strip()
        if not text:
            return []
        return self._catalog.query_albums_by_text(text, limit)

    def get_album(self, album_id: int) -> StoredAlbum | None:
        return self._catalog.query_album_by_id(album_id)

    def get_album_tracks(self, album_id: int) -> list[StoredTrack]:
        return self._catalog.query_tracks_by_album(album_id)

    def close(self) -> None:
        self._join_previous_thread()
        self._catalog.close()

    # -- internals --

    def _remember_root(self, root: Path) -> None:
        if self._settings is None:
            return
        self._settings.library_root = str(root)
        self._settings.sync()

    def _join_previous_thread(self) -> None:
        if self._thread is not None:
            self._thread.wait()
        self._thread = None
        self._worker = None
