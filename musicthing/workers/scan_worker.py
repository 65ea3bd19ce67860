"""Worker that runs a library scan off the UI thread."""

from __future__ import annotations

from pathlib import Path

from musicthing.core.library_scan import LibraryScanner, ScanSummary
from musicthing.workers.base_worker import BaseWorker


class LibraryScanWorker(BaseWorker):
    """Executes a scan that the caller has already admitted with ``begin()``."""

    def __init__(self, scanner: LibraryScanner, root_dir: str | Path) -> None:
        super().__init__()
        self._scanner = scanner
        self._root_dir = Path(root_dir)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def execute(self) -> ScanSummary:
        return self._scanner.run(self._root_dir, on_progress=self.progress.emit)
