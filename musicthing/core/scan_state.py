"""Shared scan flag and progress, guarded by a reader/writer lock."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from PySide6.QtCore import QReadWriteLock


class ScanPhase(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ScanStatus:
    """Point-in-time copy of the scan state handed to readers."""
    is_scanning: bool
    progress: float
    phase: ScanPhase = ScanPhase.IDLE
    error: str = ""


class ScanState:
    """Process-wide scan flag and progress percentage.

    One instance is shared by the scanner (the only writer) and any number of
    status readers. Every method holds the lock just long enough to read or
    mutate the fields; nothing slow ever runs under it.
    """

    def __init__(self) -> None:
        self._lock = QReadWriteLock()
        self._is_scanning = False
        self._progress = 0.0
        self._phase = ScanPhase.IDLE
        self._error = ""

    def try_begin(self) -> bool:
        """Atomically claim the scan slot. Returns False if a scan is running."""
        self._lock.lockForWrite()
        try:
            if self._is_scanning:
                return False
            self._is_scanning = True
            self._progress = 0.0
            self._phase = ScanPhase.SCANNING
            self._error = ""
            return True
        finally:
            self._lock.unlock()

    def set_progress(self, percent: float) -> float:
        """Publish progress; values lower than the current one are ignored."""
        percent = min(max(float(percent), 0.0), 100.0)
        self._lock.lockForWrite()
        try:
            if percent > self._progress:
                self._progress = percent
            return self._progress
        finally:
            self._lock.unlock()

    def complete(self) -> None:
        """Mark the scan completed at 100%. The flag is dropped by release()."""
        self._lock.lockForWrite()
        try:
            self._progress = 100.0
            self._phase = ScanPhase.COMPLETED
        finally:
            self._lock.unlock()

    def fail(self, message: str) -> None:
        self._lock.lockForWrite()
        try:
            self._phase = ScanPhase.FAILED
            self._error = message
        finally:
            self._lock.unlock()

    def release(self) -> None:
        """Drop the scanning flag; the phase left by complete()/fail() stays."""
        self._lock.lockForWrite()
        try:
            self._is_scanning = False
        finally:
            self._lock.unlock()

    def snapshot(self) -> ScanStatus:
        self._lock.lockForRead()
        try:
            return ScanStatus(
                is_scanning=self._is_scanning,
                progress=self._progress,
                phase=self._phase,
                error=self._error,
            )
        finally:
            self._lock.unlock()

    @property
    def is_scanning(self) -> bool:
        return self.snapshot().is_scanning

    @property
    def progress(self) -> float:
        return self.snapshot().progress
