"""Error codes and error handling utilities for MusicThing."""

from __future__ import annotations

import errno
import sqlite3
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any

from mutagen import MutagenError


class ErrorCode(Enum):
    """Failure kinds surfaced by scanning and the catalog."""

    # File system
    FILE_NOT_FOUND = auto()
    FILE_ACCESS_DENIED = auto()
    DISK_FULL = auto()
    PATH_INVALID = auto()

    # Tag reading
    TAG_READ_FAILED = auto()
    TAG_CORRUPT = auto()
    TAG_UNSUPPORTED_FORMAT = auto()

    # Catalog
    CATALOG_UNAVAILABLE = auto()
    CATALOG_WRITE_FAILED = auto()

    # Scan control and configuration
    SCAN_ALREADY_RUNNING = auto()
    CONFIG_MISSING = auto()
    OPERATION_FAILED = auto()


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.FILE_NOT_FOUND: "The file or folder no longer exists.",
    ErrorCode.FILE_ACCESS_DENIED: "Access denied. Check the folder permissions.",
    ErrorCode.DISK_FULL: "The disk is full. Free up space and scan again.",
    ErrorCode.PATH_INVALID: "The music folder is missing or not a folder.",

    ErrorCode.TAG_READ_FAILED: "The file's tags could not be read.",
    ErrorCode.TAG_CORRUPT: "The file's audio stream or tags are damaged.",
    ErrorCode.TAG_UNSUPPORTED_FORMAT: "This audio format is not supported.",

    ErrorCode.CATALOG_UNAVAILABLE: "The music catalog could not be opened.",
    ErrorCode.CATALOG_WRITE_FAILED: "Saving to the music catalog failed. Nothing from the failed album was kept.",

    ErrorCode.SCAN_ALREADY_RUNNING: "A library scan is already in progress.",
    ErrorCode.CONFIG_MISSING: "No music folder has been configured yet.",
    ErrorCode.OPERATION_FAILED: "The operation failed unexpectedly.",
}

_ERRNO_CODES: dict[int, ErrorCode] = {
    errno.ENOENT: ErrorCode.FILE_NOT_FOUND,
    errno.EACCES: ErrorCode.FILE_ACCESS_DENIED,
    errno.EPERM: ErrorCode.FILE_ACCESS_DENIED,
    errno.ENOSPC: ErrorCode.DISK_FULL,
    errno.ENOTDIR: ErrorCode.PATH_INVALID,
}


@dataclass
class MusicThingError(Exception):
    """Base exception for MusicThing with error code and context."""

    code: ErrorCode
    message: str = ""
    path: Path | None = None
    details: dict[str, Any] = field(default_factory=dict)
    suggestion: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = ERROR_MESSAGES[self.code]

    def __str__(self) -> str:
        text = self.message
        if self.path:
            text += f" ({self.path})"
        if self.details:
            text += " [" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + "]"
        return text


class ScanAlreadyRunningError(MusicThingError):
    """Raised when a scan is requested while another one is active."""

    def __init__(self, root: str | Path | None = None) -> None:
        super().__init__(
            ErrorCode.SCAN_ALREADY_RUNNING,
            path=Path(root) if root else None,
            suggestion="Wait for the current scan to finish, then try again.",
        )


def classify_exception(exc: BaseException, path: Path | None = None) -> MusicThingError:
    """Map an exception raised while scanning to a MusicThingError."""
    if isinstance(exc, MusicThingError):
        return exc

    details = {"original": str(exc)}

    if isinstance(exc, MutagenError):
        return MusicThingError(ErrorCode.TAG_CORRUPT, path=path, details=details)
    # music-tag raises this for container types it has no mapping for
    if isinstance(exc, NotImplementedError):
        return MusicThingError(ErrorCode.TAG_UNSUPPORTED_FORMAT, path=path, details=details)

    if isinstance(exc, sqlite3.Error):
        if isinstance(exc, sqlite3.ProgrammingError) or (
            isinstance(exc, sqlite3.OperationalError) and "unable to open" in str(exc)
        ):
            code = ErrorCode.CATALOG_UNAVAILABLE
        else:
            code = ErrorCode.CATALOG_WRITE_FAILED
        return MusicThingError(code, path=path, details=details)

    if isinstance(exc, OSError):
        code = _ERRNO_CODES.get(exc.errno, ErrorCode.OPERATION_FAILED)
        return MusicThingError(code, path=path or _os_error_path(exc), details=details)

    return MusicThingError(
        ErrorCode.OPERATION_FAILED,
        message=f"{type(exc).__name__}: {exc}",
        path=path,
        details=details,
    )


def _os_error_path(exc: OSError) -> Path | None:
    return Path(exc.filename) if exc.filename else None


def format_error_for_user(error: BaseException) -> str:
    """Format an error for display to the user with actionable suggestions."""
    if not isinstance(error, MusicThingError):
        error = classify_exception(error)
    parts = [error.message]
    if error.suggestion:
        parts.append(error.suggestion)
    if error.path:
        parts.append(f"Location: {error.path}")
    return "\n\n".join(parts)
