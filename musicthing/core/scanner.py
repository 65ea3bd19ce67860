"""Walk directories and find audio files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset({".flac"})


def normalize_path(path: str | Path) -> Path:
    """Absolute path with symlinks and '..' resolved, so one file has one spelling."""
    path = Path(path).expanduser()
    try:
        return path.resolve()
    except (OSError, RuntimeError):
        return path.absolute()


def normalize_extensions(extensions: Iterable[str] | None) -> frozenset[str]:
    """Lowercase extensions and make sure each one starts with a dot."""
    if extensions is None:
        return AUDIO_EXTENSIONS
    cleaned = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        cleaned.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(cleaned) or AUDIO_EXTENSIONS


@dataclass
class AudioFile:
    """Lightweight descriptor for a discovered audio file."""
    path: Path
    extension: str = field(init=False)
    mtime: float = field(init=False)

    def __post_init__(self) -> None:
        self.extension = self.path.suffix.lower()
        self.mtime = self.path.stat().st_mtime


class FileScanner:
    """Scans a directory tree for audio files with the configured extensions."""

    def __init__(
        self,
        root: str | Path,
        extensions: Iterable[str] | None = None,
    ) -> None:
        self._root = Path(root)
        self._extensions = normalize_extensions(extensions)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def extensions(self) -> frozenset[str]:
        return self._extensions

    def scan(self) -> list[AudioFile]:
        """Return all audio files under the root directory."""
        return list(self.scan_iter())

    def scan_iter(self) -> Iterator[AudioFile]:
        """Yield audio files one at a time.

        Unreadable directories, broken symlinks and entries that cannot be
        stat'ed are skipped; they never abort the walk.
        """
        for dirpath, dirnames, filenames in os.walk(self._root, onerror=self._on_walk_error):
            dirnames.sort()
            for fname in sorted(filenames):
                p = Path(dirpath) / fname
                if p.suffix.lower() not in self._extensions:
                    continue
                try:
                    if not p.is_file():
                        logger.debug("skipping non-file entry %s", p)
                        continue
                    yield AudioFile(path=p)
                except OSError as exc:
                    logger.debug("skipping unreadable entry %s: %s", p, exc)
                    continue

    @staticmethod
    def _on_walk_error(err: OSError) -> None:
        logger.debug("walk error at %s: %s", getattr(err, "filename", None), err)
