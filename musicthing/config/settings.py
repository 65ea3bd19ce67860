"""Application settings via QSettings."""

from __future__ import annotations

import os
from pathlib import Path

from PySide6.QtCore import QSettings

from musicthing.core.scanner import AUDIO_EXTENSIONS, normalize_extensions


class AppSettings:
    """Wraps QSettings for persistent app configuration."""

    def __init__(self, qsettings: QSettings | None = None) -> None:
        self._qs = qsettings if qsettings is not None else QSettings("MusicThing", "MusicThing")

    # -- library --

    @property
    def library_root(self) -> str:
        raw = self._qs.value("library/root", "", type=str)
        return (raw or "").strip()

    @library_root.setter
    def library_root(self, value: str | Path) -> None:
        self._qs.setValue("library/root", str(value).strip())

    @property
    def audio_extensions(self) -> list[str]:
        raw = self._qs.value("library/extensions", "", type=str)
        parts = [p for p in (raw or "").split(",") if p.strip()]
        return sorted(normalize_extensions(parts) if parts else AUDIO_EXTENSIONS)

    @audio_extensions.setter
    def audio_extensions(self, value: list[str]) -> None:
        self._qs.setValue("library/extensions", ",".join(sorted(normalize_extensions(value))))

    # -- catalog --

    @property
    def catalog_db_path(self) -> str:
        override = self._qs.value("catalog/db_path", "", type=str)
        if override:
            return override
        return str(self.app_data_dir / "catalog.db")

    @catalog_db_path.setter
    def catalog_db_path(self, value: str | Path) -> None:
        self._qs.setValue("catalog/db_path", str(value))

    # -- helpers --

    def sync(self) -> None:
        """Flush pending changes to permanent storage."""
        self._qs.sync()

    @property
    def app_data_dir(self) -> Path:
        path = self._app_data_dir()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def logs_dir(self) -> Path:
        path = self.app_data_dir / "logs"
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def _app_data_dir() -> Path:
        base = Path(os.environ.get("APPDATA", Path.home() / ".config"))
        return base / "musicthing"
