"""Shared fixtures for musicthing tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication

from musicthing.core.catalog import MEMORY_DB, CatalogStore
from musicthing.core.metadata import MetadataResolver
from musicthing.core.scanner import normalize_path
from musicthing.core.tagger import EmbeddedImage, ExtractedTags, ImagePurpose, TagField
from musicthing.errors import ErrorCode, MusicThingError


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeExtractor:
    """Stands in for TagExtractor; returns canned tags per path."""

    def __init__(self) -> None:
        self.tags: dict[str, ExtractedTags] = {}
        self.broken: set[str] = set()
        self.calls: list[Path] = []

    def add(
        self,
        path: Path,
        *,
        title: str = "",
        artist: str = "",
        album: str = "",
        duration: float = 0.0,
        fields: dict[TagField, str] | None = None,
        front_cover: bytes | None = None,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"fLaC" + b"\x00" * 32)
        images = []
        if front_cover is not None:
            images.append(EmbeddedImage(ImagePurpose.FRONT_COVER, front_cover, "image/jpeg"))
        self.tags[str(normalize_path(path))] = ExtractedTags(
            duration=duration,
            title=title,
            artist=artist,
            album=album,
            fields=dict(fields or {}),
            images=images,
            has_tags=True,
        )
        return path

    def add_broken(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x00" * 64)
        self.broken.add(str(normalize_path(path)))
        return path

    def extract(self, path):
        path = normalize_path(path)
        self.calls.append(path)
        if str(path) in self.broken:
            raise MusicThingError(ErrorCode.TAG_CORRUPT, path=path)
        return self.tags.get(str(path), ExtractedTags())


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def resolver(fake_extractor) -> MetadataResolver:
    return MetadataResolver(fake_extractor)


@pytest.fixture
def catalog():
    store = CatalogStore(MEMORY_DB)
    store.open()
    yield store
    store.close()
