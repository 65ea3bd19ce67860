"""Resolve one audio file into a normalized track record."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from musicthing.core.scanner import normalize_path
from musicthing.core.tagger import ExtractedTags, TagExtractor, TagField
from musicthing.errors import ErrorCode, MusicThingError

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

LYRICS_EXTENSION = ".lrc"

# Tried in order inside the track's own directory; first existing file wins.
COVER_SIDECAR_NAMES: tuple[str, ...] = (
    "cover.jpg",
    "cover.png",
    "folder.jpg",
    "folder.png",
    "album.jpg",
    "front.jpg",
)

# Applied in order after the generic accessors; a present field overrides
# whatever the accessor pass produced.
FIELD_SETTERS: tuple[tuple[TagField, str], ...] = (
    (TagField.TRACK_ARTIST, "artist"),
    (TagField.ALBUM_ARTIST, "album_artist"),
    (TagField.ALBUM_TITLE, "album"),
    (TagField.GENRE, "genre"),
    (TagField.YEAR, "year"),
    (TagField.LABEL, "label"),
    (TagField.TRACK_NUMBER, "track_number"),
)


@dataclass
class TrackRecord:
    """One physical audio file as it will be stored in the catalog."""
    path: Path
    title: str = UNKNOWN
    artist: str = UNKNOWN
    album: str = UNKNOWN
    genre: str | None = None
    album_artist: str | None = None
    year: str | None = None
    label: str | None = None
    track_number: str | None = None
    duration: float = 0.0
    lyrics_path: Path | None = None
    cover_art: bytes | None = None
    cover_mime: str = ""
    file_modified_time: float | None = None
    read_error: str | None = None

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def effective_artist(self) -> str:
        return self.album_artist or self.artist

    def strip_cover_art(self) -> None:
        self.cover_art = None
        self.cover_mime = ""


def find_sidecar_cover(directory: Path) -> tuple[bytes, str] | None:
    """Return (bytes, mime) of the first readable sidecar cover in ``directory``."""
    for name in COVER_SIDECAR_NAMES:
        candidate = directory / name
        if not candidate.is_file():
            continue
        try:
            data = candidate.read_bytes()
        except OSError as exc:
            logger.warning("error reading %s: %s", candidate, exc)
            continue
        if not data:
            continue
        mime = mimetypes.guess_type(candidate.name)[0] or "image/jpeg"
        return data, mime
    return None


def find_lyrics(path: Path) -> Path | None:
    lyrics = path.with_suffix(LYRICS_EXTENSION)
    return lyrics if lyrics.is_file() else None


class MetadataResolver:
    """Combines tag extraction with sidecar files into one TrackRecord."""

    def __init__(self, extractor: TagExtractor | None = None) -> None:
        self._extractor = extractor or TagExtractor()

    def resolve(self, path: str | Path, modified_time: float | None = None) -> TrackRecord:
        """Build the TrackRecord for ``path``.

        ``modified_time`` is the mtime the caller already read during
        discovery; without it the file is stat'ed here.

        Tag failures degrade to sentinel values. Only losing the containing
        directory itself (the filesystem went away mid-scan) is raised.
        """
        path = normalize_path(path)
        if modified_time is None:
            modified_time = self._mtime(path)
        record = TrackRecord(path=path, file_modified_time=modified_time)

        tags: ExtractedTags | None
        try:
            tags = self._extractor.extract(path)
        except MusicThingError as exc:
            if not path.parent.is_dir():
                raise MusicThingError(
                    ErrorCode.PATH_INVALID,
                    message=f"Folder became unavailable during scan: {path.parent}",
                    path=path.parent,
                    details={"original": exc.message},
                ) from exc
            logger.warning("could not read tags from %s: %s", path, exc.message)
            record.read_error = exc.message
            tags = None

        if tags is not None:
            if not tags.has_tags:
                logger.debug("no tags found for %s", path)
            record.duration = tags.duration
            self._apply_tags(record, tags)
            front = tags.front_cover()
            if front is not None:
                record.cover_art = front.data
                record.cover_mime = front.mime or "image/jpeg"

        if record.cover_art is None:
            sidecar = find_sidecar_cover(path.parent)
            if sidecar is not None:
                record.cover_art, record.cover_mime = sidecar

        record.lyrics_path = find_lyrics(path)
        return record

    @staticmethod
    def _apply_tags(record: TrackRecord, tags: ExtractedTags) -> None:
        record.title = tags.title or UNKNOWN
        record.artist = tags.artist or UNKNOWN
        record.album = tags.album or UNKNOWN
        record.genre = tags.genre or None
        for tag_field, attr in FIELD_SETTERS:
            value = tags.fields.get(tag_field)
            if value:
                setattr(record, attr, value)

    @staticmethod
    def _mtime(path: Path) -> float | None:
        try:
            return path.stat().st_mtime
        except OSError:
            return None
