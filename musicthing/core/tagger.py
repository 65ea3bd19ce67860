"""Read audio tags and embedded pictures via music-tag."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import music_tag

from musicthing.errors import ErrorCode, MusicThingError, classify_exception

logger = logging.getLogger(__name__)


class TagField(Enum):
    """Specific tag fields looked up after the generic accessors."""
    TRACK_ARTIST = "track_artist"
    ALBUM_ARTIST = "album_artist"
    ALBUM_TITLE = "album_title"
    GENRE = "genre"
    YEAR = "year"
    LABEL = "label"
    TRACK_NUMBER = "track_number"


class ImagePurpose(Enum):
    """Picture purposes, numbered like ID3 APIC / FLAC PICTURE types."""
    OTHER = 0
    FILE_ICON = 1
    OTHER_FILE_ICON = 2
    FRONT_COVER = 3
    BACK_COVER = 4
    LEAFLET = 5
    MEDIA = 6
    LEAD_ARTIST = 7
    ARTIST = 8

    @classmethod
    def from_picture_type(cls, value: Any) -> ImagePurpose:
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.OTHER


# Native keys per field, covering Vorbis comments (FLAC/Ogg), ID3 frames
# and MP4 atoms. The first non-empty key wins.
RAW_FIELD_KEYS: dict[TagField, tuple[str, ...]] = {
    TagField.TRACK_ARTIST: ("ARTIST", "TPE1", "\xa9ART"),
    TagField.ALBUM_ARTIST: ("ALBUMARTIST", "ALBUM ARTIST", "TPE2", "aART"),
    TagField.ALBUM_TITLE: ("ALBUM", "TALB", "\xa9alb"),
    TagField.GENRE: ("GENRE", "TCON", "\xa9gen"),
    TagField.YEAR: ("DATE", "YEAR", "TDRC", "TYER", "\xa9day"),
    TagField.LABEL: ("LABEL", "ORGANIZATION", "PUBLISHER", "TPUB"),
    TagField.TRACK_NUMBER: ("TRACKNUMBER", "TRCK", "trkn"),
}


@dataclass
class EmbeddedImage:
    """One picture stored inside the audio file."""
    purpose: ImagePurpose
    data: bytes
    mime: str = ""


@dataclass
class ExtractedTags:
    """Everything the extractor could read from one file."""
    duration: float = 0.0
    title: str = ""
    artist: str = ""
    album: str = ""
    genre: str = ""
    fields: dict[TagField, str] = field(default_factory=dict)
    images: list[EmbeddedImage] = field(default_factory=list)
    has_tags: bool = False

    def front_cover(self) -> EmbeddedImage | None:
        for image in self.images:
            if image.purpose is ImagePurpose.FRONT_COVER:
                return image
        return None


def _coerce_artwork_bytes(value: Any) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        return data or None
    if callable(value):
        try:
            return _coerce_artwork_bytes(value())
        except Exception:
            return None
    try:
        data = bytes(value)
    except Exception:
        return None
    return data or None


def _infer_artwork_mime(artwork: Any) -> str:
    raw_mime = getattr(artwork, "mime", "") or getattr(artwork, "mime_type", "")
    if raw_mime:
        return str(raw_mime)
    fmt = str(getattr(artwork, "format", "")).strip().lower()
    if not fmt:
        return ""
    if fmt in {"jpg", "jpeg"}:
        return "image/jpeg"
    return f"image/{fmt}"


def _str(f: Any, key: str) -> str:
    try:
        val = f[key].first
        return str(val).strip() if val is not None else ""
    except Exception:
        return ""


def _float(f: Any, key: str) -> float:
    try:
        val = f[key].first
        if val is None:
            return 0.0
        return max(float(val), 0.0)
    except Exception:
        return 0.0


def _raw_text(tags: Any, key: str) -> str:
    try:
        value = tags.get(key)
    except Exception:
        return ""
    if value is None:
        return ""
    # ID3 frames wrap their values in .text
    value = getattr(value, "text", value)
    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        value = value[0]
    # MP4 track numbers come as (number, total)
    if isinstance(value, tuple):
        value = value[0] if value else ""
    return str(value).strip()


def _read_fields(mfile: Any) -> dict[TagField, str]:
    tags = getattr(mfile, "tags", None)
    if tags is None:
        return {}
    fields: dict[TagField, str] = {}
    for tag_field, keys in RAW_FIELD_KEYS.items():
        for key in keys:
            text = _raw_text(tags, key)
            if text:
                fields[tag_field] = text
                break
    return fields


def _read_images(f: Any) -> list[EmbeddedImage]:
    try:
        artworks = list(f["artwork"].values)
    except Exception:
        return []
    images: list[EmbeddedImage] = []
    for aw in artworks:
        if aw is None:
            continue
        data = _coerce_artwork_bytes(getattr(aw, "raw", None))
        if data is None:
            data = _coerce_artwork_bytes(getattr(aw, "raw_thumbnail", None))
        if data is None:
            continue
        images.append(
            EmbeddedImage(
                purpose=ImagePurpose.from_picture_type(
                    getattr(aw, "pic_type", ImagePurpose.FRONT_COVER.value)
                ),
                data=data,
                mime=_infer_artwork_mime(aw),
            )
        )
    return images


class TagExtractor:
    """Reads duration, tag fields and pictures from audio files using music-tag."""

    def extract(self, path: str | Path) -> ExtractedTags:
        """Read one audio file.

        Returns:
            ExtractedTags with blank values for anything the file does not carry.

        Raises:
            MusicThingError: If the file cannot be opened or its stream parsed.
        """
        path = Path(path)
        try:
            f = music_tag.load_file(str(path))
        except Exception as exc:
            error = classify_exception(exc, path)
            if error.code is ErrorCode.OPERATION_FAILED:
                error = MusicThingError(ErrorCode.TAG_READ_FAILED, path=path, details=error.details)
            raise error from exc
        if f is None:
            raise MusicThingError(ErrorCode.TAG_UNSUPPORTED_FORMAT, path=path)

        mfile = getattr(f, "mfile", None)
        return ExtractedTags(
            duration=_float(f, "#length"),
            title=_str(f, "tracktitle"),
            artist=_str(f, "artist"),
            album=_str(f, "album"),
            genre=_str(f, "genre"),
            fields=_read_fields(mfile),
            images=_read_images(f),
            has_tags=getattr(mfile, "tags", None) is not None,
        )
