"""SQLite-backed catalog of albums and tracks."""

from __future__ import annotations

import base64
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from musicthing.core.aggregator import AlbumRecord
from musicthing.core.metadata import TrackRecord
from musicthing.errors import ErrorCode, MusicThingError, classify_exception

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS albums (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    title          TEXT    NOT NULL,
    artist         TEXT    NOT NULL,
    year           TEXT,
    genre          TEXT,
    cover_art      BLOB,
    cover_mime     TEXT    NOT NULL DEFAULT '',
    track_count    INTEGER NOT NULL DEFAULT 0,
    total_duration REAL    NOT NULL DEFAULT 0.0,
    folder_path    TEXT    NOT NULL,
    UNIQUE (title, artist, folder_path)
);

CREATE TABLE IF NOT EXISTS tracks (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    album_id           INTEGER NOT NULL REFERENCES albums(id) ON DELETE CASCADE,
    title              TEXT    NOT NULL,
    artist             TEXT    NOT NULL,
    album              TEXT    NOT NULL,
    genre              TEXT,
    duration           REAL    NOT NULL DEFAULT 0.0,
    path               TEXT    NOT NULL UNIQUE,
    lyrics_path        TEXT,
    album_artist       TEXT,
    year               TEXT,
    label              TEXT,
    track_number       TEXT,
    file_modified_time REAL
);

CREATE INDEX IF NOT EXISTS idx_albums_artist_title ON albums (artist, title);
CREATE INDEX IF NOT EXISTS idx_albums_folder_path ON albums (folder_path);
CREATE INDEX IF NOT EXISTS idx_tracks_album_id ON tracks (album_id);
"""

_ALBUM_COLUMNS = (
    "id, title, artist, year, genre, cover_art, cover_mime, "
    "track_count, total_duration, folder_path"
)
_TRACK_COLUMNS = (
    "id, album_id, title, artist, album, genre, duration, path, lyrics_path, "
    "album_artist, year, label, track_number, file_modified_time"
)


@dataclass
class StoredAlbum:
    """An album row as read back from the catalog."""
    id: int
    title: str
    artist: str
    year: str | None
    genre: str | None
    cover_art: bytes | None
    cover_mime: str
    track_count: int
    total_duration: float
    folder_path: str

    @property
    def cover_art_base64(self) -> str | None:
        if self.cover_art is None:
            return None
        return base64.b64encode(self.cover_art).decode("ascii")

    @classmethod
    def from_row(cls, row: sqlite3.Row | tuple) -> StoredAlbum:
        cover = row[5]
        return cls(
            id=int(row[0]),
            title=str(row[1]),
            artist=str(row[2]),
            year=row[3],
            genre=row[4],
            cover_art=bytes(cover) if cover is not None else None,
            cover_mime=str(row[6] or ""),
            track_count=int(row[7] or 0),
            total_duration=float(row[8] or 0.0),
            folder_path=str(row[9]),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "year": self.year,
            "genre": self.genre,
            "cover_art_base64": self.cover_art_base64,
            "cover_mime": self.cover_mime,
            "track_count": self.track_count,
            "total_duration": self.total_duration,
            "folder_path": self.folder_path,
        }


@dataclass
class StoredTrack:
    """A track row as read back from the catalog."""
    id: int
    album_id: int
    title: str
    artist: str
    album: str
    genre: str | None
    duration: float
    path: str
    lyrics_path: str | None
    album_artist: str | None
    year: str | None
    label: str | None
    track_number: str | None
    file_modified_time: float | None

    @classmethod
    def from_row(cls, row: sqlite3.Row | tuple) -> StoredTrack:
        return cls(
            id=int(row[0]),
            album_id=int(row[1]),
            title=str(row[2]),
            artist=str(row[3]),
            album=str(row[4]),
            genre=row[5],
            duration=float(row[6] or 0.0),
            path=str(row[7]),
            lyrics_path=row[8],
            album_artist=row[9],
            year=row[10],
            label=row[11],
            track_number=row[12],
            file_modified_time=row[13],
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "album_id": self.album_id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "genre": self.genre,
            "duration": self.duration,
            "path": self.path,
            "lyrics_path": self.lyrics_path,
            "album_artist": self.album_artist,
            "year": self.year,
            "label": self.label,
            "track_number": self.track_number,
        }


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CatalogStore:
    """Durable album/track catalog.

    The connection is shared between the scan thread and readers, so every
    statement runs under one re-entrant lock. A transaction holds the lock
    until it commits or rolls back.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = db_path if db_path == MEMORY_DB else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._in_transaction = False

    @property
    def db_path(self) -> str | Path:
        return self._db_path

    def open(self) -> None:
        """Open the catalog DB and initialize schema."""
        with self._lock:
            if self._conn is not None:
                return
            try:
                if isinstance(self._db_path, Path):
                    self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    str(self._db_path),
                    check_same_thread=False,
                    isolation_level=None,
                )
                if isinstance(self._db_path, Path):
                    conn.execute("PRAGMA journal_mode=WAL;")
                    conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute("PRAGMA foreign_keys=ON;")
                conn.executescript(SCHEMA_SQL)
            except (OSError, sqlite3.Error) as exc:
                raise MusicThingError(
                    ErrorCode.CATALOG_UNAVAILABLE,
                    path=self._db_path if isinstance(self._db_path, Path) else None,
                    details={"original": str(exc)},
                ) from exc
            self._conn = conn
            logger.debug("catalog opened at %s", self._db_path)

    def close(self) -> None:
        """Close the active DB connection."""
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed writes atomically; roll back on any error."""
        with self._lock:
            conn = self._conn_or_raise()
            if self._in_transaction:
                yield
                return
            try:
                conn.execute("BEGIN")
            except sqlite3.Error as exc:
                raise classify_exception(exc) from exc
            self._in_transaction = True
            try:
                yield
            except BaseException as exc:
                conn.execute("ROLLBACK")
                if isinstance(exc, sqlite3.Error):
                    raise MusicThingError(
                        ErrorCode.CATALOG_WRITE_FAILED,
                        details={"original": str(exc)},
                    ) from exc
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    conn.execute("ROLLBACK")
                    raise MusicThingError(
                        ErrorCode.CATALOG_WRITE_FAILED,
                        details={"original": str(exc)},
                    ) from exc
            finally:
                self._in_transaction = False

    def upsert_album(self, album: AlbumRecord) -> int:
        """Insert or replace one album and return its id."""
        folder = str(album.folder_path)
        with self._lock:
            conn = self._conn_or_raise()
            conn.execute(
                """
                INSERT INTO albums (
                    title, artist, year, genre, cover_art, cover_mime,
                    track_count, total_duration, folder_path
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(title, artist, folder_path) DO UPDATE SET
                    year = excluded.year,
                    genre = excluded.genre,
                    cover_art = excluded.cover_art,
                    cover_mime = excluded.cover_mime,
                    track_count = excluded.track_count,
                    total_duration = excluded.total_duration
                """,
                (
                    album.title,
                    album.artist,
                    album.year,
                    album.genre,
                    album.cover_art,
                    album.cover_mime,
                    int(album.track_count),
                    float(album.total_duration),
                    folder,
                ),
            )
            row = conn.execute(
                "SELECT id FROM albums WHERE title = ? AND artist = ? AND folder_path = ?",
                (album.title, album.artist, folder),
            ).fetchone()
        return int(row[0])

    def upsert_track(self, album_id: int, track: TrackRecord) -> None:
        """Insert a track, or update it in place when its path is already stored."""
        with self._lock:
            self._conn_or_raise().execute(
                """
                INSERT INTO tracks (
                    album_id, title, artist, album, genre, duration, path,
                    lyrics_path, album_artist, year, label, track_number,
                    file_modified_time
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    album_id = excluded.album_id,
                    title = excluded.title,
                    artist = excluded.artist,
                    album = excluded.album,
                    genre = excluded.genre,
                    duration = excluded.duration,
                    lyrics_path = excluded.lyrics_path,
                    album_artist = excluded.album_artist,
                    year = excluded.year,
                    label = excluded.label,
                    track_number = excluded.track_number,
                    file_modified_time = excluded.file_modified_time
                """,
                (
                    int(album_id),
                    track.title,
                    track.artist,
                    track.album,
                    track.genre,
                    float(track.duration),
                    str(track.path),
                    str(track.lyrics_path) if track.lyrics_path else None,
                    track.album_artist,
                    track.year,
                    track.label,
                    track.track_number,
                    track.file_modified_time,
                ),
            )

    def delete_albums_by_location(self, scope: str | Path) -> int:
        """Delete albums stored at ``scope`` or anywhere beneath it.

        Their tracks go with them through the ON DELETE CASCADE.
        """
        base = str(scope)
        prefix = base if base.endswith(os.sep) else base + os.sep
        with self._lock:
            cursor = self._conn_or_raise().execute(
                "DELETE FROM albums WHERE folder_path = ? OR substr(folder_path, 1, ?) = ?",
                (base, len(prefix), prefix),
            )
            return cursor.rowcount

    def query_albums(self, limit: int = 50, offset: int = 0) -> list[StoredAlbum]:
        with self._lock:
            rows = self._conn_or_raise().execute(
                f"""
                SELECT {_ALBUM_COLUMNS} FROM albums
                ORDER BY artist COLLATE NOCASE, title COLLATE NOCASE, id
                LIMIT ? OFFSET ?
                """,
                (max(int(limit), 0), max(int(offset), 0)),
            ).fetchall()
        return [StoredAlbum.from_row(row) for row in rows]

    def query_albums_by_text(self, pattern: str, limit: int = 50) -> list[StoredAlbum]:
        """Case-insensitive substring match on album title or artist."""
        like = f"%{_escape_like(pattern)}%"
        with self._lock:
            rows = self._conn_or_raise().execute(
                f"""
                SELECT {_ALBUM_COLUMNS} FROM albums
                WHERE title LIKE ? ESCAPE '\\' OR artist LIKE ? ESCAPE '\\'
                ORDER BY artist COLLATE NOCASE, title COLLATE NOCASE, id
                LIMIT ?
                """,
                (like, like, max(int(limit), 0)),
            ).fetchall()
        return [StoredAlbum.from_row(row) for row in rows]

    def query_album_by_id(self, album_id: int) -> StoredAlbum | None:
        with self._lock:
            row = self._conn_or_raise().execute(
                f"SELECT {_ALBUM_COLUMNS} FROM albums WHERE id = ?",
                (int(album_id),),
            ).fetchone()
        if row is None:
            return None
        return StoredAlbum.from_row(row)

    def query_tracks_by_album(self, album_id: int) -> list[StoredTrack]:
        with self._lock:
            rows = self._conn_or_raise().execute(
                f"""
                SELECT {_TRACK_COLUMNS} FROM tracks
                WHERE album_id = ?
                ORDER BY track_number IS NULL, CAST(track_number AS INTEGER),
                         title COLLATE NOCASE, path
                """,
                (int(album_id),),
            ).fetchall()
        return [StoredTrack.from_row(row) for row in rows]

    def count_albums(self) -> int:
        with self._lock:
            row = self._conn_or_raise().execute("SELECT COUNT(*) FROM albums").fetchone()
        return int(row[0])

    def count_tracks(self) -> int:
        with self._lock:
            row = self._conn_or_raise().execute("SELECT COUNT(*) FROM tracks").fetchone()
        return int(row[0])

    def _conn_or_raise(self) -> sqlite3.Connection:
        if self._conn is None:
            raise MusicThingError(
                ErrorCode.CATALOG_UNAVAILABLE,
                message="The music catalog is not open.",
            )
        return self._conn
