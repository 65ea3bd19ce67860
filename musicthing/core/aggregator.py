"""Group track records into albums."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from musicthing.core.metadata import TrackRecord

AlbumKey = tuple[str, str, str]


def grouping_key(track: TrackRecord) -> AlbumKey:
    """(album artist or track artist, album title, containing directory)."""
    return (track.effective_artist, track.album, str(track.directory))


@dataclass
class AlbumRecord:
    """Aggregated album built from the tracks sharing one grouping key."""
    title: str
    artist: str
    folder_path: Path
    year: str | None = None
    genre: str | None = None
    cover_art: bytes | None = None
    cover_mime: str = ""
    track_count: int = 0
    total_duration: float = 0.0


@dataclass
class AlbumGroup:
    album: AlbumRecord
    tracks: list[TrackRecord] = field(default_factory=list)


class AlbumAggregator:
    """Accumulates tracks into AlbumGroups for the lifetime of one scan.

    Everything stays in memory until the scan is persisted. Cover art is
    first-found-wins, so which picture an album ends up with depends on the
    order tracks are fed in; counts and durations do not.
    """

    def __init__(self) -> None:
        self._groups: dict[AlbumKey, AlbumGroup] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def add(self, track: TrackRecord) -> AlbumRecord:
        key = grouping_key(track)
        group = self._groups.get(key)
        if group is None:
            album = AlbumRecord(
                title=track.album,
                artist=track.effective_artist,
                folder_path=track.directory,
                year=track.year,
                genre=track.genre,
                cover_art=track.cover_art,
                cover_mime=track.cover_mime if track.cover_art is not None else "",
                track_count=1,
                total_duration=track.duration,
            )
            group = AlbumGroup(album=album)
            self._groups[key] = group
        else:
            album = group.album
            album.track_count += 1
            album.total_duration += track.duration
            if album.cover_art is None and track.cover_art is not None:
                album.cover_art = track.cover_art
                album.cover_mime = track.cover_mime
            if album.year is None:
                album.year = track.year
            if album.genre is None:
                album.genre = track.genre

        track.strip_cover_art()
        group.tracks.append(track)
        return group.album

    def groups(self) -> list[AlbumGroup]:
        """Return the accumulated groups in first-seen order."""
        return list(self._groups.values())
