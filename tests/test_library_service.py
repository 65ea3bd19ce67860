"""Tests for musicthing.core.library.LibraryService."""

import pytest
from PySide6.QtCore import QCoreApplication, QSettings

from musicthing.config.settings import AppSettings
from musicthing.core.library import LibraryService
from musicthing.core.library_scan import ScanSummary
from musicthing.core.scan_state import ScanPhase
from musicthing.errors import ErrorCode, MusicThingError, ScanAlreadyRunningError


@pytest.fixture
def settings(tmp_path):
    return AppSettings(QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat))


@pytest.fixture
def service(catalog, resolver, settings):
    svc = LibraryService(catalog, settings=settings, resolver=resolver)
    yield svc
    svc.wait_for_scan(5000)


@pytest.fixture
def library(tmp_path, fake_extractor):
    root = tmp_path / "lib"
    fake_extractor.add(
        root / "Coltrane" / "Blue Train" / "01.flac",
        title="Blue Train", artist="John Coltrane", album="Blue Train", duration=643.0,
    )
    fake_extractor.add(
        root / "Coltrane" / "Blue Train" / "02.flac",
        title="Moment's Notice", artist="John Coltrane", album="Blue Train", duration=549.0,
    )
    fake_extractor.add(
        root / "Davis" / "Kind of Blue" / "01.flac",
        title="So What", artist="Miles Davis", album="Kind of Blue", duration=562.0,
    )
    return root


def test_background_scan_fills_catalog(service, library):
    service.start_scan(library)
    assert service.wait_for_scan(10000)

    status = service.get_scan_status()
    assert status.is_scanning is False
    assert status.progress == 100.0
    assert status.phase is ScanPhase.COMPLETED
    assert [a.title for a in service.list_albums()] == ["Blue Train", "Kind of Blue"]


def test_start_scan_remembers_root(service, settings, library):
    service.start_scan(library)
    service.wait_for_scan(10000)
    assert settings.library_root == str(library)
    assert service.configured_root() == library


def test_start_scan_rejected_while_scanning(service, library):
    service.state.try_begin()
    service.state.set_progress(30.0)

    with pytest.raises(ScanAlreadyRunningError):
        service.start_scan(library)

    status = service.get_scan_status()
    assert status.is_scanning is True
    assert status.progress == 30.0
    service.state.release()


def test_failed_background_scan_reports_status(service, tmp_path):
    service.start_scan(tmp_path / "missing")
    service.wait_for_scan(10000)

    status = service.get_scan_status()
    assert status.is_scanning is False
    assert status.phase is ScanPhase.FAILED
    assert status.error


def test_rescan_without_configured_root(catalog, resolver):
    service = LibraryService(catalog, resolver=resolver)
    with pytest.raises(MusicThingError) as excinfo:
        service.rescan()
    assert excinfo.value.code is ErrorCode.CONFIG_MISSING
    assert service.get_scan_status().is_scanning is False


def test_rescan_uses_configured_root(service, settings, library, fake_extractor):
    settings.library_root = str(library)
    service.rescan()
    service.wait_for_scan(10000)
    assert service.catalog.count_albums() == 2

    fake_extractor.add(
        library / "Davis" / "Kind of Blue" / "02.flac",
        title="Freddie Freeloader", artist="Miles Davis", album="Kind of Blue", duration=589.0,
    )
    service.rescan()
    service.wait_for_scan(10000)

    (album,) = service.search_albums("kind")
    assert album.track_count == 2
    assert service.catalog.count_albums() == 2


def test_scan_now_reports_progress(service, library):
    seen = []
    summary = service.scan_now(library, on_progress=seen.append)
    assert summary.files_found == 3
    assert seen[-1] == 100.0
    assert seen == sorted(seen)


def test_search_albums(service, library):
    service.scan_now(library)
    assert [a.title for a in service.search_albums("blue")] == ["Blue Train", "Kind of Blue"]
    assert [a.artist for a in service.search_albums("DAVIS")] == ["Miles Davis"]
    assert service.search_albums("zzz") == []


def test_blank_search_returns_nothing(service, library):
    service.scan_now(library)
    assert service.search_albums("") == []
    assert service.search_albums("   ") == []


def test_list_albums_paging(service, library):
    service.scan_now(library)
    assert len(service.list_albums(limit=1)) == 1
    assert [a.title for a in service.list_albums(limit=1, offset=1)] == ["Kind of Blue"]
    assert service.list_albums(offset=5) == []


def test_get_album_and_tracks(service, library):
    service.scan_now(library)
    (album,) = service.search_albums("Blue Train")

    fetched = service.get_album(album.id)
    assert fetched.artist == "John Coltrane"
    assert fetched.total_duration == pytest.approx(1192.0)
    titles = [t.title for t in service.get_album_tracks(album.id)]
    assert sorted(titles) == ["Blue Train", "Moment's Notice"]


def test_unknown_album_id(service):
    assert service.get_album(999) is None
    assert service.get_album_tracks(999) == []


def _record_signals(service):
    events = {"started": [], "progress": [], "completed": [], "failed": []}
    service.scan_started.connect(events["started"].append)
    service.scan_progress.connect(events["progress"].append)
    service.scan_completed.connect(events["completed"].append)
    service.scan_failed.connect(events["failed"].append)
    return events


def test_scan_signals_are_pushed(service, library):
    events = _record_signals(service)

    service.start_scan(library)
    assert service.wait_for_scan(10000)
    QCoreApplication.processEvents()

    assert events["started"] == [str(library)]
    progress = events["progress"]
    assert progress
    assert progress == sorted(progress)
    assert progress[-1] == 100.0
    (summary,) = events["completed"]
    assert isinstance(summary, ScanSummary)
    assert summary.albums_written == 2
    assert events["failed"] == []


def test_failed_scan_pushes_scan_failed(service, tmp_path):
    events = _record_signals(service)

    service.start_scan(tmp_path / "missing")
    assert service.wait_for_scan(10000)
    QCoreApplication.processEvents()

    assert events["completed"] == []
    (message,) = events["failed"]
    assert "missing" in message
