import os
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

from palimpsest.application.services.expiry_service import ExpirySweeper
from palimpsest.application.services.resource_service import ResourceService
from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.core.config import ExpirySettings
from palimpsest.core.errors import StorageFaultError
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.db.sqlite import initialize_schema

CREATED = datetime(2001, 2, 3, 4, 5, 6, tzinfo=timezone.utc)
DAY = 24 * 60 * 60


def _bootstrap(
    tmp_path: Path,
    created: datetime = CREATED,
    settings: ExpirySettings | None = None,
) -> tuple[ExpirySweeper, ResourceService, ResourceRepo, ContentStore]:
    db_path = tmp_path / "palimpsest.db"
    initialize_schema(db_path)
    repo = ResourceRepo(db_path)
    store = ContentStore(tmp_path / "blobs")
    writer = ResourceWriter(repo, store, clock=lambda: created)
    service = ResourceService(repo, store, writer)
    return ExpirySweeper(repo, store, settings or ExpirySettings(retention_seconds=DAY)), service, repo, store


def test_resource_survives_until_retention_window_passes(tmp_path: Path) -> None:
    sweeper, service, repo, store = _bootstrap(tmp_path)
    resource = service.create(b"keep me", original_filename="a.txt")

    early = sweeper.sweep(now=CREATED + timedelta(seconds=DAY - 1))
    exact = sweeper.sweep(now=CREATED + timedelta(seconds=DAY))
    assert early.deleted == 0
    assert exact.deleted == 0
    assert repo.get_by_id(resource.id) is not None

    late = sweeper.sweep(now=CREATED + timedelta(seconds=DAY + 1))

    assert late.deleted == 1
    assert late.deleted_ids == [resource.id]
    assert repo.get_by_id(resource.id) is None
    assert store.exists(resource.id) is False
    assert repo.is_issued(resource.id) is True


def test_each_resource_expires_on_its_own_clock(tmp_path: Path) -> None:
    db_path = tmp_path / "palimpsest.db"
    initialize_schema(db_path)
    repo = ResourceRepo(db_path)
    store = ContentStore(tmp_path / "blobs")
    old = ResourceService(repo, store, ResourceWriter(repo, store, clock=lambda: CREATED)).create(
        b"old", original_filename="old.txt"
    )
    young_created = CREATED + timedelta(hours=12)
    young = ResourceService(repo, store, ResourceWriter(repo, store, clock=lambda: young_created)).create(
        b"young", original_filename="young.txt"
    )
    sweeper = ExpirySweeper(repo, store, ExpirySettings(retention_seconds=DAY))

    report = sweeper.sweep(now=CREATED + timedelta(seconds=DAY + 60))

    assert report.deleted_ids == [old.id]
    assert repo.get_by_id(young.id) is not None


def test_failure_on_one_resource_does_not_stop_the_sweep(tmp_path: Path, monkeypatch) -> None:
    sweeper, service, repo, store = _bootstrap(tmp_path)
    first = service.create(b"one", original_filename="1.txt")
    broken = service.create(b"two", original_filename="2.txt")
    third = service.create(b"three", original_filename="3.txt")
    original_delete = store.delete

    def flaky_delete(resource_id: str, relpath: str | None = None) -> bool:
        if resource_id == broken.id:
            raise StorageFaultError("device busy")
        return original_delete(resource_id, relpath)

    monkeypatch.setattr(store, "delete", flaky_delete)

    report = sweeper.sweep(now=CREATED + timedelta(days=2))

    assert report.scanned == 3
    assert report.failed == 1
    assert report.failed_ids == [broken.id]
    assert sorted(report.deleted_ids) == sorted([first.id, third.id])
    assert sweeper.last_report is report


def test_orphaned_files_older_than_retention_are_removed(tmp_path: Path) -> None:
    now = datetime.now(timezone.utc)
    sweeper, service, repo, store = _bootstrap(
        tmp_path, created=now, settings=ExpirySettings(retention_seconds=60)
    )
    live = service.create(b"live", original_filename="live.txt")
    store.put("0rphan00-blob", b"left behind", ".pdf")
    temp = store.base_dir / "0r" / "ph" / ".0rphan00-temp.pdf.x1y2.tmp"
    temp.write_bytes(b"half")
    fresh_orphan_relpath = store.put("fresh000-blob", b"new", ".pdf")

    old = time.time() - 3600
    for path in (store.base_dir / live.content_relpath, store.base_dir / "0r" / "ph" / "0rphan00-blob.pdf", temp):
        os.utime(path, (old, old))

    report = sweeper.sweep()

    assert report.deleted == 0
    assert report.orphans_removed == 2
    assert store.exists(live.id)
    assert not store.exists("0rphan00-blob")
    assert not temp.exists()
    assert (store.base_dir / fresh_orphan_relpath).exists()


def test_background_worker_sweeps_on_interval(tmp_path: Path) -> None:
    sweeper, service, repo, _ = _bootstrap(
        tmp_path,
        settings=ExpirySettings(retention_seconds=60, interval_seconds=0.05),
    )
    resource = service.create(b"stale", original_filename="stale.txt")

    assert sweeper.start() is True
    try:
        deadline = time.monotonic() + 5
        while repo.get_by_id(resource.id) is not None and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        sweeper.shutdown()

    assert repo.get_by_id(resource.id) is None
    assert sweeper.last_report is not None


def test_disabled_sweeper_does_not_start(tmp_path: Path) -> None:
    sweeper, _, _, _ = _bootstrap(tmp_path, settings=ExpirySettings(enabled=False))
    assert sweeper.start() is False
    sweeper.shutdown()
