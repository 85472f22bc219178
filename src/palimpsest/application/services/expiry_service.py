from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from palimpsest.core.config import ExpirySettings
from palimpsest.core.time import to_utc_iso, utc_now
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    started_at: str
    cutoff: str
    scanned: int = 0
    deleted: int = 0
    failed: int = 0
    orphans_removed: int = 0
    deleted_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)


class ExpirySweeper:
    """Deletes resources whose own ``created_at`` is older than the retention window.

    Each expired resource is removed independently: a failure is logged and
    counted, and the sweep moves on. Metadata goes first so the resource stops
    resolving before its content disappears; a crash in between leaves an
    orphan blob that a later sweep removes by file age.
    """

    def __init__(
        self,
        resource_repo: ResourceRepo,
        content_store: ContentStore,
        settings: ExpirySettings | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.settings = settings or ExpirySettings()
        self.clock = clock
        self.last_report: SweepReport | None = None
        self._stop = threading.Event()
        self._worker: threading.Thread | None = None

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.settings.retention_seconds)

    def sweep(self, now: datetime | None = None) -> SweepReport:
        current = now or self.clock()
        cutoff = current - self.retention
        report = SweepReport(started_at=to_utc_iso(current), cutoff=to_utc_iso(cutoff))

        try:
            expired = self.resource_repo.list_created_before(report.cutoff)
        except Exception:
            logger.exception("Sweep could not enumerate resources; will retry next run")
            self.last_report = report
            return report

        report.scanned = len(expired)
        for resource in expired:
            try:
                self.resource_repo.delete(resource.id, reason="expired")
                self.content_store.delete(resource.id, resource.content_relpath)
            except Exception:
                report.failed += 1
                report.failed_ids.append(resource.id)
                logger.exception("Failed to delete expired resource %s", resource.id)
                continue
            report.deleted += 1
            report.deleted_ids.append(resource.id)
            logger.info("Deleted expired resource %s (created %s)", resource.id, resource.created_at)

        report.orphans_removed = self._sweep_orphans(cutoff.timestamp())

        if report.deleted or report.failed or report.orphans_removed:
            logger.info(
                "Sweep finished: %d deleted, %d failed, %d orphan file(s) removed",
                report.deleted,
                report.failed,
                report.orphans_removed,
            )
        self.last_report = report
        return report

    def _sweep_orphans(self, cutoff_ts: float) -> int:
        removed = 0
        for blob in list(self.content_store.iter_temp_files()) + list(self.content_store.iter_blobs()):
            if blob.mtime >= cutoff_ts:
                continue
            try:
                if not blob.path.name.startswith(".") and self.resource_repo.get_by_id(blob.resource_id) is not None:
                    continue
                blob.path.unlink(missing_ok=True)
            except Exception:
                logger.exception("Failed to remove orphaned content file %s", blob.path)
                continue
            removed += 1
            logger.info("Removed orphaned content file %s", blob.path.name)
        return removed

    def start(self) -> bool:
        if not self.settings.enabled:
            logger.info("Expiry sweeper disabled by configuration")
            return False
        if self._worker is not None and self._worker.is_alive():
            return True
        self._stop.clear()
        self._worker = threading.Thread(target=self._worker_loop, daemon=True, name="expiry-sweeper")
        self._worker.start()
        return True

    def shutdown(self) -> None:
        self._stop.set()
        if self._worker is not None and self._worker.is_alive():
            self._worker.join(timeout=2.0)

    def _worker_loop(self) -> None:
        while not self._stop.wait(timeout=self.settings.interval_seconds):
            try:
                self.sweep()
            except Exception:
                logger.exception("Expiry sweep run failed")
