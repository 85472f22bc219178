from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from palimpsest.core.hashing import compute_bytes_digest
from palimpsest.core.ids import IdentifierGenerator
from palimpsest.core.time import to_utc_iso, utc_now
from palimpsest.domain.models.resource import OperationRecord, Resource, ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo

logger = logging.getLogger(__name__)

_MAX_SUFFIX_LEN = 16


class ResourceWriter:
    """Publishes a new immutable resource: content first, then its metadata.

    A resource becomes visible only once its metadata row exists. If the
    metadata write fails or is interrupted, the already published blob is
    removed again so no orphan identifier is left behind.
    """

    def __init__(
        self,
        resource_repo: ResourceRepo,
        content_store: ContentStore,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.clock = clock
        self.ids = IdentifierGenerator(is_taken=resource_repo.is_issued)

    def now_iso(self) -> str:
        return to_utc_iso(self.clock())

    def write(
        self,
        kind: ResourceKind,
        data: bytes,
        *,
        media_type: str,
        original_filename: str,
        page_count: int | None = None,
        lineage: str | None = None,
        operation_log: tuple[OperationRecord, ...] = (),
        modified_at: str | None = None,
    ) -> Resource:
        resource_id = self.ids.generate()
        relpath = self.content_store.put(resource_id, data, suffix_for_filename(original_filename))
        resource = Resource(
            id=resource_id,
            kind=kind,
            content_relpath=relpath,
            media_type=media_type,
            original_filename=original_filename,
            digest_sha256=compute_bytes_digest(data),
            size_bytes=len(data),
            created_at=self.now_iso(),
            page_count=page_count,
            modified_at=modified_at,
            lineage=lineage,
            operation_log=operation_log,
        )
        try:
            self.resource_repo.insert(resource)
        except BaseException:
            self.content_store.delete(resource_id, relpath)
            raise
        logger.info("Stored %s resource %s (%d bytes)", kind.value, resource_id, len(data))
        return resource


def suffix_for_filename(filename: str) -> str:
    suffix = Path(filename or "").suffix.lower()
    if len(suffix) > _MAX_SUFFIX_LEN or not suffix[1:].isalnum():
        return ""
    return suffix
