from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.core.errors import InvalidParameterError
from palimpsest.domain.models.resource import Resource, ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.documents.pdf_document import PDF_MEDIA_TYPE, read_page_count

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FetchedContent:
    data: bytes
    filename: str
    media_type: str


class ResourceService:
    def __init__(self, resource_repo: ResourceRepo, content_store: ContentStore, writer: ResourceWriter | None = None) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.writer = writer or ResourceWriter(resource_repo, content_store)

    def create(
        self,
        data: bytes,
        *,
        kind: ResourceKind = ResourceKind.ORIGINAL_UPLOAD,
        original_filename: str = "upload.pdf",
        media_type: str | None = None,
    ) -> Resource:
        if not data:
            raise InvalidParameterError("No file content uploaded.")
        if kind is ResourceKind.EDITED_VERSION:
            raise InvalidParameterError("Edited versions are produced by applying operations, not uploaded.")

        filename = Path(original_filename or "upload.bin").name
        resolved_media_type = media_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        page_count = None
        if resolved_media_type == PDF_MEDIA_TYPE or data[:5] == b"%PDF-":
            resolved_media_type = PDF_MEDIA_TYPE
            page_count = read_page_count(data)

        return self.writer.write(
            kind,
            data,
            media_type=resolved_media_type,
            original_filename=filename,
            page_count=page_count,
        )

    def create_from_path(self, file_path: Path, kind: ResourceKind = ResourceKind.ORIGINAL_UPLOAD) -> Resource:
        path = file_path.expanduser().resolve()
        if not path.exists() or not path.is_file():
            raise InvalidParameterError(f"File not found: {path}")
        return self.create(path.read_bytes(), kind=kind, original_filename=path.name)

    def fetch_metadata(self, resource_id: str) -> Resource:
        return self.resource_repo.require(resource_id)

    def fetch_content(self, resource_id: str) -> FetchedContent:
        resource = self.resource_repo.require(resource_id)
        data = self.content_store.get(resource.id, resource.content_relpath)
        return FetchedContent(data=data, filename=resource.original_filename, media_type=resource.media_type)

    def list(self, limit: int = 100, kind: ResourceKind | None = None) -> list[Resource]:
        return self.resource_repo.list(limit=limit, kind=kind)

    def delete(self, resource_id: str) -> bool:
        resource = self.resource_repo.get_by_id(resource_id)
        removed = self.resource_repo.delete(resource_id, reason="deleted")
        relpath = resource.content_relpath if resource else None
        removed_content = self.content_store.delete(resource_id, relpath)
        if removed:
            logger.info("Deleted resource %s", resource_id)
        return removed or removed_content
