from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from palimpsest.application.services.merge_resolver import MergeResolver
from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.core.errors import InvalidParameterError, PalimpsestError
from palimpsest.domain.models.operation import (
    InsertImage,
    InsertText,
    MergePages,
    Operation,
    RemovePage,
    RotatePage,
    parse_operation,
)
from palimpsest.domain.models.resource import OperationRecord, Resource, ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.documents.pdf_document import PDF_MEDIA_TYPE, PdfDocument

logger = logging.getLogger(__name__)


class MutationState(str, Enum):
    LOADED = "loaded"
    MUTATING = "mutating"
    FINALIZED = "finalized"
    ABORTED = "aborted"


@dataclass(slots=True)
class MutationResult:
    resource: Resource
    applied: list[OperationRecord] = field(default_factory=list)
    state: MutationState = MutationState.FINALIZED


class MutationService:
    """Applies an ordered batch of edits to a document and publishes a new version.

    The source resource is never modified. Operations run strictly in input
    order against one in-memory working copy, so a ``remove-page`` shifts the
    indices seen by every later operation in the same batch. Any failure
    aborts the batch before anything is written.
    """

    def __init__(
        self,
        resource_repo: ResourceRepo,
        content_store: ContentStore,
        writer: ResourceWriter | None = None,
        merge_resolver: MergeResolver | None = None,
    ) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.writer = writer or ResourceWriter(resource_repo, content_store)
        self.merge_resolver = merge_resolver or MergeResolver(resource_repo, content_store)

    def apply(self, source_id: str, operations: Sequence[Operation | dict[str, Any]]) -> MutationResult:
        source = self.resource_repo.require(source_id)
        data = self.content_store.get(source.id, source.content_relpath)

        parsed = [
            parse_operation(op, position=i) if isinstance(op, dict) else op
            for i, op in enumerate(operations)
        ]
        if not parsed:
            raise InvalidParameterError("At least one operation is required.")

        # Merge sources are read up front; the batch below touches no storage.
        merge_sources: dict[str, bytes] = {}
        for position, op in enumerate(parsed):
            if isinstance(op, MergePages) and op.source_id not in merge_sources:
                try:
                    merge_sources[op.source_id] = self.merge_resolver.resolve(op.source_id)
                except PalimpsestError as exc:
                    raise type(exc)(f"Operation #{position} ({op.type.value}) failed: {exc}") from exc

        doc = PdfDocument.load(data)
        state = MutationState.LOADED
        applied: list[OperationRecord] = []
        try:
            state = MutationState.MUTATING
            for position, op in enumerate(parsed):
                try:
                    self._apply_one(doc, op, merge_sources)
                except PalimpsestError as exc:
                    raise type(exc)(f"Operation #{position} ({op.type.value}) failed: {exc}") from exc
                applied.append(
                    OperationRecord(type=op.type, parameters=op.log_parameters(), applied_at=self.writer.now_iso())
                )

            output = doc.serialize()
            page_count = doc.page_count()
            doc.close()
            resource = self.writer.write(
                ResourceKind.EDITED_VERSION,
                output,
                media_type=PDF_MEDIA_TYPE,
                original_filename=source.original_filename,
                page_count=page_count,
                lineage=source.id,
                operation_log=source.operation_log + tuple(applied),
                modified_at=self.writer.now_iso(),
            )
            state = MutationState.FINALIZED
        except BaseException:
            state = MutationState.ABORTED
            logger.warning(
                "Aborted edit of %s after %d of %d operation(s); nothing was stored",
                source_id,
                len(applied),
                len(parsed),
            )
            raise
        finally:
            doc.close()

        logger.info(
            "Applied %d operation(s) to %s -> %s (%d pages)",
            len(applied),
            source_id,
            resource.id,
            page_count,
        )
        return MutationResult(resource=resource, applied=applied, state=state)

    def _apply_one(self, doc: PdfDocument, op: Operation, merge_sources: dict[str, bytes]) -> None:
        if isinstance(op, InsertText):
            doc.get_page(op.page_index).draw_text(op.text, op.x, op.y, op.size)
        elif isinstance(op, InsertImage):
            doc.get_page(op.page_index).draw_image(op.image_bytes, op.x, op.y, op.width, op.height)
        elif isinstance(op, RemovePage):
            doc.get_page(op.page_index)
            if doc.page_count() == 1:
                raise InvalidParameterError("Cannot remove the only remaining page of a document.")
            doc.remove_page(op.page_index)
        elif isinstance(op, RotatePage):
            doc.get_page(op.page_index).set_rotation(op.angle)
        elif isinstance(op, MergePages):
            with PdfDocument.load(merge_sources[op.source_id]) as other:
                doc.copy_pages_from(other)
        else:
            raise InvalidParameterError(f"Unsupported operation: {op!r}")
