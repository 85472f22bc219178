from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResourceKind(str, Enum):
    ORIGINAL_UPLOAD = "original-upload"
    EDITED_VERSION = "edited-version"
    EXTRACTED_TEXT = "extracted-text"
    CONVERTED_FORMAT = "converted-format"

    @property
    def is_derived(self) -> bool:
        return self in (ResourceKind.EXTRACTED_TEXT, ResourceKind.CONVERTED_FORMAT)


class OperationType(str, Enum):
    INSERT_TEXT = "insert-text"
    INSERT_IMAGE = "insert-image"
    REMOVE_PAGE = "remove-page"
    ROTATE_PAGE = "rotate-page"
    MERGE_PAGES = "merge-pages"


@dataclass(frozen=True, slots=True)
class OperationRecord:
    type: OperationType
    parameters: dict[str, Any]
    applied_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "parameters": dict(self.parameters),
            "applied_at": self.applied_at,
        }


@dataclass(slots=True)
class Resource:
    id: str
    kind: ResourceKind
    content_relpath: str
    media_type: str
    original_filename: str
    digest_sha256: str
    size_bytes: int
    created_at: str
    page_count: int | None = None
    modified_at: str | None = None
    lineage: str | None = None
    operation_log: tuple[OperationRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "content_relpath": self.content_relpath,
            "media_type": self.media_type,
            "original_filename": self.original_filename,
            "digest_sha256": self.digest_sha256,
            "size_bytes": self.size_bytes,
            "page_count": self.page_count,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "lineage": self.lineage,
            "operation_log": [record.to_dict() for record in self.operation_log],
        }
