from __future__ import annotations

from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.core.errors import InvalidParameterError
from palimpsest.domain.models.resource import Resource, ResourceKind


class DerivedArtifactRegistrar:
    """Records OCR text and converted files as first-class resources.

    Registered artifacts get their own identifier and their own expiry clock;
    ``source_lineage`` is a lookup-only pointer back to the document they came
    from.
    """

    def __init__(self, writer: ResourceWriter) -> None:
        self.writer = writer

    def register(
        self,
        kind: ResourceKind,
        data: bytes,
        source_lineage: str | None = None,
        *,
        media_type: str,
        original_filename: str,
        page_count: int | None = None,
    ) -> Resource:
        if not kind.is_derived:
            raise InvalidParameterError(f"Resource kind '{kind.value}' is not a derived artifact kind.")
        return self.writer.write(
            kind,
            data,
            media_type=media_type,
            original_filename=original_filename,
            page_count=page_count,
            lineage=source_lineage,
        )
