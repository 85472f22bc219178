from __future__ import annotations

import logging
from pathlib import Path

from palimpsest.application.services.artifact_service import DerivedArtifactRegistrar
from palimpsest.domain.models.resource import Resource, ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.converters.format_converter import FormatConverter, resolve_target_format
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo

logger = logging.getLogger(__name__)


class ConversionService:
    def __init__(
        self,
        resource_repo: ResourceRepo,
        content_store: ContentStore,
        registrar: DerivedArtifactRegistrar,
        converter: FormatConverter | None = None,
    ) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.registrar = registrar
        self.converter = converter or FormatConverter()

    def convert(self, resource_id: str, target_format: str) -> Resource:
        target = resolve_target_format(target_format)
        source = self.resource_repo.require(resource_id)
        data = self.content_store.get(source.id, source.content_relpath)
        converted = self.converter.convert(data, target.name)
        stem = Path(source.original_filename).stem or source.id
        if target.extension == ".zip":
            # Page images are bundled; keep the image format visible in the name.
            filename = f"{stem}-{target.name}{target.extension}"
        else:
            filename = f"{stem}{target.extension}"
        artifact = self.registrar.register(
            ResourceKind.CONVERTED_FORMAT,
            converted,
            source.id,
            media_type=target.media_type,
            original_filename=filename,
        )
        logger.info("Converted %s to %s -> %s", source.id, target.name, artifact.id)
        return artifact
