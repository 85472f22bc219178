from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from palimpsest.application.services.artifact_service import DerivedArtifactRegistrar
from palimpsest.core.errors import InvalidParameterError
from palimpsest.domain.models.resource import Resource, ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.documents.pdf_document import PdfDocument

logger = logging.getLogger(__name__)

# Pages are rendered at twice their nominal size before recognition.
OCR_RENDER_ZOOM = 2.0


class Recognizer(Protocol):
    def recognize(self, image_bytes: bytes) -> str: ...


@dataclass(slots=True)
class PageText:
    page_index: int
    text: str


@dataclass(slots=True)
class RecognitionResult:
    artifact: Resource
    pages: list[PageText] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(page.text for page in self.pages)


class RecognitionService:
    def __init__(
        self,
        resource_repo: ResourceRepo,
        content_store: ContentStore,
        registrar: DerivedArtifactRegistrar,
        recognizer: Recognizer,
    ) -> None:
        self.resource_repo = resource_repo
        self.content_store = content_store
        self.registrar = registrar
        self.recognizer = recognizer

    def extract_page_text(self, resource_id: str, page_index: int) -> RecognitionResult:
        source, data = self._load_document(resource_id)
        with PdfDocument.load(data) as doc:
            image = doc.get_page(page_index).render_png(zoom=OCR_RENDER_ZOOM)
        text = self.recognizer.recognize(image)
        artifact = self.registrar.register(
            ResourceKind.EXTRACTED_TEXT,
            text.encode("utf-8"),
            source.id,
            media_type="text/plain; charset=utf-8",
            original_filename=f"{Path(source.original_filename).stem}-page-{page_index + 1}.txt",
        )
        logger.info("Recognized page %d of %s -> %s", page_index, source.id, artifact.id)
        return RecognitionResult(artifact=artifact, pages=[PageText(page_index=page_index, text=text)])

    def extract_document_text(self, resource_id: str) -> RecognitionResult:
        source, data = self._load_document(resource_id)
        with PdfDocument.load(data) as doc:
            images = [doc.get_page(i).render_png(zoom=OCR_RENDER_ZOOM) for i in range(doc.page_count())]
        pages = [PageText(page_index=i, text=self.recognizer.recognize(image)) for i, image in enumerate(images)]
        payload = json.dumps(
            [{"page_index": page.page_index, "text": page.text} for page in pages],
            ensure_ascii=False,
            indent=2,
        )
        artifact = self.registrar.register(
            ResourceKind.EXTRACTED_TEXT,
            payload.encode("utf-8"),
            source.id,
            media_type="application/json",
            original_filename=f"{Path(source.original_filename).stem}-text.json",
        )
        logger.info("Recognized %d page(s) of %s -> %s", len(pages), source.id, artifact.id)
        return RecognitionResult(artifact=artifact, pages=pages)

    def extract_image_text(self, image_bytes: bytes, filename: str = "image.png") -> RecognitionResult:
        if not image_bytes:
            raise InvalidParameterError("No image content uploaded.")
        text = self.recognizer.recognize(image_bytes)
        artifact = self.registrar.register(
            ResourceKind.EXTRACTED_TEXT,
            text.encode("utf-8"),
            None,
            media_type="text/plain; charset=utf-8",
            original_filename=f"{Path(filename).stem or 'image'}.txt",
        )
        return RecognitionResult(artifact=artifact, pages=[PageText(page_index=0, text=text)])

    def _load_document(self, resource_id: str) -> tuple[Resource, bytes]:
        source = self.resource_repo.require(resource_id)
        return source, self.content_store.get(source.id, source.content_relpath)
