from __future__ import annotations

import logging
import string
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator
from urllib.parse import quote

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import AliasChoices, BaseModel, Field

from palimpsest.application.services.artifact_service import DerivedArtifactRegistrar
from palimpsest.application.services.conversion_service import ConversionService
from palimpsest.application.services.expiry_service import ExpirySweeper
from palimpsest.application.services.mutation_service import MutationService
from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.recognition_service import RecognitionService, Recognizer
from palimpsest.application.services.resource_service import ResourceService
from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.core.config import AppPaths, ExpirySettings, load_expiry_settings
from palimpsest.core.errors import (
    CapabilityFaultError,
    ConversionFaultError,
    InvalidOperationError,
    NotFoundError,
    PalimpsestError,
    ProjectNotInitializedError,
    StorageFaultError,
    UnsupportedFormatError,
)
from palimpsest.domain.models.resource import ResourceKind
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.converters.format_converter import FormatConverter
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.ocr.tesseract import TesseractRecognizer

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_ERROR_STATUS: tuple[tuple[type[PalimpsestError], int], ...] = (
    (NotFoundError, 404),
    (InvalidOperationError, 400),
    (UnsupportedFormatError, 400),
    (ConversionFaultError, 502),
    (CapabilityFaultError, 422),
    (StorageFaultError, 507),
    (ProjectNotInitializedError, 409),
)


def status_for_error(exc: PalimpsestError) -> int:
    for error_type, status in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


_HEADER_SAFE = frozenset(string.ascii_letters + string.digits + " !#$%&'()*+,-.^_`{|}~[]@=;:/?<>")


def content_disposition(filename: str) -> str:
    """Build an attachment header carrying both an ASCII and a UTF-8 filename."""
    path = Path(filename)
    stem = "".join(ch for ch in path.stem if ch in _HEADER_SAFE).strip() or "download"
    suffix = "".join(ch for ch in path.suffix if ch in _HEADER_SAFE)
    return f"attachment; filename=\"{stem}{suffix}\"; filename*=UTF-8''{quote(filename, safe='')}"


class EditRequest(BaseModel):
    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "fileId"))
    operations: list[dict[str, Any]] = Field(validation_alias=AliasChoices("operations", "edits"))


class ResourceRefRequest(BaseModel):
    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "fileId"))


class PageTextRequest(BaseModel):
    resource_id: str = Field(validation_alias=AliasChoices("resource_id", "fileId"))
    page_index: int = Field(validation_alias=AliasChoices("page_index", "pageIndex"))


def create_app(
    paths: AppPaths,
    *,
    expiry_settings: ExpirySettings | None = None,
    recognizer: Recognizer | None = None,
    converter: FormatConverter | None = None,
) -> FastAPI:
    project_service = ProjectService(paths)
    project_service.init_project()

    resource_repo = ResourceRepo(paths.db_path)
    content_store = ContentStore(paths.blob_dir)
    writer = ResourceWriter(resource_repo, content_store)
    registrar = DerivedArtifactRegistrar(writer)
    resource_service = ResourceService(resource_repo, content_store, writer)
    mutation_service = MutationService(resource_repo, content_store, writer)
    conversion_service = ConversionService(resource_repo, content_store, registrar, converter)
    sweeper = ExpirySweeper(resource_repo, content_store, expiry_settings or load_expiry_settings())
    recognition_services: dict[str, RecognitionService] = {}

    def get_recognition_service() -> RecognitionService:
        # Tesseract is only configured once OCR is actually requested.
        if "default" not in recognition_services:
            recognition_services["default"] = RecognitionService(
                resource_repo,
                content_store,
                registrar,
                recognizer or TesseractRecognizer(),
            )
        return recognition_services["default"]

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        try:
            yield
        finally:
            sweeper.shutdown()

    app = FastAPI(title="Palimpsest", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.sweeper = sweeper

    @app.exception_handler(PalimpsestError)
    async def _palimpsest_error(_: Request, exc: PalimpsestError) -> JSONResponse:
        status = status_for_error(exc)
        if status >= 500:
            logger.error("%s: %s", exc.kind, exc)
        return JSONResponse(status_code=status, content={"ok": False, "error": exc.kind, "detail": str(exc)})

    @app.post("/api/init")
    def api_init() -> dict[str, Any]:
        result = project_service.init_project()
        return {
            "ok": True,
            "db_path": str(result.db_path),
            "paths_created": [str(p) for p in result.paths_created],
        }

    @app.post("/api/pdf/upload")
    async def api_pdf_upload(pdf: UploadFile = File(...)) -> dict[str, Any]:
        content = await pdf.read()
        resource = await run_in_threadpool(
            resource_service.create,
            content,
            original_filename=pdf.filename or "upload.pdf",
            media_type=pdf.content_type if pdf.content_type == "application/pdf" else None,
        )
        return {
            "ok": True,
            "resource_id": resource.id,
            "page_count": resource.page_count,
            "resource": resource.to_dict(),
        }

    @app.post("/api/pdf/edit")
    def api_pdf_edit(req: EditRequest) -> dict[str, Any]:
        result = mutation_service.apply(req.resource_id, req.operations)
        resource = result.resource
        return {
            "ok": True,
            "resource_id": resource.id,
            "page_count": resource.page_count,
            "operation_log": [record.to_dict() for record in resource.operation_log],
            "resource": resource.to_dict(),
        }

    @app.get("/api/pdf/download/{resource_id}")
    def api_pdf_download(resource_id: str) -> Response:
        fetched = resource_service.fetch_content(resource_id)
        return Response(
            content=fetched.data,
            media_type=fetched.media_type,
            headers={
                "Content-Disposition": content_disposition(fetched.filename),
                "X-Palimpsest-Resource-Id": resource_id,
            },
        )

    @app.get("/api/pdf/info/{resource_id}")
    def api_pdf_info(resource_id: str) -> dict[str, Any]:
        return {"ok": True, "resource": resource_service.fetch_metadata(resource_id).to_dict()}

    @app.post("/api/pdf/convert/{target}")
    def api_pdf_convert(target: str, req: ResourceRefRequest) -> dict[str, Any]:
        artifact = conversion_service.convert(req.resource_id, target)
        return {"ok": True, "resource_id": artifact.id, "resource": artifact.to_dict()}

    @app.post("/api/ocr/pdf/extract")
    def api_ocr_pdf_extract(req: PageTextRequest) -> dict[str, Any]:
        result = get_recognition_service().extract_page_text(req.resource_id, req.page_index)
        return {
            "ok": True,
            "text_id": result.artifact.id,
            "text": result.text,
            "page_index": req.page_index,
        }

    @app.post("/api/ocr/pdf/batch-extract")
    def api_ocr_pdf_batch_extract(req: ResourceRefRequest) -> dict[str, Any]:
        result = get_recognition_service().extract_document_text(req.resource_id)
        return {
            "ok": True,
            "text_id": result.artifact.id,
            "results": [{"page_index": page.page_index, "text": page.text} for page in result.pages],
        }

    @app.post("/api/ocr/image/extract")
    async def api_ocr_image_extract(image: UploadFile = File(...)) -> dict[str, Any]:
        content = await image.read()
        result = await run_in_threadpool(
            get_recognition_service().extract_image_text,
            content,
            filename=image.filename or "image.png",
        )
        return {"ok": True, "text_id": result.artifact.id, "text": result.text}

    @app.get("/api/resources")
    def api_resources(
        limit: int = Query(default=100, ge=1, le=100000),
        kind: ResourceKind | None = None,
    ) -> dict[str, Any]:
        resources = [r.to_dict() for r in resource_service.list(limit=limit, kind=kind)]
        return {"ok": True, "count": len(resources), "resources": resources}

    @app.delete("/api/resources/{resource_id}")
    def api_resource_delete(resource_id: str) -> dict[str, Any]:
        return {"ok": True, "deleted": resource_service.delete(resource_id)}

    @app.post("/api/maintenance/sweep")
    def api_sweep() -> dict[str, Any]:
        report = sweeper.sweep()
        return {
            "ok": True,
            "cutoff": report.cutoff,
            "deleted": report.deleted,
            "failed": report.failed,
            "orphans_removed": report.orphans_removed,
            "deleted_ids": report.deleted_ids,
        }

    return app
