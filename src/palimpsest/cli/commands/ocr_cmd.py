from __future__ import annotations

import argparse
from pathlib import Path

from palimpsest.application.services.artifact_service import DerivedArtifactRegistrar
from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.recognition_service import RecognitionService
from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.cli.context import CLIContext
from palimpsest.core.errors import InvalidParameterError
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo
from palimpsest.infrastructure.ocr.tesseract import TesseractRecognizer


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("ocr", help="Recognize text and store it as an extracted-text resource")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--resource", dest="resource_id", help="PDF resource to recognize")
    target.add_argument("--image", type=Path, help="Local image file to recognize")
    parser.add_argument("--page", type=int, help="Single page index (default: every page)")
    parser.add_argument("--lang", help="Tesseract language(s), e.g. eng+deu")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    repo = ResourceRepo(ctx.paths.db_path)
    store = ContentStore(ctx.paths.blob_dir)
    service = RecognitionService(
        repo,
        store,
        DerivedArtifactRegistrar(ResourceWriter(repo, store)),
        TesseractRecognizer(lang=args.lang),
    )

    if args.image is not None:
        if not args.image.is_file():
            raise InvalidParameterError(f"File not found: {args.image}")
        result = service.extract_image_text(args.image.read_bytes(), filename=args.image.name)
    elif args.page is not None:
        result = service.extract_page_text(args.resource_id, args.page)
    else:
        result = service.extract_document_text(args.resource_id)

    for page in result.pages:
        ctx.console.rule(f"Page {page.page_index}")
        ctx.console.print(page.text, markup=False, highlight=False)
    ctx.console.print(f"[green]Stored text[/green] {result.artifact.id}")
    return 0
