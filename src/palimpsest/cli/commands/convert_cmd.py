from __future__ import annotations

import argparse

from palimpsest.application.services.artifact_service import DerivedArtifactRegistrar
from palimpsest.application.services.conversion_service import ConversionService
from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.resource_writer import ResourceWriter
from palimpsest.cli.context import CLIContext
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.converters.format_converter import TARGET_FORMATS
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("convert", help="Convert a PDF resource and store the result")
    parser.add_argument("resource_id")
    parser.add_argument("target", help=f"Target format ({', '.join(sorted(TARGET_FORMATS))})")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    repo = ResourceRepo(ctx.paths.db_path)
    store = ContentStore(ctx.paths.blob_dir)
    service = ConversionService(repo, store, DerivedArtifactRegistrar(ResourceWriter(repo, store)))
    artifact = service.convert(args.resource_id, args.target)

    ctx.console.print(
        f"[green]Stored[/green] {artifact.id} ({artifact.original_filename}, {artifact.size_bytes} bytes)"
    )
    return 0
