from __future__ import annotations

import argparse
from pathlib import Path

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.resource_service import ResourceService
from palimpsest.cli.context import CLIContext
from palimpsest.core.errors import PalimpsestError
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("upload", help="Store one or more files as new resources")
    parser.add_argument("paths", nargs="+", help="Local file paths to store")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    service = ResourceService(ResourceRepo(ctx.paths.db_path), ContentStore(ctx.paths.blob_dir))

    table = Table(title="Upload Results")
    table.add_column("File", overflow="fold")
    table.add_column("Status")
    table.add_column("ID", overflow="fold")
    table.add_column("Pages")

    exit_code = 0
    paths = [Path(p) for p in args.paths]

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=ctx.console,
    )

    with progress:
        task = progress.add_task("Uploading", total=len(paths))
        for p in paths:
            try:
                resource = service.create_from_path(p)
                pages = "-" if resource.page_count is None else str(resource.page_count)
                table.add_row(str(p), "stored", resource.id, pages)
            except PalimpsestError as exc:
                table.add_row(str(p), "error", str(exc), "-")
                exit_code = 1
            finally:
                progress.advance(task, 1)

    ctx.console.print(table)
    return exit_code
