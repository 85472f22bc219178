from __future__ import annotations

import argparse

from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.resource_service import ResourceService
from palimpsest.cli.context import CLIContext
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("delete", help="Delete resources (metadata and content)")
    parser.add_argument("resource_ids", nargs="+")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    service = ResourceService(ResourceRepo(ctx.paths.db_path), ContentStore(ctx.paths.blob_dir))
    for resource_id in args.resource_ids:
        if service.delete(resource_id):
            ctx.console.print(f"[green]Deleted[/green] {resource_id}")
        else:
            ctx.console.print(f"[yellow]Not found[/yellow] {resource_id}")
    return 0
