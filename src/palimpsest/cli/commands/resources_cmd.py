from __future__ import annotations

import argparse

from rich.table import Table

from palimpsest.application.services.project_service import ProjectService
from palimpsest.cli.context import CLIContext
from palimpsest.domain.models.resource import ResourceKind
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("resources", help="List stored resources")
    parser.add_argument("--limit", type=int, default=50)
    parser.add_argument("--kind", choices=[k.value for k in ResourceKind])
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    repo = ResourceRepo(ctx.paths.db_path)
    kind = ResourceKind(args.kind) if args.kind else None
    resources = repo.list(limit=args.limit, kind=kind)

    table = Table(title=f"Resources ({len(resources)})")
    table.add_column("ID", overflow="fold")
    table.add_column("Kind")
    table.add_column("Filename")
    table.add_column("Pages")
    table.add_column("Size")
    table.add_column("Created")
    table.add_column("Lineage", overflow="fold")

    for r in resources:
        table.add_row(
            r.id,
            r.kind.value,
            r.original_filename,
            "-" if r.page_count is None else str(r.page_count),
            str(r.size_bytes),
            r.created_at,
            r.lineage or "-",
        )

    ctx.console.print(table)
    return 0
