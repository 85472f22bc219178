from __future__ import annotations

import argparse
from dataclasses import replace

from palimpsest.application.services.expiry_service import ExpirySweeper
from palimpsest.application.services.project_service import ProjectService
from palimpsest.cli.context import CLIContext
from palimpsest.core.config import load_expiry_settings
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("sweep", help="Delete resources older than the retention window")
    parser.add_argument(
        "--retention-seconds",
        type=float,
        help="Override PALIMPSEST_RETENTION_SECONDS for this run",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    settings = load_expiry_settings()
    if args.retention_seconds is not None and args.retention_seconds > 0:
        settings = replace(settings, retention_seconds=args.retention_seconds)

    sweeper = ExpirySweeper(ResourceRepo(ctx.paths.db_path), ContentStore(ctx.paths.blob_dir), settings)
    report = sweeper.sweep()

    ctx.console.print(f"Cutoff: {report.cutoff}")
    ctx.console.print(
        f"[green]Deleted[/green] {report.deleted}  "
        f"[red]Failed[/red] {report.failed}  "
        f"Orphans removed {report.orphans_removed}"
    )
    return 1 if report.failed else 0
