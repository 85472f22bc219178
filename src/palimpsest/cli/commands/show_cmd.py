from __future__ import annotations

import argparse
import json

from rich.table import Table

from palimpsest.application.services.project_service import ProjectService
from palimpsest.cli.context import CLIContext
from palimpsest.domain.models.resource import Resource
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("show", help="Show the metadata record of a resource")
    parser.add_argument("resource_id")
    parser.add_argument("--json", action="store_true", help="Print the raw record as JSON")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    resource = ResourceRepo(ctx.paths.db_path).require(args.resource_id)
    if args.json:
        ctx.console.print_json(json.dumps(resource.to_dict()))
        return 0

    print_resource(ctx, resource)
    return 0


def print_resource(ctx: CLIContext, resource: Resource) -> None:
    details = Table(show_header=False, title=f"Resource {resource.id}")
    details.add_column("Field", style="bold")
    details.add_column("Value", overflow="fold")
    details.add_row("Kind", resource.kind.value)
    details.add_row("Filename", resource.original_filename)
    details.add_row("Media type", resource.media_type)
    details.add_row("Pages", "-" if resource.page_count is None else str(resource.page_count))
    details.add_row("Size", str(resource.size_bytes))
    details.add_row("Digest (sha256)", resource.digest_sha256)
    details.add_row("Created", resource.created_at)
    details.add_row("Modified", resource.modified_at or "-")
    details.add_row("Lineage", resource.lineage or "-")
    ctx.console.print(details)

    if not resource.operation_log:
        return
    log = Table(title=f"Operation log ({len(resource.operation_log)})")
    log.add_column("#")
    log.add_column("Type")
    log.add_column("Parameters", overflow="fold")
    log.add_column("Applied")
    for i, record in enumerate(resource.operation_log):
        log.add_row(str(i), record.type.value, json.dumps(record.parameters, sort_keys=True), record.applied_at)
    ctx.console.print(log)
