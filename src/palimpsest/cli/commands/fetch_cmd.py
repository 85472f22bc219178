from __future__ import annotations

import argparse
from pathlib import Path

from palimpsest.application.services.project_service import ProjectService
from palimpsest.application.services.resource_service import ResourceService
from palimpsest.cli.context import CLIContext
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("fetch", help="Write the content of a resource to a local file")
    parser.add_argument("resource_id")
    parser.add_argument("-o", "--output", type=Path, help="Output path (default: suggested filename in cwd)")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    service = ResourceService(ResourceRepo(ctx.paths.db_path), ContentStore(ctx.paths.blob_dir))
    fetched = service.fetch_content(args.resource_id)

    out_path = args.output or (Path.cwd() / fetched.filename)
    out_path.write_bytes(fetched.data)
    ctx.console.print(f"[green]Wrote[/green] {out_path} ({len(fetched.data)} bytes, {fetched.media_type})")
    return 0
