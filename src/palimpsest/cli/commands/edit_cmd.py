from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from rich.table import Table

from palimpsest.application.services.mutation_service import MutationService
from palimpsest.application.services.project_service import ProjectService
from palimpsest.cli.context import CLIContext
from palimpsest.core.errors import InvalidParameterError
from palimpsest.infrastructure.archive.store import ContentStore
from palimpsest.infrastructure.db.repos.resource_repo import ResourceRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("edit", help="Apply an ordered list of operations and store a new version")
    parser.add_argument("resource_id")
    parser.add_argument(
        "--ops",
        help="JSON file holding a list of operations ('-' reads stdin)",
    )
    parser.add_argument(
        "--op",
        action="append",
        default=[],
        help='Inline operation as JSON, e.g. \'{"type": "rotate-page", "page_index": 0, "angle": 90}\'. Repeatable.',
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()

    operations = load_operations(args.ops, args.op)
    service = MutationService(ResourceRepo(ctx.paths.db_path), ContentStore(ctx.paths.blob_dir))
    result = service.apply(args.resource_id, operations)

    table = Table(title=f"New version {result.resource.id}")
    table.add_column("#")
    table.add_column("Operation")
    table.add_column("Parameters", overflow="fold")
    for i, record in enumerate(result.applied):
        table.add_row(str(i), record.type.value, json.dumps(record.parameters, sort_keys=True))
    ctx.console.print(table)
    ctx.console.print(
        f"[green]Stored[/green] {result.resource.id} "
        f"({result.resource.page_count} pages, lineage {result.resource.lineage})"
    )
    return 0


def load_operations(ops_path: str | None, inline_ops: list[str]) -> list[dict[str, Any]]:
    operations: list[dict[str, Any]] = []
    if ops_path:
        raw = sys.stdin.read() if ops_path == "-" else Path(ops_path).read_text(encoding="utf-8")
        parsed = _parse_json(raw, ops_path)
        if isinstance(parsed, dict) and isinstance(parsed.get("edits"), list):
            parsed = parsed["edits"]
        if not isinstance(parsed, list):
            raise InvalidParameterError(f"{ops_path} must contain a JSON list of operations.")
        operations.extend(parsed)
    for raw in inline_ops:
        operations.append(_parse_json(raw, "--op"))
    if not operations:
        raise InvalidParameterError("Provide operations with --ops or --op.")
    return operations


def _parse_json(raw: str, source: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidParameterError(f"Invalid JSON in {source}: {exc}") from exc
