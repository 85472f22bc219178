from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from palimpsest.cli.commands import (
    convert_cmd,
    delete_cmd,
    edit_cmd,
    fetch_cmd,
    init_cmd,
    ocr_cmd,
    resources_cmd,
    show_cmd,
    sweep_cmd,
    upload_cmd,
    web_cmd,
)
from palimpsest.cli.context import CLIContext
from palimpsest.core.config import load_paths
from palimpsest.core.errors import PalimpsestError
from palimpsest.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palimpsest",
        description="Palimpsest versioned document store",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path.cwd(),
        help="Project root to use for .palimpsest data (default: current working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    init_cmd.register(subparsers)
    upload_cmd.register(subparsers)
    resources_cmd.register(subparsers)
    show_cmd.register(subparsers)
    fetch_cmd.register(subparsers)
    edit_cmd.register(subparsers)
    ocr_cmd.register(subparsers)
    convert_cmd.register(subparsers)
    delete_cmd.register(subparsers)
    sweep_cmd.register(subparsers)
    web_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    paths = load_paths(args.project_root)
    ctx = CLIContext(paths=paths, console=console)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args, ctx)
    except PalimpsestError as exc:
        logger.error(str(exc))
        return 1
