from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from imgvec.cli.commands import doctor_cmd, load_cmd, run_cmd, vectorize_cmd
from imgvec.cli.context import CLIContext
from imgvec.core.config import load_env
from imgvec.core.errors import ImgvecError
from imgvec.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgvec",
        description="Batch image vectorization and vector store loading",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Env file to load (default: nearest .env.local or .env above the working directory)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    vectorize_cmd.register(subparsers)
    load_cmd.register(subparsers)
    run_cmd.register(subparsers)
    doctor_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    console = Console()

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        env_file = load_env(args.env_file)
        ctx = CLIContext(console=console, env_file=env_file)
        return handler(args, ctx)
    except ImgvecError as exc:
        logger.error(str(exc))
        return 1


def run() -> None:
    raise SystemExit(main())
