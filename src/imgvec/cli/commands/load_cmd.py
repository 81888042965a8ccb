from __future__ import annotations

import argparse
from pathlib import Path

from imgvec.application.services.load_service import DEFAULT_BATCH_SIZE, BulkLoadService
from imgvec.cli.summaries import load_panel
from imgvec.cli.context import CLIContext
from imgvec.cli.progress import build_progress, progress_handler


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("load", help="Bulk-load vector artifacts into a collection")
    parser.add_argument("artifact_dir", type=Path, help="Directory holding <name>.json vector artifacts")
    parser.add_argument("database")
    parser.add_argument("collection")
    parser.add_argument("-f", "--force", action="store_true", help="Drop and recreate an existing collection")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Vectors per insert call (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip artifacts whose img_name is already stored",
    )
    parser.set_defaults(handler=run_load)


def run_load(args: argparse.Namespace, ctx: CLIContext) -> int:
    store = ctx.vector_store()
    try:
        service = BulkLoadService(store)
        progress = build_progress(ctx.console)
        with progress:
            stats = service.run(
                args.artifact_dir,
                args.database,
                args.collection,
                batch_size=args.batch_size,
                force=args.force,
                skip_existing=args.skip_existing,
                progress_callback=progress_handler(progress, ctx.console),
            )
    finally:
        store.close()

    ctx.console.print(load_panel(stats, args.database, args.collection))
    return 0 if stats.ok else 1
