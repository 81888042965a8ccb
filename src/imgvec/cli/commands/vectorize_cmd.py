from __future__ import annotations

import argparse
from pathlib import Path

from imgvec.application.services.vectorization_service import (
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_BATCH_SIZE,
    VectorizationService,
)
from imgvec.cli.summaries import vectorization_panel
from imgvec.cli.context import CLIContext
from imgvec.cli.progress import build_progress, progress_handler


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("vectorize", help="Embed every unprocessed image in a directory")
    parser.add_argument("source_dir", type=Path, help="Directory holding the images")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Concurrent embedding calls per batch, 1-300 (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Artifact directory (default: <source_dir>/vector)",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=int(DEFAULT_BATCH_DELAY_SECONDS * 1000),
        help="Pause between batches in milliseconds (default: %(default)s)",
    )
    parser.set_defaults(handler=run_vectorize)


def run_vectorize(args: argparse.Namespace, ctx: CLIContext) -> int:
    embedder = ctx.embedding_client()
    try:
        service = VectorizationService(embedder)
        progress = build_progress(ctx.console)
        with progress:
            stats = service.run(
                args.source_dir,
                output_dir=args.output_dir,
                batch_size=args.batch_size,
                batch_delay_seconds=max(0, args.delay_ms) / 1000.0,
                progress_callback=progress_handler(progress, ctx.console),
            )
    finally:
        embedder.close()

    ctx.console.print(vectorization_panel(stats))
    return 0 if stats.ok else 1
