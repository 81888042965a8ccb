from __future__ import annotations

import argparse
from pathlib import Path

from imgvec.application.services.load_service import DEFAULT_BATCH_SIZE, BulkLoadService
from imgvec.application.services.pipeline_service import PipelineOptions, PipelineService
from imgvec.application.services.vectorization_service import (
    DEFAULT_BATCH_SIZE as DEFAULT_VECTORIZE_BATCH_SIZE,
    VectorizationService,
)
from imgvec.cli.summaries import load_panel, vectorization_panel
from imgvec.cli.context import CLIContext
from imgvec.cli.progress import build_progress, progress_handler
from imgvec.core.time import format_duration


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("run", help="Vectorize a directory and load the vectors in one pass")
    parser.add_argument("source_dir", type=Path, help="Directory holding the images")
    parser.add_argument("database")
    parser.add_argument("collection")
    parser.add_argument("-f", "--force", action="store_true", help="Drop and recreate an existing collection")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Vectors per insert call (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument("--skip-existing", action="store_true", help="Skip images already stored")
    parser.add_argument(
        "--skip-vectorization",
        action="store_true",
        help="Load existing artifacts from <source_dir>/vector without calling the embedding service",
    )
    parser.add_argument("--skip-database", action="store_true", help="Only write vector artifacts")
    parser.add_argument(
        "--vectorize-batch-size",
        type=int,
        default=DEFAULT_VECTORIZE_BATCH_SIZE,
        help=f"Concurrent embedding calls per batch, 1-300 (default: {DEFAULT_VECTORIZE_BATCH_SIZE})",
    )
    parser.set_defaults(handler=run_pipeline)


def run_pipeline(args: argparse.Namespace, ctx: CLIContext) -> int:
    options = PipelineOptions(
        source_dir=args.source_dir,
        database=args.database,
        collection=args.collection,
        force=args.force,
        batch_size=args.batch_size,
        skip_existing=args.skip_existing,
        skip_vectorization=args.skip_vectorization,
        skip_database=args.skip_database,
        vectorize_batch_size=args.vectorize_batch_size,
    )

    embedder = None if options.skip_vectorization else ctx.embedding_client()
    store = None if options.skip_database else ctx.vector_store()
    try:
        service = PipelineService(
            vectorization_service=VectorizationService(embedder) if embedder is not None else None,
            load_service=BulkLoadService(store) if store is not None else None,
        )
        progress = build_progress(ctx.console)
        with progress:
            report = service.run(options, progress_callback=progress_handler(progress, ctx.console))
    finally:
        if embedder is not None:
            embedder.close()
        if store is not None:
            store.close()

    if report.vectorization is not None:
        ctx.console.print(vectorization_panel(report.vectorization))
    if report.load is not None:
        ctx.console.print(load_panel(report.load, options.database, options.collection))
    status = "[green]completed[/green]" if report.ok else "[red]completed with failures[/red]"
    ctx.console.print(f"Pipeline {status} in {format_duration(report.elapsed_seconds)}")
    return 0 if report.ok else 1
