from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from imgvec.application.services.load_service import DEFAULT_BATCH_SIZE, BulkLoadService
from imgvec.application.services.vectorization_service import (
    DEFAULT_BATCH_SIZE as DEFAULT_VECTORIZE_BATCH_SIZE,
    VectorizationService,
    default_artifact_dir,
)
from imgvec.core.errors import ConfigurationError, FilesystemError
from imgvec.domain.models.stats import PipelineReport
from imgvec.infrastructure.artifacts.store import ArtifactStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineOptions:
    source_dir: Path
    database: str
    collection: str
    force: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    skip_existing: bool = False
    skip_vectorization: bool = False
    skip_database: bool = False
    vectorize_batch_size: int = DEFAULT_VECTORIZE_BATCH_SIZE


class PipelineService:
    """Runs vectorization then bulk load over one source directory."""

    def __init__(
        self,
        *,
        vectorization_service: VectorizationService | None,
        load_service: BulkLoadService | None,
    ) -> None:
        self.vectorization_service = vectorization_service
        self.load_service = load_service

    def run(
        self,
        options: PipelineOptions,
        *,
        progress_callback: Callable[[dict[str, object]], None] | None = None,
    ) -> PipelineReport:
        started = time.perf_counter()
        source_dir = options.source_dir.expanduser().resolve()
        if not source_dir.is_dir():
            raise FilesystemError(f"Source directory not found: {source_dir}")
        if not options.skip_database and options.batch_size <= 0:
            raise ConfigurationError(f"Load batch size must be positive, got {options.batch_size}")
        artifact_dir = default_artifact_dir(source_dir)

        if options.skip_vectorization:
            if not artifact_dir.is_dir() or not ArtifactStore(artifact_dir).list_artifacts():
                raise ConfigurationError(
                    f"--skip-vectorization was given but {artifact_dir} holds no vector artifacts. "
                    "Run without --skip-vectorization first."
                )

        report = PipelineReport()
        if options.skip_vectorization:
            logger.info("Skipping vectorization stage")
        else:
            if self.vectorization_service is None:
                raise ConfigurationError("Vectorization stage requested but no embedding client is configured")
            report.vectorization = self.vectorization_service.run(
                source_dir,
                output_dir=artifact_dir,
                batch_size=options.vectorize_batch_size,
                progress_callback=progress_callback,
            )

        if options.skip_database:
            logger.info("Skipping database load stage")
        else:
            if self.load_service is None:
                raise ConfigurationError("Load stage requested but no vector store is configured")
            report.load = self.load_service.run(
                artifact_dir,
                options.database,
                options.collection,
                batch_size=options.batch_size,
                force=options.force,
                skip_existing=options.skip_existing,
                progress_callback=progress_callback,
            )

        report.elapsed_seconds = time.perf_counter() - started
        return report
