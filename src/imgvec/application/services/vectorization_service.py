from __future__ import annotations

import logging
import time
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable

from imgvec.application.services.discovery_service import DiscoveryService
from imgvec.core.errors import ConfigurationError, ExternalServiceError
from imgvec.domain.models.asset import SourceAsset, split_batches
from imgvec.domain.models.stats import VectorizationStats
from imgvec.infrastructure.artifacts.store import ArtifactStore
from imgvec.infrastructure.embedding.client import ArkEmbeddingClient, image_data_uri

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
MAX_BATCH_SIZE = 300
DEFAULT_BATCH_DELAY_SECONDS = 0.3
ARTIFACT_DIRNAME = "vector"


def default_artifact_dir(source_dir: Path) -> Path:
    return source_dir / ARTIFACT_DIRNAME


class VectorizationService:
    def __init__(
        self,
        embedder: ArkEmbeddingClient,
        *,
        discovery: DiscoveryService | None = None,
        model_id: str | None = None,
    ) -> None:
        self.embedder = embedder
        self.discovery = discovery or DiscoveryService()
        self.model_id = model_id

    def run(
        self,
        source_dir: Path,
        *,
        output_dir: Path | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        progress_callback: Callable[[dict[str, object]], None] | None = None,
    ) -> VectorizationStats:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(f"Vectorization batch size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")

        started = time.perf_counter()
        health = self.embedder.health_check()
        if not health.ok:
            raise ExternalServiceError(f"Embedding service health check failed: {health.message}")
        logger.info("Embedding service healthy: %s", health.message)

        source_dir = source_dir.expanduser().resolve()
        assets = self.discovery.discover(source_dir)
        store = ArtifactStore(output_dir.expanduser().resolve() if output_dir else default_artifact_dir(source_dir))
        plan = self.discovery.partition(assets, store)

        batches = split_batches(plan.unprocessed, batch_size) if plan.unprocessed else []
        stats = VectorizationStats(total=len(assets), skipped=len(plan.skipped), batches=len(batches))
        self._emit_progress(
            progress_callback,
            {
                "event": "scan_complete",
                "total": stats.total,
                "skipped": stats.skipped,
                "planned_total": len(plan.unprocessed),
                "batches": len(batches),
                "artifact_dir": str(store.base_dir),
            },
        )
        if not batches:
            logger.info("Nothing to vectorize in %s", source_dir)
            stats.elapsed_seconds = time.perf_counter() - started
            return stats

        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="imgvec-embed") as executor:
            for batch in batches:
                self._emit_progress(
                    progress_callback,
                    {"event": "batch_start", "index": batch.index, "total": batch.total, "size": len(batch.items)},
                )
                futures: list[tuple[SourceAsset, Future[int]]] = [
                    (asset, executor.submit(self._vectorize_one, asset, store)) for asset in batch.items
                ]
                wait([future for _, future in futures], return_when=ALL_COMPLETED)

                for asset, future in futures:
                    exc = future.exception()
                    if exc is None:
                        stats.succeeded += 1
                        self._emit_progress(
                            progress_callback,
                            {"event": "file_done", "path": str(asset.path), "dimension": future.result()},
                        )
                    else:
                        stats.failed += 1
                        logger.error("Failed to vectorize %s: %s", asset.file_name, exc)
                        self._emit_progress(
                            progress_callback,
                            {"event": "file_error", "path": str(asset.path), "error": str(exc)},
                        )

                self._emit_progress(
                    progress_callback,
                    {
                        "event": "batch_done",
                        "index": batch.index,
                        "total": batch.total,
                        "succeeded": stats.succeeded,
                        "failed": stats.failed,
                    },
                )
                if batch.index < batch.total and batch_delay_seconds > 0:
                    time.sleep(batch_delay_seconds)

        stats.elapsed_seconds = time.perf_counter() - started
        logger.info(
            "Vectorization finished: %d succeeded, %d failed, %d skipped",
            stats.succeeded,
            stats.failed,
            stats.skipped,
        )
        return stats

    def _vectorize_one(self, asset: SourceAsset, store: ArtifactStore) -> int:
        payload = image_data_uri(asset.path)
        vector = self.embedder.embed(payload, self.model_id)
        store.write_record(asset.name, vector, asset.file_name)
        return len(vector)

    @staticmethod
    def _emit_progress(
        callback: Callable[[dict[str, object]], None] | None,
        payload: dict[str, object],
    ) -> None:
        if callback is None:
            return
        callback(payload)
