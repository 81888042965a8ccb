from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from imgvec.core.errors import ConfigurationError, ConflictError, ExternalServiceError, ImgvecError, ValidationError
from imgvec.domain.models.asset import split_batches
from imgvec.domain.models.stats import LoadStats
from imgvec.domain.models.vector import CollectionDescriptor, VectorPoint
from imgvec.infrastructure.artifacts.store import ArtifactStore
from imgvec.infrastructure.vector.qdrant_store import QdrantVectorStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_DELAY_SECONDS = 0.2


class BulkLoadService:
    def __init__(self, store: QdrantVectorStore) -> None:
        self.store = store

    def run(
        self,
        artifact_dir: Path,
        database: str,
        collection: str,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        force: bool = False,
        skip_existing: bool = False,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        progress_callback: Callable[[dict[str, object]], None] | None = None,
    ) -> LoadStats:
        if batch_size <= 0:
            raise ConfigurationError(f"Load batch size must be positive, got {batch_size}")

        started = time.perf_counter()
        try:
            self.store.list_databases()
        except ImgvecError as exc:
            raise ExternalServiceError(f"Vector store is unreachable: {exc}") from exc

        artifacts = ArtifactStore(artifact_dir.expanduser().resolve())
        paths = artifacts.list_artifacts()
        stats = LoadStats(total=len(paths))
        if not paths:
            logger.warning("No vector artifacts found in %s; nothing to load", artifacts.base_dir)
            stats.elapsed_seconds = time.perf_counter() - started
            return stats

        try:
            first = artifacts.read_record(paths[0])
        except ImgvecError as exc:
            raise ValidationError(f"Cannot detect vector dimension from {paths[0].name}: {exc}") from exc
        stats.dimension = first.dimension
        logger.info("Detected vector dimension %d from %s", stats.dimension, paths[0].name)

        self.provision(
            CollectionDescriptor(database=database, collection=collection, dimension=stats.dimension),
            force=force,
        )

        batches = split_batches(paths, batch_size)
        stats.batches = len(batches)
        self._emit_progress(
            progress_callback,
            {
                "event": "load_start",
                "total": stats.total,
                "batches": stats.batches,
                "dimension": stats.dimension,
            },
        )

        next_id = 1
        for batch in batches:
            points: list[VectorPoint] = []
            queued: set[str] = set()
            for path in batch.items:
                try:
                    record = artifacts.read_record(path)
                except ImgvecError as exc:
                    stats.failed += 1
                    logger.error("Skipping unreadable artifact %s: %s", path.name, exc)
                    continue
                if skip_existing:
                    try:
                        stored = record.name in queued or self.store.has_vector(database, collection, record.name)
                    except ImgvecError as exc:
                        stats.failed += 1
                        logger.error("Existence lookup failed for %s: %s", record.name, exc)
                        continue
                    if stored:
                        stats.skipped += 1
                        continue
                    queued.add(record.name)
                points.append(
                    VectorPoint(
                        point_id=next_id + len(points),
                        vector=record.vector,
                        payload={"img_name": record.name},
                    )
                )

            if points:
                try:
                    ack = self.store.insert_vectors(database, collection, points)
                except ImgvecError as exc:
                    stats.failed += len(points)
                    logger.error("Batch %d/%d rejected by vector store: %s", batch.index, batch.total, exc)
                else:
                    stats.success += ack.inserted
                    next_id += ack.inserted
                    stats.last_id = next_id - 1

            self._emit_progress(
                progress_callback,
                {
                    "event": "load_batch_done",
                    "index": batch.index,
                    "total": batch.total,
                    "success": stats.success,
                    "failed": stats.failed,
                    "skipped": stats.skipped,
                },
            )
            if batch.index < batch.total and batch_delay_seconds > 0:
                time.sleep(batch_delay_seconds)

        stats.elapsed_seconds = time.perf_counter() - started
        logger.info(
            "Load finished: %d inserted, %d failed, %d skipped into %s/%s",
            stats.success,
            stats.failed,
            stats.skipped,
            database,
            collection,
        )
        return stats

    def provision(self, descriptor: CollectionDescriptor, *, force: bool = False) -> None:
        """Make sure the destination collection exists and is empty.

        An existing collection is only replaced when *force* is set; otherwise
        the store is left untouched and ``ConflictError`` is raised.
        """
        if descriptor.database not in self.store.list_databases():
            logger.info("Creating database %s", descriptor.database)
            self.store.create_database(descriptor.database)

        if descriptor.collection in self.store.list_collections(descriptor.database):
            if not force:
                raise ConflictError(
                    f"Collection {descriptor.collection!r} already exists in database "
                    f"{descriptor.database!r}. Use --force to recreate it."
                )
            logger.warning("Dropping existing collection %s/%s", descriptor.database, descriptor.collection)
            self.store.drop_collection(descriptor.database, descriptor.collection)

        self.store.create_collection(descriptor)

    @staticmethod
    def _emit_progress(
        callback: Callable[[dict[str, object]], None] | None,
        payload: dict[str, object],
    ) -> None:
        if callback is None:
            return
        callback(payload)
