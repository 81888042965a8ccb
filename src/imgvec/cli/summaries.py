from __future__ import annotations

from rich.panel import Panel

from imgvec.core.time import format_duration
from imgvec.domain.models.stats import LoadStats, VectorizationStats


def vectorization_panel(stats: VectorizationStats) -> Panel:
    lines = [
        f"Images found: {stats.total}",
        f"Already vectorized (skipped): {stats.skipped}",
        f"Batches: {stats.batches}",
        f"  ├─ Succeeded: {stats.succeeded}",
        f"  └─ Failed: {stats.failed}",
        f"Elapsed: {format_duration(stats.elapsed_seconds)}",
        f"Status: {'PASS' if stats.ok else 'FAIL'}",
    ]
    return Panel.fit("\n".join(lines), title="Vectorization Summary")


def load_panel(stats: LoadStats, database: str, collection: str) -> Panel:
    lines = [
        f"Destination: {database}/{collection}",
        f"Artifacts found: {stats.total}",
        f"Vector dimension: {stats.dimension if stats.dimension is not None else 'n/a'}",
        f"Batches: {stats.batches}",
        f"  ├─ Inserted: {stats.success}",
        f"  ├─ Skipped (already stored): {stats.skipped}",
        f"  └─ Failed: {stats.failed}",
        f"Last id: {stats.last_id}",
        f"Elapsed: {format_duration(stats.elapsed_seconds)}",
        f"Status: {'PASS' if stats.ok else 'FAIL'}",
    ]
    return Panel.fit("\n".join(lines), title="Load Summary")
