from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class VectorizationStats:
    total: int = 0
    skipped: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass(slots=True)
class LoadStats:
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    batches: int = 0
    elapsed_seconds: float = 0.0
    dimension: int | None = None
    last_id: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass(slots=True)
class PipelineReport:
    vectorization: VectorizationStats | None = None
    load: LoadStats | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        stages = [stage for stage in (self.vectorization, self.load) if stage is not None]
        return all(stage.ok for stage in stages)
