from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SourceAsset:
    path: Path
    name: str

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass(slots=True)
class WorkPlan:
    unprocessed: list[SourceAsset] = field(default_factory=list)
    skipped: list[SourceAsset] = field(default_factory=list)


@dataclass(slots=True)
class Batch(Generic[T]):
    index: int
    total: int
    items: list[T]


def split_batches(items: list[T], batch_size: int) -> list[Batch[T]]:
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    chunks = [items[i : i + batch_size] for i in range(0, len(items), batch_size)]
    return [Batch(index=idx, total=len(chunks), items=chunk) for idx, chunk in enumerate(chunks, start=1)]
