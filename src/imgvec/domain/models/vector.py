from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class VectorRecord:
    vector: list[float]
    name: str

    @property
    def dimension(self) -> int:
        return len(self.vector)


@dataclass(slots=True)
class VectorPoint:
    point_id: int
    vector: list[float]
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class HnswParams:
    m: int = 16
    ef_construction: int = 200


@dataclass(frozen=True, slots=True)
class CollectionDescriptor:
    database: str
    collection: str
    dimension: int
    metric: str = "cosine"
    index: HnswParams = field(default_factory=HnswParams)


@dataclass(frozen=True, slots=True)
class InsertAck:
    inserted: int
    ids: list[int] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class HealthStatus:
    ok: bool
    message: str
