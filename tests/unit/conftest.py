from __future__ import annotations

import base64
import json
import os
import threading
import time
from pathlib import Path

import pytest

from imgvec.core.errors import ExternalServiceError
from imgvec.domain.models.vector import CollectionDescriptor, HealthStatus, InsertAck, VectorPoint


ENV_KEYS = [
    "ARK_API_KEY",
    "ARK_BASE_URL",
    "ARK_TIMEOUT",
    "ARK_MAX_RETRIES",
    "ARK_RETRY_DELAY",
    "ARK_EMBEDDING_MODEL",
    "IMGVEC_QDRANT_URL",
    "IMGVEC_QDRANT_PATH",
    "IMGVEC_QDRANT_API_KEY",
    "IMGVEC_QDRANT_PREFER_GRPC",
    "IMGVEC_QDRANT_TIMEOUT_SECONDS",
]


class FakeEmbedder:
    """Returns a fixed-size vector; images whose bytes contain ``fail`` raise."""

    def __init__(self, dimension: int = 4, healthy: bool = True) -> None:
        self.dimension = dimension
        self.healthy = healthy
        self.calls: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def health_check(self) -> HealthStatus:
        if not self.healthy:
            return HealthStatus(ok=False, message="service down")
        return HealthStatus(ok=True, message="fake ok")

    def embed(self, image_payload: str, model_id: str | None = None) -> list[float]:
        with self._lock:
            self.calls.append(image_payload)
        raw = base64.b64decode(image_payload.split(",", 1)[1])
        if b"fail" in raw:
            raise ExternalServiceError(f"embedding rejected: {raw.decode('utf-8', 'replace')}")
        return [float(len(raw))] + [0.5] * (self.dimension - 1)

    def close(self) -> None:
        self.closed = True


class FakeVectorStore:
    def __init__(self, *, reachable: bool = True) -> None:
        self.reachable = reachable
        self.databases: dict[str, dict[str, dict[str, object]]] = {}
        self.calls: list[str] = []
        self.insert_batches: list[list[VectorPoint]] = []
        self.lookup_failures: set[str] = set()
        self.closed = False

    def list_databases(self) -> list[str]:
        self.calls.append("list_databases")
        if not self.reachable:
            raise ExternalServiceError("connection refused")
        return sorted(self.databases)

    def create_database(self, name: str) -> None:
        self.calls.append("create_database")
        self.databases.setdefault(name, {})

    def list_collections(self, database: str) -> list[str]:
        self.calls.append("list_collections")
        return sorted(self.databases.get(database, {}))

    def create_collection(self, descriptor: CollectionDescriptor) -> None:
        self.calls.append("create_collection")
        self.databases.setdefault(descriptor.database, {})[descriptor.collection] = {
            "descriptor": descriptor,
            "points": [],
        }

    def drop_collection(self, database: str, collection: str) -> None:
        self.calls.append("drop_collection")
        del self.databases[database][collection]

    def insert_vectors(self, database: str, collection: str, points: list[VectorPoint]) -> InsertAck:
        self.calls.append("insert_vectors")
        entry = self.databases[database][collection]
        dimension = entry["descriptor"].dimension
        for point in points:
            if len(point.vector) != dimension:
                raise ExternalServiceError(f"dimension mismatch: expected {dimension}, got {len(point.vector)}")
        self.insert_batches.append(list(points))
        entry["points"].extend(points)
        return InsertAck(inserted=len(points), ids=[p.point_id for p in points])

    def has_vector(self, database: str, collection: str, name: str) -> bool:
        if name in self.lookup_failures:
            raise ExternalServiceError(f"lookup timed out for {name}")
        points = self.databases[database][collection]["points"]
        return any(p.payload.get("img_name") == name for p in points)

    def count_vectors(self, database: str, collection: str) -> int:
        return len(self.databases[database][collection]["points"])

    def points(self, database: str, collection: str) -> list[VectorPoint]:
        return list(self.databases[database][collection]["points"])

    def close(self) -> None:
        self.closed = True


def _write_images(directory: Path, names: list[str]) -> list[Path]:
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in names:
        path = directory / name
        path.write_bytes(f"image:{name}".encode("utf-8"))
        paths.append(path)
    return paths


def _write_artifact(directory: Path, name: str, vector: list[float], img_name: str | None = None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.json"
    path.write_text(json.dumps({"vector": vector, "img_name": img_name or f"{name}.jpg"}), encoding="utf-8")
    return path


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so the variables load_env adds are removed again on teardown.
    for key in ENV_KEYS + [key for key in os.environ if key.startswith(("ARK_", "IMGVEC_"))]:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


@pytest.fixture
def write_images():
    return _write_images


@pytest.fixture
def write_artifact():
    return _write_artifact


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    sleeps: list[float] = []
    monkeypatch.setattr(time, "sleep", lambda sec: sleeps.append(sec))
    return sleeps
