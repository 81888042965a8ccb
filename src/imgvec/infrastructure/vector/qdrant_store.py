from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

from qdrant_client import QdrantClient
from qdrant_client.http import models

from imgvec.core.config import VectorStoreSettings
from imgvec.core.errors import ConfigurationError, ExternalServiceError
from imgvec.domain.models.vector import CollectionDescriptor, HealthStatus, InsertAck, VectorPoint

logger = logging.getLogger(__name__)

T = TypeVar("T")

NAMESPACE_SEPARATOR = "__"
IN_MEMORY = ":memory:"

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
}


class QdrantVectorStore:
    """Database/collection facade over Qdrant.

    Qdrant has a flat collection namespace, so a database is modelled as a
    collection-name prefix: ``<database>__<collection>``. Databases created
    here that do not hold a collection yet are remembered in-process.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        path: str | None = None,
        api_key: str | None = None,
        prefer_grpc: bool = False,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not url and not path:
            raise ConfigurationError("QdrantVectorStore needs either a server url or a local path.")
        self.url = url
        self.path = path
        self.api_key = api_key
        self.prefer_grpc = prefer_grpc
        self.timeout_seconds = timeout_seconds
        self.backend_name = "qdrant-server" if url else "qdrant-local"
        self._client: QdrantClient | None = None
        self._databases: set[str] = set()
        self._dimensions: dict[str, int] = {}

    @classmethod
    def from_settings(cls, settings: VectorStoreSettings) -> QdrantVectorStore:
        return cls(
            url=settings.url,
            path=settings.path,
            api_key=settings.api_key,
            prefer_grpc=settings.prefer_grpc,
            timeout_seconds=settings.timeout_seconds,
        )

    @property
    def location(self) -> str:
        return self.url or str(self.path)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def health_check(self) -> HealthStatus:
        try:
            databases = self.list_databases()
        except ExternalServiceError as exc:
            return HealthStatus(ok=False, message=str(exc))
        return HealthStatus(ok=True, message=f"{self.backend_name} at {self.location} ({len(databases)} database(s))")

    def list_databases(self) -> list[str]:
        names = self._collection_names()
        found = {name.split(NAMESPACE_SEPARATOR, 1)[0] for name in names if NAMESPACE_SEPARATOR in name}
        return sorted(found | self._databases)

    def create_database(self, name: str) -> None:
        self._validate_database_name(name)
        self._databases.add(name)
        logger.info("Registered database %s", name)

    def list_collections(self, database: str) -> list[str]:
        prefix = f"{database}{NAMESPACE_SEPARATOR}"
        return sorted(name[len(prefix) :] for name in self._collection_names() if name.startswith(prefix))

    def create_collection(self, descriptor: CollectionDescriptor) -> None:
        self._validate_database_name(descriptor.database)
        if descriptor.dimension <= 0:
            raise ConfigurationError("Collection dimension must be positive")
        distance = _DISTANCES.get(descriptor.metric.lower())
        if distance is None:
            raise ConfigurationError(f"Unsupported metric: {descriptor.metric}")

        qualified = self.qualified_name(descriptor.database, descriptor.collection)
        client = self._get_client()
        self._call(
            f"create collection {qualified}",
            client.create_collection,
            collection_name=qualified,
            vectors_config=models.VectorParams(size=descriptor.dimension, distance=distance),
            hnsw_config=models.HnswConfigDiff(
                m=descriptor.index.m,
                ef_construct=descriptor.index.ef_construction,
            ),
        )
        if self.url:
            # Keyword index backs the img_name lookups used by skip-existing loads.
            self._call(
                f"index img_name on {qualified}",
                client.create_payload_index,
                collection_name=qualified,
                field_name="img_name",
                field_schema=models.PayloadSchemaType.KEYWORD,
            )
        self._databases.add(descriptor.database)
        self._dimensions[qualified] = descriptor.dimension
        logger.info("Created collection %s (dim=%d, %s)", qualified, descriptor.dimension, descriptor.metric)

    def drop_collection(self, database: str, collection: str) -> None:
        qualified = self.qualified_name(database, collection)
        self._call(f"drop collection {qualified}", self._get_client().delete_collection, collection_name=qualified)
        self._dimensions.pop(qualified, None)
        self._databases.add(database)
        logger.info("Dropped collection %s", qualified)

    def insert_vectors(self, database: str, collection: str, points: list[VectorPoint]) -> InsertAck:
        if not points:
            return InsertAck(inserted=0)
        qualified = self.qualified_name(database, collection)
        expected = self._collection_dimension(qualified)
        for point in points:
            if expected is not None and len(point.vector) != expected:
                raise ExternalServiceError(
                    f"Collection {qualified} expects dimension {expected}, "
                    f"got {len(point.vector)} for point {point.point_id}"
                )
        self._call(
            f"insert into {qualified}",
            self._get_client().upsert,
            collection_name=qualified,
            wait=True,
            points=[
                models.PointStruct(id=point.point_id, vector=point.vector, payload=point.payload)
                for point in points
            ],
        )
        return InsertAck(inserted=len(points), ids=[point.point_id for point in points])

    def has_vector(self, database: str, collection: str, name: str) -> bool:
        qualified = self.qualified_name(database, collection)
        result = self._call(
            f"lookup {name} in {qualified}",
            self._get_client().count,
            collection_name=qualified,
            count_filter=models.Filter(
                must=[models.FieldCondition(key="img_name", match=models.MatchValue(value=name))]
            ),
            exact=True,
        )
        return int(getattr(result, "count", 0)) > 0

    def count_vectors(self, database: str, collection: str) -> int:
        qualified = self.qualified_name(database, collection)
        result = self._call(f"count {qualified}", self._get_client().count, collection_name=qualified, exact=True)
        return int(getattr(result, "count", 0))

    @staticmethod
    def qualified_name(database: str, collection: str) -> str:
        return f"{database}{NAMESPACE_SEPARATOR}{collection}"

    def _collection_dimension(self, qualified: str) -> int | None:
        if qualified in self._dimensions:
            return self._dimensions[qualified]
        info = self._call(f"describe {qualified}", self._get_client().get_collection, collection_name=qualified)
        params = getattr(getattr(info, "config", None), "params", None)
        size = getattr(getattr(params, "vectors", None), "size", None)
        if size is None:
            return None
        self._dimensions[qualified] = int(size)
        return int(size)

    def _collection_names(self) -> list[str]:
        response = self._call("list collections", self._get_client().get_collections)
        return [collection.name for collection in response.collections]

    def _call(self, description: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except (ConfigurationError, ExternalServiceError):
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Vector store failed to {description}: {exc}") from exc

    def _get_client(self) -> QdrantClient:
        if self._client is not None:
            return self._client
        if self.url:
            self._client = self._call(
                f"connect to {self.url}",
                QdrantClient,
                url=self.url,
                api_key=self.api_key,
                prefer_grpc=self.prefer_grpc,
                timeout=self.timeout_seconds,
            )
        elif self.path == IN_MEMORY:
            self._client = QdrantClient(location=IN_MEMORY)
        else:
            target = Path(str(self.path)).expanduser().resolve()
            target.mkdir(parents=True, exist_ok=True)
            self._client = self._call(f"open local storage {target}", QdrantClient, path=str(target))
        return self._client

    @staticmethod
    def _validate_database_name(name: str) -> None:
        if not name or NAMESPACE_SEPARATOR in name:
            raise ConfigurationError(f"Invalid database name {name!r}: must be non-empty and not contain '__'")
