from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from imgvec.core.config import load_embedding_settings, load_vector_store_settings
from imgvec.infrastructure.embedding.client import ArkEmbeddingClient
from imgvec.infrastructure.vector.qdrant_store import QdrantVectorStore


@dataclass(slots=True)
class CLIContext:
    console: Console
    env_file: Path | None = None

    def embedding_client(self) -> ArkEmbeddingClient:
        return ArkEmbeddingClient(load_embedding_settings())

    def vector_store(self) -> QdrantVectorStore:
        return QdrantVectorStore.from_settings(load_vector_store_settings())
