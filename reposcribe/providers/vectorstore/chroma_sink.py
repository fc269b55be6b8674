"""Chroma mirror of the flat embedding index.

The chromadb client is synchronous; every call is offloaded to a thread.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any

import chromadb
from loguru import logger

from reposcribe.core.config.embedding_config import EmbeddingConfig
from reposcribe.interfaces.vector_sink import VectorSink

# Collection handles kept between calls; older ones are re-fetched on demand
MAX_CACHED_COLLECTIONS = 8


class ChromaVectorSink(VectorSink):
    """Mirror chunks into a Chroma server, one collection per repository hash."""

    def __init__(self, host: str = "localhost", port: int = 8000, client: Any = None):
        self._host = host
        self._port = port
        self._client = client
        self._collections: OrderedDict[str, Any] = OrderedDict()

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "ChromaVectorSink":
        return cls(host=config.chroma_host, port=config.chroma_port)

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = chromadb.HttpClient(host=self._host, port=self._port)
        return self._client

    def cached_collections(self) -> list[str]:
        return list(self._collections)

    def _remember(self, name: str, collection: Any) -> None:
        self._collections[name] = collection
        self._collections.move_to_end(name)
        while len(self._collections) > MAX_CACHED_COLLECTIONS:
            self._collections.popitem(last=False)

    async def ensure_collection(self, name: str) -> str:
        def _ensure() -> Any:
            return self._get_client().get_or_create_collection(
                name=name, metadata={"hnsw:space": "cosine"}
            )

        collection = await asyncio.to_thread(_ensure)
        self._remember(name, collection)
        logger.debug(f"Chroma collection ready: {name}")
        return name

    async def add(
        self,
        collection: str,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        target = self._collections.get(collection)
        if target is None:
            await self.ensure_collection(collection)
            target = self._collections[collection]
        else:
            self._collections.move_to_end(collection)
        # Chroma rejects None metadata values
        cleaned = [{k: v for k, v in m.items() if v is not None} for m in metadatas]
        await asyncio.to_thread(
            target.add,
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=cleaned,
        )
