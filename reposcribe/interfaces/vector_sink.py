"""Vector store mirror interface."""

from abc import ABC, abstractmethod
from typing import Any


class VectorSink(ABC):
    """Write-only mirror of an embedding index into an external vector store."""

    @abstractmethod
    async def ensure_collection(self, name: str) -> str:
        """Return the id of collection `name`, creating it when missing."""

    @abstractmethod
    async def add(
        self,
        collection: str,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Add one batch of records to a collection."""
