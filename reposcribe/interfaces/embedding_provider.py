"""Embedding provider interface."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Turns texts into fixed-length float vectors."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Embedding model identifier."""

    @property
    def batch_size(self) -> int:
        """Maximum texts per request."""
        return 64

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, returning one vector per input in input order.

        Raises:
            ProviderError: When the request fails or the response is malformed
        """
