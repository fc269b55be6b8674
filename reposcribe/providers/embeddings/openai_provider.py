"""OpenAI-compatible embedding provider over httpx.

Posts batches to ``{base_url}/embeddings`` and validates the response shape
before returning vectors in input order.
"""

from __future__ import annotations

import json
import re

import httpx
from loguru import logger

from reposcribe.core.config.embedding_config import EmbeddingConfig
from reposcribe.core.exceptions import ProviderError
from reposcribe.interfaces.embedding_provider import EmbeddingProvider

_PLAIN_URL = re.compile(r"^https?://")
_AUTH_HINT = "Check the API key and account/project permissions for embeddings."


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embedding provider for the OpenAI embeddings API and compatible servers."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        batch_size: int = 64,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or "").rstrip("/")
        self._batch_size = max(1, batch_size)
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "OpenAIEmbeddingProvider":
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return cls(
            api_key=api_key,
            model=config.model,
            base_url=config.base_url,
            batch_size=config.batch_size,
            timeout=float(config.timeout_seconds),
        )

    @property
    def name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def _validate_settings(self) -> None:
        if not self._api_key:
            raise ProviderError(
                "An embedding API key is required (set OPENAI_API_KEY or "
                "REPOSCRIBE_EMBEDDING__API_KEY)."
            )
        if not _PLAIN_URL.match(self._base_url) or "${" in self._base_url:
            raise ProviderError(
                "Set the embedding base URL to a plain URL like https://api.openai.com/v1"
            )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in batches of ``batch_size``."""
        self._validate_settings()
        if not texts:
            return []

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        out: list[list[float]] = []
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            for i in range(0, len(texts), self._batch_size):
                batch = texts[i : i + self._batch_size]
                out.extend(await self._embed_batch(client, batch))
        logger.debug(f"Embedded {len(texts)} texts with {self._model}")
        return out

    async def _embed_batch(
        self, client: httpx.AsyncClient, batch: list[str]
    ) -> list[list[float]]:
        try:
            resp = await client.post(
                "/embeddings", json={"model": self._model, "input": batch}
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:500]
            hint = f" {_AUTH_HINT}" if status == 401 else ""
            raise ProviderError(
                f"Embeddings request failed {status} {body}{hint}".strip(),
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Embeddings request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise ProviderError("Embeddings response was not valid JSON.") from e

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or len(data) != len(batch):
            raise ProviderError("Invalid embeddings response shape.")

        # Servers may return items out of order; honor the index field when present
        if all(isinstance(item, dict) and "index" in item for item in data):
            data = sorted(data, key=lambda item: item["index"])

        vectors: list[list[float]] = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list) or not embedding:
                raise ProviderError("Missing embedding array.")
            vectors.append([float(x) for x in embedding])
        return vectors
