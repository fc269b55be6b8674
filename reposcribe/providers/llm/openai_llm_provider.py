"""OpenAI-compatible chat completion provider over httpx."""

from __future__ import annotations

import json

import httpx
from loguru import logger

from reposcribe.core.config.llm_config import LLMConfig
from reposcribe.core.exceptions import ProviderError
from reposcribe.interfaces.llm_provider import LLMProvider, LLMResponse


class OpenAILLMProvider(LLMProvider):
    """Chat completions provider requesting JSON object responses."""

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        temperature: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = timeout
        self._temperature = temperature
        self._transport = transport

        # Usage tracking
        self._requests_made = 0
        self._tokens_used = 0

    @classmethod
    def from_config(cls, config: LLMConfig) -> "OpenAILLMProvider":
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return cls(
            api_key=api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=float(config.timeout_seconds),
            temperature=config.temperature,
        )

    @property
    def name(self) -> str:
        """Provider name."""
        return "openai"

    @property
    def model(self) -> str:
        """Model name."""
        return self._model

    async def complete(
        self,
        prompt: str,
        system: str | None = None,
        max_completion_tokens: int = 1024,
        timeout: float | None = None,
    ) -> LLMResponse:
        """Generate a completion for the given prompt.

        Args:
            prompt: The user prompt
            system: Optional system prompt
            max_completion_tokens: Maximum tokens to generate
            timeout: Optional timeout in seconds overriding the provider default

        Returns:
            LLMResponse with content and metadata
        """
        if not self._api_key:
            raise ProviderError("An LLM API key is required (set OPENAI_API_KEY).")

        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        body = {
            "model": self._model,
            "temperature": self._temperature,
            "max_tokens": max_completion_tokens,
            "response_format": {"type": "json_object"},
            "messages": messages,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=float(timeout or self._timeout),
                transport=self._transport,
            ) as client:
                resp = await client.post("/chat/completions", headers=headers, json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"LLM completion failed with HTTP {status}")
            raise ProviderError(
                f"LLM request failed {status} {e.response.text[:500]}".strip(),
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"LLM request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise ProviderError("LLM response was not valid JSON.") from e

        try:
            choice = data["choices"][0]
            content = choice["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Invalid chat completion response shape.") from e

        usage = data.get("usage") or {}
        tokens = int(usage.get("total_tokens", 0))
        self._requests_made += 1
        self._tokens_used += tokens

        return LLMResponse(
            content=content,
            tokens_used=tokens,
            model=self._model,
            finish_reason=choice.get("finish_reason"),
        )
