"""Tests for the OpenAI-compatible embedding and chat providers."""

import json

import httpx
import pytest

from reposcribe.core.exceptions import ProviderError
from reposcribe.providers.embeddings.openai_provider import OpenAIEmbeddingProvider
from reposcribe.providers.llm.openai_llm_provider import OpenAILLMProvider


def _embedding_transport(requests: list[dict], reverse: bool = False) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append(body)
        data = [
            {"index": i, "embedding": [float(len(text)), 1.0]}
            for i, text in enumerate(body["input"])
        ]
        if reverse:
            data.reverse()
        return httpx.Response(200, json={"data": data})

    return httpx.MockTransport(handler)


class TestOpenAIEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_batches_and_preserves_order(self):
        requests: list[dict] = []
        provider = OpenAIEmbeddingProvider(
            api_key="sk-test", batch_size=2, transport=_embedding_transport(requests, reverse=True)
        )
        vectors = await provider.embed(["a", "bb", "ccc"])

        assert vectors == [[1.0, 1.0], [2.0, 1.0], [3.0, 1.0]]
        assert [r["input"] for r in requests] == [["a", "bb"], ["ccc"]]
        assert requests[0]["model"] == "text-embedding-3-small"

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        provider = OpenAIEmbeddingProvider(api_key=None)
        with pytest.raises(ProviderError, match="API key"):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_templated_base_url_rejected(self):
        provider = OpenAIEmbeddingProvider(api_key="sk-test", base_url="${OPENAI_BASE_URL}")
        with pytest.raises(ProviderError, match="plain URL"):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_unauthorized_adds_hint(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="bad key"))
        provider = OpenAIEmbeddingProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ProviderError) as exc_info:
            await provider.embed(["a"])
        assert exc_info.value.status_code == 401
        assert "API key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_short_response_is_rejected(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"data": [{"embedding": [1.0]}]})
        )
        provider = OpenAIEmbeddingProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ProviderError, match="shape"):
            await provider.embed(["a", "b"])


class TestOpenAILLMProvider:
    @pytest.mark.asyncio
    async def test_completion_request_and_response(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": '{"body": "ok"}'}, "finish_reason": "stop"}],
                    "usage": {"total_tokens": 42},
                },
            )

        provider = OpenAILLMProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
        response = await provider.complete("hello", system="be brief", max_completion_tokens=50)

        assert response.content == '{"body": "ok"}'
        assert response.tokens_used == 42
        assert response.finish_reason == "stop"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["max_tokens"] == 50
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_server_error_becomes_provider_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
        provider = OpenAILLMProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ProviderError) as exc_info:
            await provider.complete("hello")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_malformed_completion(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
        provider = OpenAILLMProvider(api_key="sk-test", transport=transport)
        with pytest.raises(ProviderError, match="shape"):
            await provider.complete("hello")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with pytest.raises(ProviderError):
            await OpenAILLMProvider(api_key=None).complete("hello")
