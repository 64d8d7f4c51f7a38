"""Unit tests for the OpenAI-compatible embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from synchat.config.settings import Settings
from synchat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from synchat.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    ProviderUnavailableError,
    RateLimitError,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "embedding_dimension": 1536,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _response(vectors: list[list[float]], order: list[int] | None = None) -> MagicMock:
    order = order if order is not None else list(range(len(vectors)))
    response = MagicMock()
    response.data = [MagicMock(embedding=vectors[i], index=i) for i in order]
    response.usage = MagicMock(total_tokens=42)
    return response


def _client(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = AsyncMock(**create_kwargs)
    return client


class TestOpenAIEmbeddingProvider:
    def test_provider_name_reflects_base_url(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=_client()).get_provider_name() == "openai_embedding"
        compatible = OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:8080/v1"), client=_client())
        assert compatible.get_provider_name() == "openai-compatible_embedding"

    def test_is_available_depends_on_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=_client()).is_available() is True
        assert OpenAIEmbeddingProvider(_settings(openai_api_key=""), client=_client()).is_available() is False

    def test_builds_client_without_sdk_retries(self) -> None:
        with patch(
            "synchat.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
        ) as client_cls:
            OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:8080/v1"))

        kwargs = client_cls.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["base_url"] == "http://localhost:8080/v1"

    @pytest.mark.asyncio
    async def test_missing_key_builds_no_client(self) -> None:
        with patch(
            "synchat.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
        ) as client_cls:
            provider = OpenAIEmbeddingProvider(_settings(openai_api_key=""))

        client_cls.assert_not_called()
        assert provider.is_available() is False
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            await provider.embed(["hello"])

    @pytest.mark.asyncio
    async def test_embed_orders_by_index(self) -> None:
        vectors = [[0.1] * 1536, [0.2] * 1536, [0.3] * 1536]
        client = _client(return_value=_response(vectors, order=[2, 0, 1]))
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        result = await provider.embed(["a", "b", "c"])

        assert [v[0] for v in result] == [0.1, 0.2, 0.3]
        kwargs = client.embeddings.create.await_args.kwargs
        assert kwargs == {"input": ["a", "b", "c"], "model": "text-embedding-3-small"}

    @pytest.mark.asyncio
    async def test_requests_shortened_vectors(self) -> None:
        client = _client(return_value=_response([[0.5] * 256]))
        provider = OpenAIEmbeddingProvider(_settings(embedding_dimension=256), client=client)

        await provider.embed(["a"])

        assert client.embeddings.create.await_args.kwargs["dimensions"] == 256

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self) -> None:
        client = _client(return_value=_response([[0.5] * 768]))
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        with pytest.raises(EmbeddingError, match="1536"):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self) -> None:
        client = _client()
        assert await OpenAIEmbeddingProvider(_settings(), client=client).embed([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_retryable_error(self) -> None:
        error = openai.RateLimitError(
            "slow down", response=httpx.Response(429, request=_REQUEST), body=None
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=error))

        with pytest.raises(RateLimitError) as exc_info:
            await provider.embed(["a"])
        assert exc_info.value.retryable
        assert exc_info.value.provider_name == "openai_embedding"

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_unavailable(self) -> None:
        error = openai.APIConnectionError(request=_REQUEST)
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=error))

        with pytest.raises(ProviderUnavailableError):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_server_error_maps_to_unavailable(self) -> None:
        error = openai.InternalServerError(
            "upstream exploded", response=httpx.Response(503, request=_REQUEST), body=None
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=error))

        with pytest.raises(ProviderUnavailableError):
            await provider.embed(["a"])

    @pytest.mark.asyncio
    async def test_auth_error_is_fatal(self) -> None:
        error = openai.AuthenticationError(
            "bad key", response=httpx.Response(401, request=_REQUEST), body=None
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=error))

        with pytest.raises(EmbeddingError) as exc_info:
            await provider.embed(["a"])
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        client = _client(return_value=_response([[0.7] * 1536]))
        vector = await OpenAIEmbeddingProvider(_settings(), client=client).embed_single("hello")
        assert len(vector) == 1536
