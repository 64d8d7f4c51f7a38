"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers via custom
``base_url`` and model name settings.

The SDK's own retry loop is disabled (``max_retries=0``): rate limits and
connection failures are surfaced as :class:`RateLimitError` /
:class:`ProviderUnavailableError` so the embedder applies one consistent
backoff policy.
"""

from __future__ import annotations

import openai
import structlog

from synchat.config.settings import Settings
from synchat.interfaces.embedding_provider import IEmbeddingProvider
from synchat.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    ProviderUnavailableError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)

# Native output sizes of known embedding models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

# Models that accept the ``dimensions`` request parameter.
_SHORTENABLE_PREFIX = "text-embedding-3"


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  When
    ``embedding_dimension`` is smaller than the model's native size and the
    model supports it, shortened vectors are requested from the API.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = settings.embedding_dimension
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

        # AsyncOpenAI rejects an empty key, so no client is built without one.
        if client is None and self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": settings.embedding_request_timeout,
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client

        native = _MODEL_DIMENSIONS.get(self._model)
        self._request_dimensions = (
            self._dimension
            if self._model.startswith(_SHORTENABLE_PREFIX) and native and self._dimension != native
            else None
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* with a single API call.

        The response items are re-ordered by their ``index`` field; the
        caller is responsible for checking that one vector came back per input.
        """
        if not texts:
            return []
        if self._client is None:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not set",
                provider_name=self.get_provider_name(),
            )

        request: dict = {"input": texts, "model": self._model}
        if self._request_dimensions:
            request["dimensions"] = self._request_dimensions

        try:
            response = await self._client.embeddings.create(**request)
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"Rate limited by embeddings API: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (openai.APIConnectionError, openai.InternalServerError) as exc:
            raise ProviderUnavailableError(
                message=f"Embeddings API unreachable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        vectors = [item.embedding for item in sorted(response.data, key=lambda item: item.index)]
        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingError(
                    message=(
                        f"Expected {self._dimension}-dimensional vectors from "
                        f"{self._model}, got {len(vector)}"
                    ),
                    provider_name=self.get_provider_name(),
                )

        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(texts),
            returned=len(vectors),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        if not result:
            raise EmbeddingError(
                message="Embeddings API returned no vector",
                provider_name=self.get_provider_name(),
            )
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
