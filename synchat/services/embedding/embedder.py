"""Batching and retry layer over an :class:`IEmbeddingProvider`.

The provider makes one upstream call per request and reports failures as
exceptions.  The embedder owns the policy around it:

* input is normalized (newlines to spaces, whitespace collapsed); text that is
  empty afterwards fails locally without a provider call,
* batches of ``batch_size`` run sequentially with ``batch_delay`` seconds
  between them,
* rate limits and connection failures are retried with exponential backoff
  (``retry_base_delay * 2**attempt``) up to ``max_retries`` times,
* a batch whose response has the wrong number of vectors, or that fails
  fatally, yields ``None`` for each of its positions; sibling batches still run.
"""

from __future__ import annotations

import asyncio

import structlog

from synchat.interfaces.embedding_provider import IEmbeddingProvider
from synchat.models.result import ErrorKind, Result
from synchat.utils.errors import EmbeddingError, SynChatError
from synchat.utils.text import normalize_whitespace

logger = structlog.get_logger(logger_name=__name__)


class Embedder:
    """Embeds single queries and chunk batches through an injected provider."""

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = 20,
        batch_delay: float = 0.5,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._provider = provider
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._max_retries = max(0, max_retries)
        self._retry_base_delay = retry_base_delay

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    async def embed_text(self, text: str) -> Result[list[float]]:
        """Embed one text, typically a search query."""
        normalized = normalize_whitespace(text or "")
        if not normalized:
            return Result.failure(ErrorKind.INVALID_INPUT, "Cannot embed empty text")
        try:
            vectors = await self._call_with_retry([normalized])
        except SynChatError as exc:
            logger.warning("query_embedding_failed", error=str(exc))
            return Result.from_exception(exc, "Query embedding failed")
        if len(vectors) != 1:
            return Result.failure(
                ErrorKind.UPSTREAM_FATAL,
                f"Embedding provider returned {len(vectors)} vectors for 1 input",
            )
        return Result.success(vectors[0])

    async def embed_batch(self, texts: list[str]) -> list[list[float] | None]:
        """Embed *texts*; the result has one entry per input, ``None`` where embedding failed."""
        results: list[list[float] | None] = [None] * len(texts)
        normalized = [normalize_whitespace(text or "") for text in texts]
        # Empty inputs never reach the provider.
        positions = [i for i, text in enumerate(normalized) if text]
        total_batches = -(-len(positions) // self._batch_size)

        for batch_number, start in enumerate(range(0, len(positions), self._batch_size), start=1):
            if batch_number > 1 and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

            batch_positions = positions[start : start + self._batch_size]
            batch_texts = [normalized[i] for i in batch_positions]
            try:
                vectors = await self._call_with_retry(batch_texts)
            except SynChatError as exc:
                logger.error(
                    "embedding_batch_failed",
                    batch=batch_number,
                    total_batches=total_batches,
                    size=len(batch_texts),
                    error=str(exc),
                )
                continue

            if len(vectors) != len(batch_texts):
                logger.warning(
                    "embedding_batch_count_mismatch",
                    batch=batch_number,
                    expected=len(batch_texts),
                    received=len(vectors),
                )
                continue

            for position, vector in zip(batch_positions, vectors):
                results[position] = vector

        embedded = sum(1 for vector in results if vector is not None)
        logger.info("embedding_batch_complete", requested=len(texts), embedded=embedded)
        return results

    async def _call_with_retry(self, texts: list[str]) -> list[list[float]]:
        attempt = 0
        while True:
            try:
                return await self._provider.embed(texts)
            except SynChatError as exc:
                if not exc.retryable or attempt >= self._max_retries:
                    raise
                delay = self._retry_base_delay * (2**attempt)
                attempt += 1
                logger.warning(
                    "embedding_retry",
                    attempt=attempt,
                    max_retries=self._max_retries,
                    delay=delay,
                    error=str(exc),
                )
                await asyncio.sleep(delay)
            except (TypeError, ValueError) as exc:
                # Malformed provider responses surface as plain Python errors.
                raise EmbeddingError(
                    message=f"Malformed embedding response: {exc}",
                    provider_name=self._provider.get_provider_name(),
                ) from exc
