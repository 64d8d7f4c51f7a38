"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations may wrap OpenAI ``text-embedding-3-small`` or any
OpenAI-compatible endpoint.  Retry and batching policy lives one level up,
in :class:`~synchat.services.embedding.embedder.Embedder`; providers make
exactly one upstream call per :meth:`IEmbeddingProvider.embed`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider - text-embedding-3-small (requires API key)
# Located in: synchat/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by ingestion and search.

    Embeddings are stored by
    :class:`~synchat.interfaces.knowledge_store.IKnowledgeStore` and compared
    at query time by its vector search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Already-normalized, non-empty text strings.

        Returns
        -------
        list[list[float]]
            Embedding vectors in the same order as *texts*.  Callers must
            verify the count; a provider may return fewer vectors than inputs.

        Raises
        ------
        synchat.utils.errors.RateLimitError
            When the upstream API throttles the request (retryable).
        synchat.utils.errors.ProviderUnavailableError
            On connection errors and timeouts (retryable).
        synchat.utils.errors.EmbeddingError
            On any other API failure (fatal).
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Convenience wrapper around :meth:`embed` for the query-embedding case.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must match the dimension the knowledge store was created with
        (``1536`` for ``text-embedding-3-small``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
