"""Abstract base class for knowledge-store providers.

Defines the contract for storing per-tenant embedded chunks and querying
them by vector similarity and by lexical full-text rank.  Implementations:

    PostgresKnowledgeStore - pgvector + generated tsvector (production)
    MemoryKnowledgeStore   - numpy cosine + BM25 (tests, local runs)

Every read and write is scoped to exactly one ``tenant_id``; there is no
operation that can return rows from another tenant.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from synchat.models.knowledge import (
    EmbeddedChunk,
    LexicalHit,
    StoredChunk,
    StoreReport,
    VectorHit,
)


class IKnowledgeStore(ABC):
    """Contract for the tenant-scoped chunk store behind hybrid search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create the schema if missing."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections.  Safe to call more than once."""

    @abstractmethod
    async def upsert_chunks(self, tenant_id: str, chunks: list[EmbeddedChunk]) -> StoreReport:
        """Insert *chunks* for *tenant_id* in fixed-size batches.

        Parameters
        ----------
        tenant_id:
            Owner of the chunks.
        chunks:
            Embedded chunks; every embedding must have the store's dimension.

        Returns
        -------
        StoreReport
            Rows inserted plus the failed batches.  A failing batch does not
            roll back batches that already succeeded.
        """

    @abstractmethod
    async def delete_by_tenant_and_url(self, tenant_id: str, url: str) -> int:
        """Delete every chunk of *tenant_id* whose source URL is *url*.

        Returns
        -------
        int
            Number of rows deleted.

        Raises
        ------
        synchat.utils.errors.KnowledgeStoreError
            If the delete fails.
        """

    @abstractmethod
    async def vector_search(
        self,
        tenant_id: str,
        query_vector: list[float],
        similarity_threshold: float,
        limit: int,
    ) -> list[VectorHit]:
        """Return up to *limit* chunks with cosine similarity >= *similarity_threshold*.

        Results are ordered by similarity, highest first.
        """

    @abstractmethod
    async def lexical_search(self, tenant_id: str, query_text: str, limit: int) -> list[LexicalHit]:
        """Return up to *limit* chunks matching any term of *query_text*.

        Results are ordered by the engine's relevance rank, highest first.
        Ranks are non-negative but otherwise unbounded.
        """

    @abstractmethod
    async def count_chunks(self, tenant_id: str, url: str | None = None) -> int:
        """Count the chunks of *tenant_id*, optionally restricted to one URL."""

    @abstractmethod
    async def list_chunks(self, tenant_id: str, url: str | None = None) -> list[StoredChunk]:
        """List the chunks of *tenant_id* in insertion order."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"postgres"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` once :meth:`initialize` has completed."""
