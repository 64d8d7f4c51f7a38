"""Knowledge-base data models for the SynChat retrieval core.

Defines Pydantic v2 models for chunks at every stage of their life
(raw → embedded → stored), the per-channel search hits returned by a
knowledge store, the merged hybrid search result, and the reports produced
by storage and ingestion.  All models use frozen config: chunks are
immutable once written, and re-ingestion replaces rather than updates them.

Lifecycle of a chunk:

    1. CHUNKING: :class:`~synchat.services.ingestion.chunker.HtmlChunker`
       turns a page into :class:`RawChunk` objects (text + metadata).
    2. EMBEDDING: the embedder attaches a vector → :class:`EmbeddedChunk`.
    3. STORAGE: the knowledge store assigns an id and a tenant →
       :class:`StoredChunk`.
    4. RETRIEVAL: vector and lexical queries return :class:`VectorHit` and
       :class:`LexicalHit`; the hybrid search merges them into
       :class:`SearchResult`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from synchat.utils.text import count_words


# ---------------------------------------------------------------------------
# ChunkMetadata - positional context of a chunk inside its source page.
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Where a chunk came from: the page URL and its ancestor headings."""

    model_config = ConfigDict(frozen=True)

    source_url: str = Field(description="URL of the page the chunk was extracted from.")
    section_hierarchy: list[str] = Field(
        default_factory=list,
        description="Ancestor heading titles, outermost first, e.g. ['Pricing', 'Plans'].",
    )

    @property
    def section_path(self) -> str:
        """Human-readable location, e.g. ``"Pricing > Plans"``."""
        return " > ".join(self.section_hierarchy)


# ---------------------------------------------------------------------------
# Chunk stages
# ---------------------------------------------------------------------------
class RawChunk(BaseModel):
    """A validated text fragment produced by the chunker, not yet embedded."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1, description="Whitespace-normalized chunk content.")
    metadata: ChunkMetadata

    @property
    def word_count(self) -> int:
        return count_words(self.text)


class EmbeddedChunk(BaseModel):
    """A chunk paired with its embedding vector, ready for storage."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    embedding: list[float] = Field(min_length=1)
    metadata: ChunkMetadata


class StoredChunk(BaseModel):
    """A chunk as persisted by a knowledge store (embedding omitted)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Store-assigned identifier.")
    tenant_id: str
    text: str
    metadata: ChunkMetadata


# ---------------------------------------------------------------------------
# Per-channel search hits
# ---------------------------------------------------------------------------
class VectorHit(BaseModel):
    """A row returned by a vector-similarity query."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    metadata: ChunkMetadata
    similarity: float = Field(description="Cosine similarity between query and chunk.")


class LexicalHit(BaseModel):
    """A row returned by a full-text query; *rank* is engine-specific and unbounded."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    metadata: ChunkMetadata
    rank: float = Field(ge=0.0, description="Raw lexical rank as emitted by the store.")


# ---------------------------------------------------------------------------
# SearchResult - one entry of the hybrid ranked list.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A chunk enriched with both channel scores and the combined score.

    Transient: computed per query, never persisted.  A chunk seen by only one
    channel carries ``0.0`` for the other.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    metadata: ChunkMetadata
    vector_score: float = Field(default=0.0, ge=0.0, le=1.0)
    lexical_score: float = Field(default=0.0, ge=0.0, le=1.0)
    hybrid_score: float = Field(default=0.0, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class StoreReport(BaseModel):
    """Outcome of a batched insert: rows written plus per-batch failures."""

    model_config = ConfigDict(frozen=True)

    inserted: int = Field(default=0, ge=0)
    batches: int = Field(default=0, ge=0)
    failed_batches: int = Field(default=0, ge=0)
    failed_rows: int = Field(default=0, ge=0)
    errors: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.failed_batches > 0 and self.inserted > 0


class IngestionReport(BaseModel):
    """Summary of one ``(tenant_id, url)`` ingestion run."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    url: str
    chunks_stored: int = Field(default=0, ge=0)
    chunks_created: int = Field(default=0, ge=0)
    chunks_embedded: int = Field(default=0, ge=0)
    chunks_failed_storage: int = Field(default=0, ge=0)
    deleted_previous: int = Field(default=0, ge=0)
    message: str = ""
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
