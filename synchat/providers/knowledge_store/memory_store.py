"""In-process knowledge store for tests and local runs.

Mirrors the PostgreSQL store's contract without a database: cosine
similarity is computed with numpy, and lexical rank comes from a BM25+
index (``rank_bm25``) rebuilt lazily per tenant whenever that tenant's
chunks change.  Like ``ts_rank`` with an any-term query, only chunks that
share at least one token with the query are returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count

import numpy as np
import structlog
from rank_bm25 import BM25Plus

from synchat.interfaces.knowledge_store import IKnowledgeStore
from synchat.models.knowledge import (
    ChunkMetadata,
    EmbeddedChunk,
    LexicalHit,
    StoredChunk,
    StoreReport,
    VectorHit,
)
from synchat.utils.errors import KnowledgeStoreError
from synchat.utils.text import tokenize

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "memory"


@dataclass
class _Row:
    id: str
    text: str
    metadata: ChunkMetadata
    vector: np.ndarray
    tokens: list[str]


@dataclass
class _TenantIndex:
    rows: list[_Row] = field(default_factory=list)
    bm25: BM25Plus | None = None
    dirty: bool = True


class MemoryKnowledgeStore(IKnowledgeStore):
    """Dict-of-lists store keyed by tenant; see module docstring."""

    def __init__(self, dimension: int = 1536, insert_batch_size: int = 100) -> None:
        self._dimension = dimension
        self._insert_batch_size = max(1, insert_batch_size)
        self._tenants: dict[str, _TenantIndex] = {}
        self._ids = count(1)
        self._ready = False

    async def initialize(self) -> None:
        self._ready = True

    async def close(self) -> None:
        self._ready = False

    def _tenant(self, tenant_id: str) -> _TenantIndex:
        return self._tenants.setdefault(tenant_id, _TenantIndex())

    async def upsert_chunks(self, tenant_id: str, chunks: list[EmbeddedChunk]) -> StoreReport:
        index = self._tenant(tenant_id)
        accepted = [c for c in chunks if len(c.embedding) == self._dimension]
        rejected = len(chunks) - len(accepted)
        errors = (
            [f"{rejected} chunk(s) rejected: embedding dimension != {self._dimension}"]
            if rejected
            else []
        )
        for chunk in accepted:
            index.rows.append(
                _Row(
                    id=str(next(self._ids)),
                    text=chunk.text,
                    metadata=chunk.metadata,
                    vector=np.asarray(chunk.embedding, dtype=np.float64),
                    tokens=tokenize(chunk.text),
                )
            )
        index.dirty = True
        batches = -(-len(accepted) // self._insert_batch_size)
        logger.debug("memory_chunks_inserted", tenant_id=tenant_id, inserted=len(accepted))
        return StoreReport(
            inserted=len(accepted),
            batches=batches,
            failed_rows=rejected,
            errors=errors,
        )

    async def delete_by_tenant_and_url(self, tenant_id: str, url: str) -> int:
        index = self._tenants.get(tenant_id)
        if index is None:
            return 0
        before = len(index.rows)
        index.rows = [row for row in index.rows if row.metadata.source_url != url]
        deleted = before - len(index.rows)
        if deleted:
            index.dirty = True
        return deleted

    async def vector_search(
        self,
        tenant_id: str,
        query_vector: list[float],
        similarity_threshold: float,
        limit: int,
    ) -> list[VectorHit]:
        if len(query_vector) != self._dimension:
            raise KnowledgeStoreError(
                message=(
                    f"Query vector has dimension {len(query_vector)}, "
                    f"store expects {self._dimension}"
                ),
                provider_name=_PROVIDER_NAME,
            )
        index = self._tenants.get(tenant_id)
        if index is None or not index.rows:
            return []

        matrix = np.vstack([row.vector for row in index.rows])
        query = np.asarray(query_vector, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query / norms, 0.0)

        order = np.argsort(-similarities, kind="stable")
        hits: list[VectorHit] = []
        for position in order:
            similarity = float(similarities[position])
            if similarity < similarity_threshold or len(hits) >= limit:
                break
            row = index.rows[position]
            hits.append(VectorHit(id=row.id, text=row.text, metadata=row.metadata, similarity=similarity))
        return hits

    async def lexical_search(self, tenant_id: str, query_text: str, limit: int) -> list[LexicalHit]:
        index = self._tenants.get(tenant_id)
        query_tokens = tokenize(query_text)
        if index is None or not index.rows or not query_tokens:
            return []

        if index.dirty or index.bm25 is None:
            index.bm25 = BM25Plus([row.tokens or [""] for row in index.rows])
            index.dirty = False

        scores = index.bm25.get_scores(query_tokens)
        wanted = set(query_tokens)
        matches = [
            (float(scores[i]), i)
            for i, row in enumerate(index.rows)
            if wanted.intersection(row.tokens)
        ]
        matches.sort(key=lambda pair: (-pair[0], pair[1]))
        return [
            LexicalHit(
                id=index.rows[i].id,
                text=index.rows[i].text,
                metadata=index.rows[i].metadata,
                rank=max(0.0, score),
            )
            for score, i in matches[:limit]
        ]

    async def count_chunks(self, tenant_id: str, url: str | None = None) -> int:
        return len(await self.list_chunks(tenant_id, url))

    async def list_chunks(self, tenant_id: str, url: str | None = None) -> list[StoredChunk]:
        index = self._tenants.get(tenant_id)
        if index is None:
            return []
        return [
            StoredChunk(id=row.id, tenant_id=tenant_id, text=row.text, metadata=row.metadata)
            for row in index.rows
            if url is None or row.metadata.source_url == url
        ]

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return self._ready
