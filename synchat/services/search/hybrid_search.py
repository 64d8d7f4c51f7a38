"""Hybrid retrieval: vector similarity and lexical rank merged into one list.

For one query and one tenant:

1. Embed the query.  If embedding fails the search continues lexical-only.
2. Run the vector and lexical store queries concurrently.
3. Merge hits by chunk id, keeping the best score seen from each channel.
4. Normalize lexical ranks to ``[0, 1]`` by the largest rank in the set.
5. ``hybrid = vector_weight * vector_score + lexical_weight * lexical_score``.
6. Sort by hybrid score (stable, so vector hits win ties) and truncate.

A channel that raises is logged and treated as empty; only when every
attempted channel fails is the search itself a failure.  No matches is an
empty successful result.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass

import structlog

from synchat.interfaces.knowledge_store import IKnowledgeStore
from synchat.models.knowledge import ChunkMetadata, LexicalHit, SearchResult, VectorHit
from synchat.models.result import ErrorKind, Result
from synchat.services.embedding.embedder import Embedder

logger = structlog.get_logger(logger_name=__name__)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass
class _Candidate:
    id: str
    text: str
    metadata: ChunkMetadata
    vector_score: float = 0.0
    lexical_score: float = 0.0


def merge_hits(
    vector_hits: list[VectorHit],
    lexical_hits: list[LexicalHit],
    vector_weight: float = 0.5,
    lexical_weight: float = 0.5,
    limit: int = 5,
) -> list[SearchResult]:
    """Combine per-channel hits into a ranked, truncated list of results.

    Duplicate ids within a channel keep the maximum score; scores from the two
    channels are weighted, never summed raw.  Missing evidence counts as 0.
    """
    candidates: dict[str, _Candidate] = {}

    for hit in vector_hits:
        candidate = candidates.setdefault(hit.id, _Candidate(hit.id, hit.text, hit.metadata))
        candidate.vector_score = max(candidate.vector_score, _clamp(hit.similarity))

    max_rank = max((hit.rank for hit in lexical_hits), default=0.0)
    for hit in lexical_hits:
        normalized = _clamp(hit.rank / max_rank) if max_rank > 0 else 0.0
        candidate = candidates.setdefault(hit.id, _Candidate(hit.id, hit.text, hit.metadata))
        candidate.lexical_score = max(candidate.lexical_score, normalized)

    results = [
        SearchResult(
            id=c.id,
            text=c.text,
            metadata=c.metadata,
            vector_score=c.vector_score,
            lexical_score=c.lexical_score,
            hybrid_score=_clamp(vector_weight * c.vector_score + lexical_weight * c.lexical_score),
        )
        for c in candidates.values()
        if c.id or c.text
    ]
    results.sort(key=lambda result: result.hybrid_score, reverse=True)
    return results[: max(0, limit)]


class HybridSearchService:
    """Tenant-scoped hybrid search over an :class:`IKnowledgeStore`.

    Parameters
    ----------
    embedder:
        Used to embed the query text.
    store:
        Knowledge store providing vector and lexical queries.
    similarity_threshold:
        Minimum cosine similarity for a vector hit.
    vector_weight, lexical_weight:
        Score weights; must sum to 1.
    result_limit:
        Maximum number of merged results returned.
    candidate_limit:
        Rows fetched from each channel before merging.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: IKnowledgeStore,
        similarity_threshold: float = 0.5,
        vector_weight: float = 0.5,
        lexical_weight: float = 0.5,
        result_limit: int = 5,
        candidate_limit: int = 20,
    ) -> None:
        if not math.isclose(vector_weight + lexical_weight, 1.0, abs_tol=1e-9):
            raise ValueError("vector_weight + lexical_weight must equal 1")
        if result_limit < 1:
            raise ValueError("result_limit must be at least 1")
        self._embedder = embedder
        self._store = store
        self._similarity_threshold = similarity_threshold
        self._vector_weight = vector_weight
        self._lexical_weight = lexical_weight
        self._result_limit = result_limit
        self._candidate_limit = max(candidate_limit, result_limit)

    async def search(
        self, tenant_id: str, query_text: str, limit: int | None = None
    ) -> Result[list[SearchResult]]:
        """Return the chunks of *tenant_id* most relevant to *query_text*."""
        if not tenant_id or not tenant_id.strip():
            return Result.failure(ErrorKind.INVALID_INPUT, "tenant_id is required")
        if not query_text or not query_text.strip():
            return Result.failure(ErrorKind.INVALID_INPUT, "query text is empty")
        result_limit = limit if limit is not None and limit > 0 else self._result_limit

        started = time.perf_counter()
        log = logger.bind(tenant_id=tenant_id)

        embedding = await self._embedder.embed_text(query_text)
        if not embedding.ok:
            log.warning("search_vector_channel_skipped", reason=embedding.message)

        channels = {"lexical": self._store.lexical_search(tenant_id, query_text, self._candidate_limit)}
        if embedding.ok:
            channels["vector"] = self._store.vector_search(
                tenant_id,
                embedding.unwrap(),
                self._similarity_threshold,
                self._candidate_limit,
            )

        outcomes = await asyncio.gather(*channels.values(), return_exceptions=True)

        hits: dict[str, list] = {"vector": [], "lexical": []}
        errors: list[BaseException] = []
        for name, outcome in zip(channels, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                errors.append(outcome)
                log.error("search_channel_failed", channel=name, error=str(outcome))
                continue
            hits[name] = outcome

        if len(errors) == len(channels):
            return Result.failure(
                ErrorKind.from_exception(errors[0]),
                "All search channels failed: " + "; ".join(str(e) for e in errors),
            )

        results = merge_hits(
            hits["vector"],
            hits["lexical"],
            self._vector_weight,
            self._lexical_weight,
            result_limit,
        )
        log.info(
            "search_completed",
            vector_hits=len(hits["vector"]),
            lexical_hits=len(hits["lexical"]),
            results=len(results),
            degraded=bool(errors) or not embedding.ok,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return Result.success(results)
