"""PostgreSQL knowledge store with pgvector and full-text search.

One table holds every tenant's chunks.  Vector similarity is computed
server-side with pgvector's cosine-distance operator (``<=>``); lexical
relevance comes from ``ts_rank`` over a generated ``tsvector`` column, so
the full-text index is always in sync with the stored text.

Schema (table name and text-search config are configurable)::

    knowledge_chunks
      id          BIGSERIAL PRIMARY KEY
      tenant_id   TEXT NOT NULL
      source_url  TEXT NOT NULL
      content     TEXT NOT NULL
      metadata    JSONB          -- {"source_url": ..., "section_hierarchy": [...]}
      embedding   vector(<dim>)
      fts         tsvector GENERATED ALWAYS AS (to_tsvector(<config>, content)) STORED
      created_at  TIMESTAMPTZ

Vectors are sent as pgvector text literals (``'[0.1,0.2,...]'``) and cast
in SQL, so no custom asyncpg codec has to be registered.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import asyncpg
import structlog

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

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER_NAME = "postgres"

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _vector_literal(vector: Sequence[float]) -> str:
    return "[" + ",".join(repr(float(value)) for value in vector) + "]"


def _parse_delete_status(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3".
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


def _metadata_from_row(raw: Any, source_url: str) -> ChunkMetadata:
    data = json.loads(raw) if isinstance(raw, (str, bytes)) else dict(raw or {})
    return ChunkMetadata(
        source_url=data.get("source_url", source_url),
        section_hierarchy=list(data.get("section_hierarchy", [])),
    )


class PostgresKnowledgeStore(IKnowledgeStore):
    """Knowledge store backed by PostgreSQL + pgvector via an asyncpg pool.

    Parameters
    ----------
    dsn:
        libpq connection string.
    dimension:
        Embedding size; fixed for the lifetime of the table.
    table:
        Table name (must be a plain identifier).
    text_search_config:
        PostgreSQL text-search configuration for the ``fts`` column.
    insert_batch_size:
        Rows per insert transaction.
    pool:
        Pre-built pool; when given, :meth:`initialize` only ensures the schema
        and :meth:`close` leaves the pool open.
    """

    def __init__(
        self,
        dsn: str = "",
        dimension: int = 1536,
        table: str = "knowledge_chunks",
        text_search_config: str = "english",
        insert_batch_size: int = 100,
        min_connections: int = 1,
        max_connections: int = 10,
        command_timeout: float = 60.0,
        pool: Any | None = None,
    ) -> None:
        self._dsn = dsn
        self._dimension = dimension
        self._table = table
        self._ts_config = text_search_config
        self._insert_batch_size = max(1, insert_batch_size)
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._command_timeout = command_timeout
        self._owns_pool = pool is None
        self._pool = pool
        self._schema_ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create the pool (if needed), the pgvector extension and the table."""
        try:
            if self._pool is None:
                self._pool = await asyncpg.create_pool(
                    dsn=self._dsn,
                    min_size=self._min_connections,
                    max_size=self._max_connections,
                    command_timeout=self._command_timeout,
                )
                logger.info("postgres_pool_initialized", table=self._table)
            async with self._pool.acquire() as conn:
                await conn.execute(self._schema_sql())
        except _DB_ERRORS as exc:
            raise KnowledgeStoreError(
                message=f"Failed to initialize knowledge store: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        self._schema_ready = True
        logger.info("knowledge_schema_ensured", table=self._table, dimension=self._dimension)

    async def close(self) -> None:
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            logger.info("postgres_pool_closed")
            self._pool = None
        self._schema_ready = False

    def _schema_sql(self) -> str:
        t = self._table
        return f"""
        CREATE EXTENSION IF NOT EXISTS vector;
        CREATE TABLE IF NOT EXISTS {t} (
            id          BIGSERIAL PRIMARY KEY,
            tenant_id   TEXT NOT NULL,
            source_url  TEXT NOT NULL,
            content     TEXT NOT NULL CHECK (content <> ''),
            metadata    JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            embedding   vector({self._dimension}) NOT NULL,
            fts         tsvector GENERATED ALWAYS AS
                            (to_tsvector('{self._ts_config}'::regconfig, content)) STORED,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        CREATE INDEX IF NOT EXISTS {t}_tenant_url_idx ON {t} (tenant_id, source_url);
        CREATE INDEX IF NOT EXISTS {t}_fts_idx ON {t} USING GIN (fts);
        CREATE INDEX IF NOT EXISTS {t}_embedding_idx ON {t}
            USING hnsw (embedding vector_cosine_ops);
        """

    def _require_pool(self) -> Any:
        if self._pool is None:
            raise KnowledgeStoreError(
                message="Knowledge store used before initialize()",
                provider_name=_PROVIDER_NAME,
            )
        return self._pool

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_chunks(self, tenant_id: str, chunks: list[EmbeddedChunk]) -> StoreReport:
        """Insert *chunks* in transactions of ``insert_batch_size`` rows.

        Rows whose embedding has the wrong dimension are rejected before any
        SQL runs.  A failed batch is recorded and skipped; earlier batches stay
        committed.
        """
        pool = self._require_pool()
        errors: list[str] = []
        rows: list[tuple[str, str, str, str, str]] = []
        rejected = 0
        for chunk in chunks:
            if len(chunk.embedding) != self._dimension:
                rejected += 1
                continue
            rows.append(
                (
                    tenant_id,
                    chunk.metadata.source_url,
                    chunk.text,
                    json.dumps(chunk.metadata.model_dump()),
                    _vector_literal(chunk.embedding),
                )
            )
        if rejected:
            errors.append(f"{rejected} chunk(s) rejected: embedding dimension != {self._dimension}")
            logger.warning("chunks_rejected_dimension", tenant_id=tenant_id, count=rejected)

        sql = (
            f"INSERT INTO {self._table} (tenant_id, source_url, content, metadata, embedding) "
            "VALUES ($1, $2, $3, $4::jsonb, $5::text::vector)"
        )
        inserted = batches = failed_batches = failed_rows = 0
        for start in range(0, len(rows), self._insert_batch_size):
            batch = rows[start : start + self._insert_batch_size]
            batches += 1
            try:
                async with pool.acquire() as conn:
                    async with conn.transaction():
                        await conn.executemany(sql, batch)
            except _DB_ERRORS as exc:
                failed_batches += 1
                failed_rows += len(batch)
                errors.append(f"batch {batches}: {exc}")
                logger.error(
                    "chunk_batch_insert_failed",
                    tenant_id=tenant_id,
                    batch=batches,
                    rows=len(batch),
                    error=str(exc),
                )
                continue
            inserted += len(batch)

        logger.info(
            "chunks_inserted",
            tenant_id=tenant_id,
            inserted=inserted,
            batches=batches,
            failed_batches=failed_batches,
        )
        return StoreReport(
            inserted=inserted,
            batches=batches,
            failed_batches=failed_batches,
            failed_rows=failed_rows + rejected,
            errors=errors,
        )

    async def delete_by_tenant_and_url(self, tenant_id: str, url: str) -> int:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                status = await conn.execute(
                    f"DELETE FROM {self._table} WHERE tenant_id = $1 AND source_url = $2",
                    tenant_id,
                    url,
                )
        except _DB_ERRORS as exc:
            raise KnowledgeStoreError(
                message=f"Delete failed for {url}: {exc}",
                provider_name=_PROVIDER_NAME,
            ) from exc
        deleted = _parse_delete_status(status)
        logger.info("chunks_deleted", tenant_id=tenant_id, url=url, deleted=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

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
        sql = f"""
            SELECT id, source_url, content, metadata,
                   1 - (embedding <=> $2::text::vector) AS similarity
            FROM {self._table}
            WHERE tenant_id = $1
              AND 1 - (embedding <=> $2::text::vector) >= $3
            ORDER BY embedding <=> $2::text::vector
            LIMIT $4
        """
        rows = await self._fetch(sql, tenant_id, _vector_literal(query_vector), similarity_threshold, limit)
        return [
            VectorHit(
                id=str(row["id"]),
                text=row["content"],
                metadata=_metadata_from_row(row["metadata"], row["source_url"]),
                similarity=float(row["similarity"]),
            )
            for row in rows
        ]

    async def lexical_search(self, tenant_id: str, query_text: str, limit: int) -> list[LexicalHit]:
        # plainto_tsquery ANDs the terms; swapping '&' for '|' gives any-term matching.
        cfg = f"'{self._ts_config}'::regconfig"
        sql = f"""
            SELECT c.id, c.source_url, c.content, c.metadata, ts_rank(c.fts, q.query) AS rank
            FROM {self._table} AS c,
                 to_tsquery({cfg}, replace(plainto_tsquery({cfg}, $2)::text, '&', '|')) AS q(query)
            WHERE c.tenant_id = $1
              AND c.fts @@ q.query
            ORDER BY rank DESC, c.id
            LIMIT $3
        """
        rows = await self._fetch(sql, tenant_id, query_text, limit)
        return [
            LexicalHit(
                id=str(row["id"]),
                text=row["content"],
                metadata=_metadata_from_row(row["metadata"], row["source_url"]),
                rank=max(0.0, float(row["rank"])),
            )
            for row in rows
        ]

    async def count_chunks(self, tenant_id: str, url: str | None = None) -> int:
        pool = self._require_pool()
        sql = f"SELECT count(*) FROM {self._table} WHERE tenant_id = $1"
        args: list[Any] = [tenant_id]
        if url is not None:
            sql += " AND source_url = $2"
            args.append(url)
        try:
            async with pool.acquire() as conn:
                return int(await conn.fetchval(sql, *args))
        except _DB_ERRORS as exc:
            raise KnowledgeStoreError(message=f"Count failed: {exc}", provider_name=_PROVIDER_NAME) from exc

    async def list_chunks(self, tenant_id: str, url: str | None = None) -> list[StoredChunk]:
        sql = f"SELECT id, tenant_id, source_url, content, metadata FROM {self._table} WHERE tenant_id = $1"
        args: list[Any] = [tenant_id]
        if url is not None:
            sql += " AND source_url = $2"
            args.append(url)
        sql += " ORDER BY id"
        rows = await self._fetch(sql, *args)
        return [
            StoredChunk(
                id=str(row["id"]),
                tenant_id=row["tenant_id"],
                text=row["content"],
                metadata=_metadata_from_row(row["metadata"], row["source_url"]),
            )
            for row in rows
        ]

    async def _fetch(self, sql: str, *args: Any) -> list[Any]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return list(await conn.fetch(sql, *args))
        except _DB_ERRORS as exc:
            raise KnowledgeStoreError(message=f"Query failed: {exc}", provider_name=_PROVIDER_NAME) from exc

    def get_provider_name(self) -> str:
        return _PROVIDER_NAME

    def is_available(self) -> bool:
        return self._pool is not None and self._schema_ready
