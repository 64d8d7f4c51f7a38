"""Unit tests for PostgresKnowledgeStore against a fake asyncpg pool."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import asyncpg
import pytest

from synchat.models.knowledge import ChunkMetadata, EmbeddedChunk
from synchat.providers.knowledge_store.postgres_store import PostgresKnowledgeStore
from synchat.utils.errors import KnowledgeStoreError

URL = "https://example.com/pricing"


class FakeConnection:
    def __init__(self) -> None:
        self.execute = AsyncMock(return_value="DELETE 0")
        self.executemany = AsyncMock(return_value=None)
        self.fetch = AsyncMock(return_value=[])
        self.fetchval = AsyncMock(return_value=0)
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield


class FakePool:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.close = AsyncMock()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def _chunk(text: str, dim: int = 3) -> EmbeddedChunk:
    return EmbeddedChunk(
        text=text,
        embedding=[0.5] * dim,
        metadata=ChunkMetadata(source_url=URL, section_hierarchy=["Pricing", "Plans"]),
    )


@pytest.fixture()
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture()
def store(conn: FakeConnection) -> PostgresKnowledgeStore:
    return PostgresKnowledgeStore(dimension=3, insert_batch_size=2, pool=FakePool(conn))


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_creates_schema(self, conn: FakeConnection) -> None:
        store = PostgresKnowledgeStore(dimension=3, table="kb_chunks", pool=FakePool(conn))
        await store.initialize()

        ddl = conn.execute.await_args.args[0]
        assert "CREATE EXTENSION IF NOT EXISTS vector" in ddl
        assert "CREATE TABLE IF NOT EXISTS kb_chunks" in ddl
        assert "vector(3)" in ddl
        assert "to_tsvector('english'::regconfig, content)" in ddl
        assert "USING GIN (fts)" in ddl
        assert "vector_cosine_ops" in ddl
        assert store.is_available() is True

    @pytest.mark.asyncio
    async def test_initialize_failure_is_wrapped(self, conn: FakeConnection) -> None:
        conn.execute.side_effect = OSError("connection refused")
        store = PostgresKnowledgeStore(dimension=3, pool=FakePool(conn))

        with pytest.raises(KnowledgeStoreError, match="connection refused"):
            await store.initialize()
        assert store.is_available() is False

    @pytest.mark.asyncio
    async def test_use_before_initialize_raises(self) -> None:
        store = PostgresKnowledgeStore(dimension=3)
        with pytest.raises(KnowledgeStoreError, match="initialize"):
            await store.count_chunks("t1")

    @pytest.mark.asyncio
    async def test_close_leaves_injected_pool_open(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        pool = store._pool
        await store.close()
        pool.close.assert_not_awaited()
        assert store.is_available() is False


class TestUpsert:
    @pytest.mark.asyncio
    async def test_batches_in_transactions(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        report = await store.upsert_chunks("t1", [_chunk(f"chunk {i}") for i in range(5)])

        assert report.inserted == 5
        assert report.batches == 3
        assert report.failed_batches == 0
        assert conn.transactions == 3
        sql, rows = conn.executemany.await_args_list[0].args
        assert "$4::jsonb" in sql and "$5::text::vector" in sql
        tenant, url, text, metadata, vector = rows[0]
        assert (tenant, url, text) == ("t1", URL, "chunk 0")
        assert json.loads(metadata) == {"source_url": URL, "section_hierarchy": ["Pricing", "Plans"]}
        assert vector == "[0.5,0.5,0.5]"

    @pytest.mark.asyncio
    async def test_failed_batch_is_reported_and_skipped(
        self, store: PostgresKnowledgeStore, conn: FakeConnection
    ) -> None:
        conn.executemany.side_effect = [None, asyncpg.InterfaceError("connection lost"), None]

        report = await store.upsert_chunks("t1", [_chunk(f"chunk {i}") for i in range(5)])

        assert report.inserted == 3
        assert report.failed_batches == 1
        assert report.failed_rows == 2
        assert report.partial is True
        assert any("connection lost" in e for e in report.errors)

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected_before_sql(
        self, store: PostgresKnowledgeStore, conn: FakeConnection
    ) -> None:
        report = await store.upsert_chunks("t1", [_chunk("bad", dim=4)])

        assert report.inserted == 0
        assert report.failed_rows == 1
        conn.executemany.assert_not_awaited()


class TestDelete:
    @pytest.mark.asyncio
    async def test_parses_command_tag(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        conn.execute.return_value = "DELETE 3"

        assert await store.delete_by_tenant_and_url("t1", URL) == 3
        sql, tenant, url = conn.execute.await_args.args
        assert "WHERE tenant_id = $1 AND source_url = $2" in sql
        assert (tenant, url) == ("t1", URL)

    @pytest.mark.asyncio
    async def test_failure_raises(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        conn.execute.side_effect = OSError("broken pipe")
        with pytest.raises(KnowledgeStoreError):
            await store.delete_by_tenant_and_url("t1", URL)


class TestReads:
    @pytest.mark.asyncio
    async def test_vector_search(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        conn.fetch.return_value = [
            {
                "id": 7,
                "source_url": URL,
                "content": "Plans start at ten dollars",
                "metadata": json.dumps({"source_url": URL, "section_hierarchy": ["Pricing"]}),
                "similarity": 0.83,
            }
        ]

        hits = await store.vector_search("t1", [0.1, 0.2, 0.3], 0.5, 20)

        assert hits[0].id == "7"
        assert hits[0].similarity == pytest.approx(0.83)
        assert hits[0].metadata.section_hierarchy == ["Pricing"]
        sql, tenant, vector, threshold, limit = conn.fetch.await_args.args
        assert "<=>" in sql and "WHERE tenant_id = $1" in sql
        assert (tenant, vector, threshold, limit) == ("t1", "[0.1,0.2,0.3]", 0.5, 20)

    @pytest.mark.asyncio
    async def test_vector_dimension_mismatch(self, store: PostgresKnowledgeStore) -> None:
        with pytest.raises(KnowledgeStoreError):
            await store.vector_search("t1", [0.1, 0.2], 0.5, 20)

    @pytest.mark.asyncio
    async def test_lexical_search_uses_any_term_query(
        self, store: PostgresKnowledgeStore, conn: FakeConnection
    ) -> None:
        conn.fetch.return_value = [
            {"id": 3, "source_url": URL, "content": "Enterprise onboarding", "metadata": {}, "rank": 0.12},
        ]

        hits = await store.lexical_search("t1", "enterprise onboarding", 20)

        assert hits[0].rank == pytest.approx(0.12)
        assert hits[0].metadata.source_url == URL
        sql = conn.fetch.await_args.args[0]
        assert "plainto_tsquery" in sql and "'&', '|'" in sql
        assert "ts_rank" in sql and "c.tenant_id = $1" in sql

    @pytest.mark.asyncio
    async def test_count_with_url(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        conn.fetchval.return_value = 4
        assert await store.count_chunks("t1", URL) == 4
        sql, *args = conn.fetchval.await_args.args
        assert sql.endswith("AND source_url = $2")
        assert args == ["t1", URL]

    @pytest.mark.asyncio
    async def test_query_failure_is_wrapped(self, store: PostgresKnowledgeStore, conn: FakeConnection) -> None:
        conn.fetch.side_effect = asyncpg.InterfaceError("pool is closed")
        with pytest.raises(KnowledgeStoreError, match="pool is closed"):
            await store.list_chunks("t1")
