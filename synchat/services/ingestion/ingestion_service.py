"""Orchestrator for the website ingestion pipeline.

Pipeline stages: **delete -> fetch -> chunk -> embed -> store**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates four collaborators (content fetcher, chunker, embedder,
knowledge store) without any of them knowing about each other.  All of them
are injected via the constructor.

Each run is stage-gated:

    1. Delete -- best-effort removal of the chunks previously stored for the
       same (tenant, url); a failure here is logged, not fatal.
    2. Fetch -- any network error or non-2xx status fails the job.
    3. Chunk -- zero chunks is a success with an empty report.
    4. Embed -- zero vectors from a non-empty chunk set fails the job.
    5. Store -- partial batch failures are reported; nothing is rolled back.

Because step 1 clears the previous run, re-ingesting the same URL never
accumulates duplicate chunks.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from synchat.interfaces.content_fetcher import IContentFetcher
from synchat.interfaces.knowledge_store import IKnowledgeStore
from synchat.models.knowledge import EmbeddedChunk, IngestionReport
from synchat.models.result import ErrorKind, Result
from synchat.services.embedding.embedder import Embedder
from synchat.services.ingestion.chunker import HtmlChunker
from synchat.utils.errors import FetchError, KnowledgeStoreError
from synchat.utils.logging import bind_job_context

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Turns a tenant URL into stored, searchable chunks.

    Parameters
    ----------
    fetcher:
        Downloads the page HTML.
    chunker:
        Splits HTML into hierarchy-tagged chunks.
    embedder:
        Embeds chunk text in sequential batches.
    store:
        Persists embedded chunks for the tenant.
    """

    def __init__(
        self,
        fetcher: IContentFetcher,
        chunker: HtmlChunker,
        embedder: Embedder,
        store: IKnowledgeStore,
    ) -> None:
        self._fetcher = fetcher
        self._chunker = chunker
        self._embedder = embedder
        self._store = store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, tenant_id: str, url: str) -> Result[IngestionReport]:
        """Fetch *url* and replace the chunks stored for it under *tenant_id*."""
        invalid = self._validate(tenant_id, url)
        if invalid is not None:
            return invalid

        with bind_job_context(tenant_id=tenant_id, url=url):
            started = time.perf_counter()
            logger.info("ingestion_started")
            deleted = await self._delete_previous(tenant_id, url)

            try:
                page = await self._fetcher.fetch(url)
            except FetchError as exc:
                logger.error("ingestion_fetch_failed", error=str(exc), status=exc.status_code)
                return Result.from_exception(exc, f"Could not download {url}")

            logger.info("ingestion_page_downloaded", size_kb=round(len(page.html) / 1024, 1))
            return await self._process(tenant_id, url, page.html, deleted, started)

    async def ingest_html(self, tenant_id: str, url: str, html: str) -> Result[IngestionReport]:
        """Run the pipeline on already-downloaded *html* attributed to *url*."""
        invalid = self._validate(tenant_id, url)
        if invalid is not None:
            return invalid

        with bind_job_context(tenant_id=tenant_id, url=url):
            started = time.perf_counter()
            logger.info("ingestion_started", source="html")
            deleted = await self._delete_previous(tenant_id, url)
            return await self._process(tenant_id, url, html, deleted, started)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(tenant_id: str, url: str) -> Result[IngestionReport] | None:
        if not tenant_id or not tenant_id.strip():
            return Result.failure(ErrorKind.INVALID_INPUT, "tenant_id is required")
        if not url or not url.startswith(("http://", "https://")):
            return Result.failure(ErrorKind.INVALID_INPUT, f"Invalid URL: {url!r}")
        return None

    async def _delete_previous(self, tenant_id: str, url: str) -> int:
        try:
            deleted = await self._store.delete_by_tenant_and_url(tenant_id, url)
        except KnowledgeStoreError as exc:
            logger.warning("ingestion_delete_previous_failed", error=str(exc))
            return 0
        logger.info("ingestion_previous_chunks_deleted", deleted=deleted)
        return deleted

    async def _process(
        self,
        tenant_id: str,
        url: str,
        html: str,
        deleted: int,
        started: float,
    ) -> Result[IngestionReport]:
        # BeautifulSoup parsing is CPU-bound; keep the event loop responsive.
        try:
            chunks = await asyncio.to_thread(self._chunker.chunk, html, url)
        except (RecursionError, ValueError, TypeError) as exc:
            logger.error("ingestion_chunking_failed", error=str(exc), error_type=type(exc).__name__)
            return Result.failure(ErrorKind.UPSTREAM_FATAL, f"Could not parse page content: {exc}")

        def report(**fields: object) -> IngestionReport:
            return IngestionReport(
                tenant_id=tenant_id,
                url=url,
                chunks_created=len(chunks),
                deleted_previous=deleted,
                elapsed_seconds=round(time.perf_counter() - started, 3),
                **fields,
            )

        if not chunks:
            logger.warning("ingestion_no_chunks")
            return Result.success(
                report(message="Page processed but no relevant content was extracted"),
                message="no content",
            )

        vectors = await self._embedder.embed_batch([chunk.text for chunk in chunks])
        embedded = [
            EmbeddedChunk(text=chunk.text, embedding=vector, metadata=chunk.metadata)
            for chunk, vector in zip(chunks, vectors)
            if vector is not None
        ]
        if not embedded:
            logger.error("ingestion_embedding_failed", chunks=len(chunks))
            return Result.failure(
                ErrorKind.UPSTREAM_FATAL,
                f"Extracted {len(chunks)} chunks but embedding failed for all of them",
            )

        try:
            stored = await self._store.upsert_chunks(tenant_id, embedded)
        except KnowledgeStoreError as exc:
            logger.error("ingestion_store_failed", error=str(exc))
            return Result.from_exception(exc, "Storing chunks failed")

        if stored.inserted == 0:
            logger.error("ingestion_store_failed", errors=stored.errors)
            return Result.failure(
                ErrorKind.UPSTREAM_FATAL,
                "Storing chunks failed: " + "; ".join(stored.errors),
            )

        skipped = len(chunks) - len(embedded)
        message = f"Ingestion complete: {stored.inserted} chunks stored"
        if stored.failed_rows or skipped:
            message += f" ({skipped} not embedded, {stored.failed_rows} failed storage)"

        final = report(
            chunks_stored=stored.inserted,
            chunks_embedded=len(embedded),
            chunks_failed_storage=stored.failed_rows,
            message=message,
        )
        logger.info(
            "ingestion_complete",
            chunks_created=final.chunks_created,
            chunks_embedded=final.chunks_embedded,
            chunks_stored=final.chunks_stored,
            elapsed_seconds=final.elapsed_seconds,
        )
        return Result.success(final, message=message)
