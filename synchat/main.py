"""Dependency-injection wiring for the SynChat knowledge core.

Every service receives its collaborators through the constructor; this is
the only module that knows which concrete provider sits behind each
interface.  The ``build_*`` factories are plain functions so tests can
assemble a partial graph (e.g. the real search service over a memory store).

Typical use::

    async with open_services() as services:
        result = await services.search.search("tenant-1", "how much does it cost?")
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from synchat.config.settings import Settings
from synchat.interfaces.cache_provider import ICacheProvider
from synchat.interfaces.content_fetcher import IContentFetcher
from synchat.interfaces.embedding_provider import IEmbeddingProvider
from synchat.interfaces.knowledge_store import IKnowledgeStore
from synchat.pipeline.ingestion_queue import IngestionQueue
from synchat.providers.cache.memory_cache import MemoryCacheProvider
from synchat.providers.fetcher.http_fetcher import HttpContentFetcher
from synchat.services.embedding.embedder import Embedder
from synchat.services.ingestion.chunker import HtmlChunker
from synchat.services.ingestion.ingestion_service import IngestionService
from synchat.services.response_cache import ResponseCache
from synchat.services.search.hybrid_search import HybridSearchService
from synchat.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class KnowledgeServices:
    """The assembled object graph."""

    settings: Settings
    embedding_provider: IEmbeddingProvider
    store: IKnowledgeStore
    fetcher: IContentFetcher
    embedder: Embedder
    chunker: HtmlChunker
    search: HybridSearchService
    ingestion: IngestionService
    queue: IngestionQueue
    response_cache: ResponseCache


def build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Return the configured embedding provider.

    Raises
    ------
    ConfigurationError
        If no API key is configured.
    """
    if not app_settings.openai_api_key:
        raise ConfigurationError(
            message="OPENAI_API_KEY is not set; an embedding provider is required",
            provider_name="openai_embedding",
        )

    from synchat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

    return OpenAIEmbeddingProvider(settings=app_settings)


def build_knowledge_store(app_settings: Settings) -> IKnowledgeStore:
    """Select the knowledge-store backend named by ``knowledge_store_backend``."""
    if app_settings.knowledge_store_backend == "memory":
        from synchat.providers.knowledge_store.memory_store import MemoryKnowledgeStore

        return MemoryKnowledgeStore(
            dimension=app_settings.embedding_dimension,
            insert_batch_size=app_settings.store_insert_batch_size,
        )

    from synchat.providers.knowledge_store.postgres_store import PostgresKnowledgeStore

    return PostgresKnowledgeStore(
        dsn=app_settings.database_url,
        dimension=app_settings.embedding_dimension,
        table=app_settings.knowledge_table,
        text_search_config=app_settings.text_search_config,
        insert_batch_size=app_settings.store_insert_batch_size,
        min_connections=app_settings.db_min_connections,
        max_connections=app_settings.db_max_connections,
        command_timeout=app_settings.db_command_timeout,
    )


def build_services(
    app_settings: Settings | None = None,
    *,
    embedding_provider: IEmbeddingProvider | None = None,
    store: IKnowledgeStore | None = None,
    fetcher: IContentFetcher | None = None,
    cache: ICacheProvider | None = None,
) -> KnowledgeServices:
    """Assemble every service from *app_settings*; keyword overrides replace providers."""
    app_settings = app_settings or Settings()

    embedding_provider = embedding_provider or build_embedding_provider(app_settings)
    if embedding_provider.get_dimension() != app_settings.embedding_dimension:
        raise ConfigurationError(
            message=(
                f"Embedding provider dimension {embedding_provider.get_dimension()} does not "
                f"match embedding_dimension={app_settings.embedding_dimension}"
            ),
            provider_name=embedding_provider.get_provider_name(),
        )
    store = store or build_knowledge_store(app_settings)
    fetcher = fetcher or HttpContentFetcher(
        timeout=app_settings.fetch_timeout,
        user_agent=app_settings.fetch_user_agent,
    )
    cache = cache or MemoryCacheProvider(
        max_size=app_settings.response_cache_max_size,
        ttl=app_settings.response_cache_ttl,
    )

    embedder = Embedder(
        embedding_provider,
        batch_size=app_settings.embedding_batch_size,
        batch_delay=app_settings.embedding_batch_delay,
        max_retries=app_settings.embedding_max_retries,
        retry_base_delay=app_settings.embedding_retry_base_delay,
    )
    chunker = HtmlChunker(
        target_words=app_settings.target_chunk_words,
        max_words=app_settings.max_chunk_words,
        min_chars=app_settings.min_chunk_chars,
        min_significant_words=app_settings.min_significant_words,
        min_element_chars=app_settings.min_element_chars,
    )
    search = HybridSearchService(
        embedder,
        store,
        similarity_threshold=app_settings.similarity_threshold,
        vector_weight=app_settings.vector_weight,
        lexical_weight=app_settings.lexical_weight,
        result_limit=app_settings.result_limit,
        candidate_limit=app_settings.candidate_limit,
    )
    ingestion = IngestionService(fetcher, chunker, embedder, store)
    queue = IngestionQueue(
        ingestion,
        workers=app_settings.ingestion_workers,
        max_attempts=app_settings.ingestion_max_attempts,
        retry_delay=app_settings.ingestion_retry_delay,
        history_size=app_settings.ingestion_job_history_size,
        job_ttl=app_settings.ingestion_job_ttl,
    )

    logger.info(
        "services_built",
        embedding_provider=embedding_provider.get_provider_name(),
        knowledge_store=store.get_provider_name(),
        fetcher=fetcher.get_provider_name(),
    )
    return KnowledgeServices(
        settings=app_settings,
        embedding_provider=embedding_provider,
        store=store,
        fetcher=fetcher,
        embedder=embedder,
        chunker=chunker,
        search=search,
        ingestion=ingestion,
        queue=queue,
        response_cache=ResponseCache(cache, ttl=app_settings.response_cache_ttl),
    )


@asynccontextmanager
async def open_services(
    app_settings: Settings | None = None, **overrides: object
) -> AsyncIterator[KnowledgeServices]:
    """Build the services, initialize the store, and tear everything down on exit."""
    services = build_services(app_settings, **overrides)  # type: ignore[arg-type]
    try:
        await services.store.initialize()
        yield services
    finally:
        if services.queue.running:
            await services.queue.stop()
        await services.fetcher.close()
        await services.store.close()
