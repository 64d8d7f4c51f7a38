"""Provider interfaces (adapter pattern).

Services depend only on these ABCs; concrete adapters live in
``synchat.providers`` and are wired together in ``synchat.main``.
"""

from synchat.interfaces.cache_provider import ICacheProvider
from synchat.interfaces.content_fetcher import FetchedPage, IContentFetcher
from synchat.interfaces.embedding_provider import IEmbeddingProvider
from synchat.interfaces.knowledge_store import IKnowledgeStore

__all__ = [
    "FetchedPage",
    "ICacheProvider",
    "IContentFetcher",
    "IEmbeddingProvider",
    "IKnowledgeStore",
]
