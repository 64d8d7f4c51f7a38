"""Knowledge store implementations.

PostgresKnowledgeStore - asyncpg + pgvector + generated tsvector; production.
MemoryKnowledgeStore   - numpy cosine + BM25+; tests and local experiments.
"""

from synchat.providers.knowledge_store.memory_store import MemoryKnowledgeStore
from synchat.providers.knowledge_store.postgres_store import PostgresKnowledgeStore

__all__ = ["MemoryKnowledgeStore", "PostgresKnowledgeStore"]
