"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in the knowledge store and compared against the
query vector at search time.

OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims), or any
OpenAI-compatible endpoint configured through ``openai_base_url``.
"""

from synchat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
