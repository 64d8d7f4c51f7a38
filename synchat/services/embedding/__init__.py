"""Embedding service - batching, normalization and retry around a provider."""

from synchat.services.embedding.embedder import Embedder

__all__ = ["Embedder"]
