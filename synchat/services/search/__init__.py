"""Hybrid search - vector similarity plus lexical rank, merged per chunk."""

from synchat.services.search.hybrid_search import HybridSearchService, merge_hits

__all__ = ["HybridSearchService", "merge_hits"]
