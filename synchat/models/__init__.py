"""Data models for the SynChat knowledge core."""

from synchat.models.knowledge import (
    ChunkMetadata,
    EmbeddedChunk,
    IngestionReport,
    LexicalHit,
    RawChunk,
    SearchResult,
    StoreReport,
    StoredChunk,
    VectorHit,
)
from synchat.models.result import ErrorKind, Result, ResultError

__all__ = [
    "ChunkMetadata",
    "EmbeddedChunk",
    "ErrorKind",
    "IngestionReport",
    "LexicalHit",
    "RawChunk",
    "Result",
    "ResultError",
    "SearchResult",
    "StoreReport",
    "StoredChunk",
    "VectorHit",
]
