"""Utility modules for SynChat.

- **errors** -- Exception hierarchy rooted at SynChatError; providers raise
  these and the service layer converts them into ``Result`` failures.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text** -- whitespace normalization, word counting, significant-word
  detection and sentence splitting for the chunker and embedder.
"""

from synchat.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    FetchError,
    KnowledgeStoreError,
    ProviderUnavailableError,
    RateLimitError,
    SynChatError,
)
from synchat.utils.logging import bind_job_context, configure_logging, get_logger
from synchat.utils.text import (
    count_words,
    normalize_whitespace,
    significant_words,
    split_sentences,
    split_to_word_budget,
)

__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "FetchError",
    "KnowledgeStoreError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SynChatError",
    "bind_job_context",
    "configure_logging",
    "count_words",
    "get_logger",
    "normalize_whitespace",
    "significant_words",
    "split_sentences",
    "split_to_word_budget",
]
