"""Custom exception hierarchy for SynChat.

All provider-level exceptions inherit from :class:`SynChatError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai_embedding", "postgres", "http_fetcher")
caused the failure.

The hierarchy is organized by the collaborator that failed:

    SynChatError  (base -- catch-all for any SynChat error)
    +-- ConfigurationError       (startup / missing config)
    +-- RateLimitError           (provider rate-limit exceeded, retryable)
    +-- ProviderUnavailableError (external service down / unreachable, retryable)
    +-- EmbeddingError           (embedding call failed or returned a bad shape)
    +-- KnowledgeStoreError      (database read/write failure)
    +-- FetchError               (content source returned non-2xx or timed out)

Providers raise these; the service layer (search, ingestion) catches them at
its boundary and converts them into :class:`~synchat.models.result.Result`
failures so callers never have to guess which style a function uses.
"""


class SynChatError(Exception):
    """Base exception for all SynChat errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai_embedding] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def retryable(self) -> bool:
        """Whether retrying the same call later may succeed."""
        return False

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class ConfigurationError(SynChatError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Transient upstream errors
# ---------------------------------------------------------------------------

class RateLimitError(SynChatError):
    """Raised when an API rate limit is exceeded.

    The embedder retries these with exponential backoff before giving up.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retryable(self) -> bool:
        return True


class ProviderUnavailableError(SynChatError):
    """Raised when an external service is momentarily unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)

    @property
    def retryable(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fatal upstream errors
# ---------------------------------------------------------------------------

class EmbeddingError(SynChatError):
    """Raised when an embedding call fails or returns a malformed response."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class KnowledgeStoreError(SynChatError):
    """Raised when a knowledge-store query or write fails."""

    def __init__(
        self,
        message: str = "Knowledge store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FetchError(SynChatError):
    """Raised when a source URL cannot be fetched (network error or non-2xx)."""

    def __init__(
        self,
        message: str = "Failed to fetch source content",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._status_code = status_code

    @property
    def status_code(self) -> int | None:
        return self._status_code
