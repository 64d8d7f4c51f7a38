"""Shared pytest fixtures for the SynChat test suite."""

from __future__ import annotations

import hashlib
import struct
from pathlib import Path

import pytest
import structlog

from synchat.config.settings import Settings
from synchat.interfaces.content_fetcher import FetchedPage, IContentFetcher
from synchat.interfaces.embedding_provider import IEmbeddingProvider
from synchat.providers.knowledge_store.memory_store import MemoryKnowledgeStore
from synchat.services.embedding.embedder import Embedder
from synchat.services.ingestion.chunker import HtmlChunker
from synchat.utils.errors import FetchError

EMBEDDING_DIM = 128

# ---------------------------------------------------------------------------
# Deterministic embedding provider
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, then unpacks bytes into floats and
    normalises to unit length.  Same text always produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unpack as unsigned ints so no NaN/inf bit patterns sneak in.
    values = [v / 2**32 - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider that records its calls."""

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self._dim = dim
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class StaticFetcher(IContentFetcher):
    """Serves canned HTML by URL; unknown URLs behave like a 404."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = dict(pages or {})
        self.requested: list[str] = []

    async def fetch(self, url: str) -> FetchedPage:
        self.requested.append(url)
        if url not in self.pages:
            raise FetchError(message=f"HTTP 404 for {url}", provider_name="static", status_code=404)
        return FetchedPage(url=url, html=self.pages[url])

    def get_provider_name(self) -> str:
        return "static"


def words(vocabulary: list[str], count: int) -> str:
    """A sentence of exactly *count* words cycling through *vocabulary*."""
    cycle = (vocabulary * (count // len(vocabulary) + 1))[:count]
    return " ".join(cycle).capitalize() + "."


PRICING_URL = "https://acme.example/pricing"

PLAN_WORDS = ["starter", "plan", "includes", "unlimited", "conversations", "with", "monthly", "billing"]
ENTERPRISE_WORDS = [
    "enterprise",
    "customers",
    "receive",
    "dedicated",
    "onboarding",
    "custom",
    "integrations",
    "and",
    "quarterly",
    "invoicing",
]
REFUND_WORDS = ["refunds", "are", "processed", "within", "fourteen", "business", "days", "after", "cancellation"]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _plain_structlog():
    """Uncached console logging per test, so no logger keeps a closed capture stream."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def test_settings() -> Settings:
    """Settings wired for in-memory tests: memory store, 128-d vectors, no delays."""
    return Settings(
        knowledge_store_backend="memory",
        embedding_dimension=EMBEDDING_DIM,
        embedding_batch_delay=0.0,
        embedding_retry_base_delay=0.0,
        ingestion_retry_delay=0.0,
    )


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    """Mock IEmbeddingProvider returning deterministic hash-based vectors."""
    return MockEmbeddingProvider()


@pytest.fixture
def embedder(mock_embedding_provider: MockEmbeddingProvider) -> Embedder:
    return Embedder(mock_embedding_provider, batch_size=20, batch_delay=0.0, retry_base_delay=0.0)


@pytest.fixture
def memory_store() -> MemoryKnowledgeStore:
    return MemoryKnowledgeStore(dimension=EMBEDDING_DIM)


@pytest.fixture
def chunker() -> HtmlChunker:
    return HtmlChunker()


@pytest.fixture
def pricing_html() -> str:
    """One <h1>Pricing</h1> followed by three paragraphs totaling 250 words."""
    return (
        "<html><head><title>Pricing</title><script>var tracking = 'ignore me';</script></head>"
        "<body><nav><a href='/'>Home</a> | <a href='/about'>About</a></nav>"
        "<main><h1>Pricing</h1>"
        f"<p>{words(PLAN_WORDS, 80)}</p>"
        f"<p>{words(ENTERPRISE_WORDS, 90)}</p>"
        f"<p>{words(REFUND_WORDS, 80)}</p>"
        "</main><footer>Copyright Acme Incorporated, all rights reserved worldwide</footer>"
        "</body></html>"
    )


@pytest.fixture
def static_fetcher(pricing_html: str) -> StaticFetcher:
    return StaticFetcher({PRICING_URL: pricing_html})
