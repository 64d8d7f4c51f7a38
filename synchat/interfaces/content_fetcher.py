"""Abstract base class for content-source fetchers.

Ingestion pulls raw HTML from a tenant's website through this contract so the
pipeline can be exercised with canned pages in tests and pointed at other
sources (sitemaps, crawlers) later without touching the service layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class FetchedPage:
    """Raw page content returned by a fetcher.

    Attributes
    ----------
    url:
        The final URL after redirects.
    html:
        Response body decoded as text.
    status_code:
        HTTP status of the final response (always 2xx).
    """

    url: str
    html: str
    status_code: int = 200


class IContentFetcher(ABC):
    """Contract for services that retrieve the HTML of a source URL."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedPage:
        """Download *url* and return its body.

        Raises
        ------
        synchat.utils.errors.FetchError
            On a non-2xx response, a timeout or any network failure.  The
            ingestion pipeline treats every such error as fatal for the job.
        """

    async def close(self) -> None:
        """Release network resources.  The default implementation holds none."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"http_fetcher"``."""
