"""HTTP content fetcher using httpx.

Downloads the raw HTML of a tenant page for the ingestion pipeline.  Every
failure mode (timeout, connection error, non-2xx status) is raised as a
:class:`FetchError`; the pipeline treats all of them as fatal for the job.
"""

from __future__ import annotations

import httpx
import structlog

from synchat.interfaces.content_fetcher import FetchedPage, IContentFetcher
from synchat.utils.errors import FetchError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 15.0
_DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SynChatBot/1.1; +https://www.synchatai.com/bot)"
_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class HttpContentFetcher(IContentFetcher):
    """Plain HTTP GET fetcher with an identifying user agent.

    Parameters
    ----------
    http_client:
        Shared client to use.  When omitted the fetcher creates (and later
        closes) its own client with *timeout* and *user_agent*.
    timeout:
        Whole-request timeout in seconds.
    user_agent:
        ``User-Agent`` header sent with every request.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = http_client is None
        self._headers = {"User-Agent": user_agent, "Accept": _ACCEPT}
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=self._headers,
            follow_redirects=True,
        )

    async def fetch(self, url: str) -> FetchedPage:
        """GET *url* and return its decoded body."""
        try:
            response = await self._client.get(url, headers=self._headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(
                message=f"Timeout fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info(
            "page_fetched",
            url=url,
            final_url=str(response.url),
            status=response.status_code,
            bytes=len(response.content),
        )
        return FetchedPage(url=str(response.url), html=response.text, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    def get_provider_name(self) -> str:
        return "http_fetcher"
