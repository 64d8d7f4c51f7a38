"""Content fetchers - HttpContentFetcher downloads tenant pages over httpx."""

from synchat.providers.fetcher.http_fetcher import HttpContentFetcher

__all__ = ["HttpContentFetcher"]
