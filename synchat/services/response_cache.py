"""Short-lived cache of generated chat answers.

Keys are derived from (tenant, conversation, normalized question), so the
same question asked twice in a conversation skips generation.  The cache is
best-effort: a failing backend is logged and behaves like a miss, and a
``None`` answer is never stored.
"""

from __future__ import annotations

import hashlib
from collections.abc import Awaitable, Callable

import structlog

from synchat.interfaces.cache_provider import ICacheProvider
from synchat.utils.errors import SynChatError
from synchat.utils.text import normalize_whitespace

logger = structlog.get_logger(logger_name=__name__)

_KEY_PREFIX = "answer:"


def answer_cache_key(tenant_id: str, conversation_id: str, question: str) -> str:
    """Stable key for an answer; case and whitespace in *question* are ignored."""
    normalized = normalize_whitespace(question).lower()
    digest = hashlib.sha256(
        "\x1f".join((tenant_id, conversation_id, normalized)).encode("utf-8")
    ).hexdigest()
    return f"{_KEY_PREFIX}{digest}"


class ResponseCache:
    """Answer cache over an injected :class:`ICacheProvider`."""

    def __init__(self, cache: ICacheProvider, ttl: int = 3600) -> None:
        self._cache = cache
        self._ttl = ttl

    async def get_answer(self, tenant_id: str, conversation_id: str, question: str) -> str | None:
        key = answer_cache_key(tenant_id, conversation_id, question)
        try:
            answer = await self._cache.get(key)
        except (SynChatError, OSError) as exc:
            logger.warning("response_cache_get_failed", tenant_id=tenant_id, error=str(exc))
            return None
        logger.debug("response_cache_lookup", tenant_id=tenant_id, hit=answer is not None)
        return answer

    async def store_answer(
        self, tenant_id: str, conversation_id: str, question: str, answer: str | None
    ) -> bool:
        """Cache *answer*; returns ``False`` if nothing was stored."""
        if answer is None:
            return False
        key = answer_cache_key(tenant_id, conversation_id, question)
        try:
            await self._cache.set(key, answer, ttl=self._ttl)
        except (SynChatError, OSError) as exc:
            logger.warning("response_cache_set_failed", tenant_id=tenant_id, error=str(exc))
            return False
        return True

    async def forget_answer(self, tenant_id: str, conversation_id: str, question: str) -> None:
        key = answer_cache_key(tenant_id, conversation_id, question)
        try:
            await self._cache.delete(key)
        except (SynChatError, OSError) as exc:
            logger.warning("response_cache_delete_failed", tenant_id=tenant_id, error=str(exc))

    async def get_or_generate(
        self,
        tenant_id: str,
        conversation_id: str,
        question: str,
        generate: Callable[[], Awaitable[str | None]],
    ) -> str | None:
        """Return the cached answer, or await *generate* and cache its result."""
        cached = await self.get_answer(tenant_id, conversation_id, question)
        if cached is not None:
            return cached
        answer = await generate()
        await self.store_answer(tenant_id, conversation_id, question, answer)
        return answer
