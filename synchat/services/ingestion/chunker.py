"""Heading-aware HTML chunking.

Turns a raw HTML page into :class:`~synchat.models.knowledge.RawChunk`
objects bounded by a word budget and tagged with the headings they sit under.

The algorithm walks the page once:

1. **Strip** -- non-content elements (scripts, navigation, footers, forms,
   cookie modals, ads, hidden nodes, comments) are removed before any text
   is read, so boilerplate never reaches the buffer.

2. **Walk** -- headings (h1-h6) and text blocks (p, li, td, th, pre,
   blockquote) are visited in document order.  When blocks nest (a ``<p>``
   inside an ``<li>``) only the outermost is read, so no text is counted twice.

3. **Track headings** -- a heading at level *L* truncates the heading stack
   to depth *L-1* and pushes its own title.  The stack is the chunk's
   ``section_hierarchy``.

4. **Buffer** -- block text accumulates with a running word count.  The
   buffer is flushed when a heading is crossed, when the next block would
   push it past ``max_words``, or when it reaches ``target_words``.  A block
   that alone exceeds ``max_words`` is split at sentence boundaries first.

5. **Validate** -- flushed text shorter than ``min_chars`` or with fewer
   than ``min_significant_words`` words of four or more letters is dropped.

Chunking is best-effort: malformed markup yields fewer chunks, never an
exception.
"""

from __future__ import annotations

import re

import structlog
from bs4 import BeautifulSoup, Comment, Tag

from synchat.models.knowledge import ChunkMetadata, RawChunk
from synchat.utils.text import count_words, normalize_whitespace, significant_words, split_to_word_budget

logger = structlog.get_logger(logger_name=__name__)

_NON_CONTENT_SELECTORS = (
    "script, style, nav, footer, header, aside, form, noscript, iframe, svg, "
    'link[rel="stylesheet"], button, input, select, textarea, label, '
    ".sidebar, #sidebar, .comments, #comments, .related-posts, .share-buttons, "
    ".pagination, .breadcrumb, .modal, .popup, "
    '[aria-hidden="true"], [hidden], [role="navigation"], [role="search"], '
    ".ad, .advertisement, #ad, #advertisement"
)

_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_BLOCK_TAGS = ("p", "li", "td", "th", "pre", "blockquote")
_CONTENT_TAGS = frozenset(_HEADING_TAGS + _BLOCK_TAGS)

_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)


class HtmlChunker:
    """Splits HTML into hierarchy-tagged chunks of bounded word count.

    Parameters
    ----------
    target_words:
        Soft budget; the buffer is flushed once it reaches this many words.
    max_words:
        Hard ceiling; no emitted chunk is longer.
    min_chars:
        Minimum character length of a kept chunk.
    min_significant_words:
        Minimum number of words with four or more letters in a kept chunk.
    min_element_chars:
        Text blocks shorter than this are skipped (headings are exempt).
    """

    def __init__(
        self,
        target_words: int = 200,
        max_words: int = 300,
        min_chars: int = 50,
        min_significant_words: int = 4,
        min_element_chars: int = 15,
    ) -> None:
        if target_words <= 0 or max_words <= 0:
            raise ValueError("word budgets must be positive")
        if target_words > max_words:
            raise ValueError("target_words must not exceed max_words")
        self._target_words = target_words
        self._max_words = max_words
        self._min_chars = min_chars
        self._min_significant_words = min_significant_words
        self._min_element_chars = min_element_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, html: str, source_url: str) -> list[RawChunk]:
        """Split *html* into validated chunks attributed to *source_url*."""
        if not html or not html.strip():
            return []

        soup = BeautifulSoup(html, "html.parser")
        self._strip_non_content(soup)

        chunks: list[RawChunk] = []
        discarded = 0
        stack: list[str] = []
        buffer: list[str] = []
        buffer_words = 0

        def flush() -> None:
            nonlocal buffer, buffer_words, discarded
            if not buffer:
                return
            text = "\n".join(buffer)
            buffer, buffer_words = [], 0
            if self.validate(text):
                metadata = ChunkMetadata(source_url=source_url, section_hierarchy=list(stack))
                chunks.append(RawChunk(text=text, metadata=metadata))
            else:
                discarded += 1

        for element in self._content_elements(soup):
            text = normalize_whitespace(element.get_text(" "))
            if not text:
                continue

            if element.name in _HEADING_TAGS:
                flush()
                level = int(element.name[1])
                stack = stack[: level - 1]
                stack.append(text)
                continue

            if len(text) < self._min_element_chars:
                continue

            pieces = [text] if count_words(text) <= self._max_words else split_to_word_budget(text, self._max_words)
            for piece in pieces:
                words = count_words(piece)
                if buffer and buffer_words + words > self._max_words:
                    flush()
                buffer.append(piece)
                buffer_words += words
                if buffer_words >= self._target_words:
                    flush()

        flush()

        logger.info(
            "html_chunked",
            source_url=source_url,
            chunks=len(chunks),
            discarded=discarded,
        )
        return chunks

    def validate(self, text: str) -> bool:
        """Return ``True`` if *text* is long and wordy enough to be worth storing."""
        stripped = text.strip()
        if len(stripped) < self._min_chars:
            return False
        return len(significant_words(stripped)) >= self._min_significant_words

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _strip_non_content(soup: BeautifulSoup) -> None:
        for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
            comment.extract()
        # select() also returns descendants of nodes removed earlier in the loop.
        for element in soup.select(_NON_CONTENT_SELECTORS):
            if not element.decomposed:
                element.decompose()
        for element in soup.select("[style]"):
            if not element.decomposed and _DISPLAY_NONE_RE.search(element.get("style", "")):
                element.decompose()

    @staticmethod
    def _content_elements(soup: BeautifulSoup) -> list[Tag]:
        elements: list[Tag] = []
        for element in soup.find_all(list(_CONTENT_TAGS)):
            if any(parent.name in _CONTENT_TAGS for parent in element.parents):
                continue
            elements.append(element)
        return elements
