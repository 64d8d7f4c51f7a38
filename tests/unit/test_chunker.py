"""Unit tests for HtmlChunker - stripping, hierarchy, word budgets, validation."""

from __future__ import annotations

import pytest

from synchat.services.ingestion.chunker import HtmlChunker
from synchat.utils.text import count_words
from tests.conftest import words

URL = "https://example.com/page"

X_WORDS = ["xenon", "lamps", "brighten", "every", "room"]
Y_WORDS = ["yellow", "paint", "covers", "garden", "walls"]
Z_WORDS = ["zebra", "herds", "migrate", "across", "plains"]


def _texts(chunks) -> list[str]:
    return [c.text for c in chunks]


class TestHierarchy:
    def test_heading_stack_follows_levels(self) -> None:
        html = (
            f"<h1>A</h1><p>{words(X_WORDS, 30)}</p>"
            f"<h2>B</h2><p>{words(Y_WORDS, 30)}</p>"
        )
        chunks = HtmlChunker().chunk(html, URL)

        assert len(chunks) == 2
        x_chunk = next(c for c in chunks if "Xenon" in c.text)
        y_chunk = next(c for c in chunks if "Yellow" in c.text)
        assert x_chunk.metadata.section_hierarchy == ["A"]
        assert y_chunk.metadata.section_hierarchy == ["A", "B"]

    def test_same_level_heading_replaces_sibling(self) -> None:
        html = (
            f"<h1>Guide</h1><h2>Setup</h2><p>{words(X_WORDS, 30)}</p>"
            f"<h2>Billing</h2><p>{words(Y_WORDS, 30)}</p>"
            f"<h1>Other</h1><p>{words(Z_WORDS, 30)}</p>"
        )
        chunks = HtmlChunker().chunk(html, URL)

        assert [c.metadata.section_hierarchy for c in chunks] == [
            ["Guide", "Setup"],
            ["Guide", "Billing"],
            ["Other"],
        ]

    def test_heading_text_is_not_part_of_chunk_text(self) -> None:
        html = f"<h2>Frequently asked questions</h2><p>{words(X_WORDS, 30)}</p>"
        chunks = HtmlChunker().chunk(html, URL)

        assert len(chunks) == 1
        assert "Frequently" not in chunks[0].text
        assert chunks[0].metadata.section_path == "Frequently asked questions"

    def test_source_url_is_recorded(self) -> None:
        chunks = HtmlChunker().chunk(f"<p>{words(X_WORDS, 30)}</p>", URL)
        assert chunks[0].metadata.source_url == URL
        assert chunks[0].metadata.section_hierarchy == []


class TestWordBudgets:
    def test_no_chunk_exceeds_max_words(self) -> None:
        long_paragraph = " ".join(words(X_WORDS, 37) for _ in range(30))  # ~1110 words
        html = f"<h1>Long</h1><p>{long_paragraph}</p><p>{words(Y_WORDS, 250)}</p>"
        chunks = HtmlChunker(target_words=200, max_words=300).chunk(html, URL)

        assert chunks
        assert all(c.word_count <= 300 for c in chunks)
        total = sum(c.word_count for c in chunks)
        assert total == count_words(long_paragraph) + 250

    def test_run_on_text_without_punctuation_is_cut_at_word_boundaries(self) -> None:
        run_on = " ".join(X_WORDS * 200)  # 1000 words, no sentence breaks
        chunks = HtmlChunker().chunk(f"<p>{run_on}</p>", URL)

        assert [c.word_count for c in chunks] == [300, 300, 300, 100]

    def test_flushes_at_target(self) -> None:
        html = f"<p>{words(X_WORDS, 120)}</p><p>{words(Y_WORDS, 120)}</p><p>{words(Z_WORDS, 40)}</p>"
        chunks = HtmlChunker(target_words=200, max_words=300).chunk(html, URL)

        assert [c.word_count for c in chunks] == [240, 40]

    def test_flushes_before_exceeding_max(self) -> None:
        html = f"<p>{words(X_WORDS, 150)}</p><p>{words(Y_WORDS, 200)}</p>"
        chunks = HtmlChunker(target_words=200, max_words=300).chunk(html, URL)

        assert [c.word_count for c in chunks] == [150, 200]

    def test_heading_flushes_buffer(self) -> None:
        html = f"<p>{words(X_WORDS, 20)}</p><h2>Next</h2><p>{words(Y_WORDS, 20)}</p>"
        chunks = HtmlChunker().chunk(html, URL)

        assert len(chunks) == 2
        assert chunks[0].metadata.section_hierarchy == []
        assert chunks[1].metadata.section_hierarchy == ["Next"]

    def test_elements_are_joined_with_newlines(self) -> None:
        html = f"<p>{words(X_WORDS, 20)}</p><p>{words(Y_WORDS, 20)}</p>"
        chunks = HtmlChunker().chunk(html, URL)

        assert len(chunks) == 1
        assert chunks[0].text.split("\n") == [words(X_WORDS, 20), words(Y_WORDS, 20)]

    def test_invalid_budgets_rejected(self) -> None:
        with pytest.raises(ValueError):
            HtmlChunker(target_words=400, max_words=300)
        with pytest.raises(ValueError):
            HtmlChunker(target_words=0, max_words=300)


class TestStripping:
    def test_non_content_elements_removed(self) -> None:
        body = words(X_WORDS, 30)
        html = f"""
        <html><head><style>.x {{ color: red }}</style></head><body>
          <header><p>Header banner text that should vanish entirely</p></header>
          <nav><ul><li>Navigation link number one goes here</li></ul></nav>
          <script>document.write('script text never indexed')</script>
          <div class="sidebar"><p>Sidebar promotional paragraph never indexed</p></div>
          <div class="modal"><p>Subscribe to our newsletter popup dialog</p></div>
          <div aria-hidden="true"><p>Screen reader hidden helper paragraph</p></div>
          <div hidden><p>Hidden attribute paragraph text never indexed</p></div>
          <div style="display: none"><p>Inline hidden paragraph never indexed</p></div>
          <!-- <p>Commented out paragraph that must never appear</p> -->
          <article><p>{body}</p></article>
          <footer><p>Footer legal paragraph copyright notice text</p></footer>
        </body></html>
        """
        chunks = HtmlChunker().chunk(html, URL)

        assert _texts(chunks) == [body]

    def test_nested_blocks_are_read_once(self) -> None:
        inner = words(X_WORDS, 30)
        html = f"<ul><li><p>{inner}</p></li></ul><blockquote><p>{words(Y_WORDS, 30)}</p></blockquote>"
        chunks = HtmlChunker().chunk(html, URL)

        assert len(chunks) == 1
        assert chunks[0].text.count("Xenon") == 1
        assert chunks[0].word_count == 60

    def test_short_elements_are_skipped(self) -> None:
        html = f"<p>Read more</p><p>{words(X_WORDS, 30)}</p><li>Share</li>"
        chunks = HtmlChunker().chunk(html, URL)

        assert _texts(chunks) == [words(X_WORDS, 30)]


class TestValidation:
    def test_boilerplate_fragment_is_dropped(self) -> None:
        html = "<p>Home | About | Contact</p><p>Terms | Privacy | Careers</p>"
        assert HtmlChunker().chunk(html, URL) == []

    def test_validate_requires_length_and_significant_words(self) -> None:
        chunker = HtmlChunker()
        assert chunker.validate("Our support team answers questions every single weekday morning.")
        assert not chunker.validate("Too short text here.")
        # Long enough, but only three words of four or more letters.
        assert not chunker.validate("1 2 3 4 5 6 7 8 9 10 11 12 13 14 15 16 17 18 19 20 21 22 with some more")

    def test_empty_and_malformed_html_do_not_raise(self) -> None:
        chunker = HtmlChunker()
        assert chunker.chunk("", URL) == []
        assert chunker.chunk("   ", URL) == []
        malformed = f"<div><p>{words(X_WORDS, 30)}<p><li>unclosed <b>tags</i></table>"
        chunks = chunker.chunk(malformed, URL)
        assert all(c.word_count <= 300 for c in chunks)
