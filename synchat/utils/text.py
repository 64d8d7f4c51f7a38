"""Text helpers shared by the chunker, the embedder and the lexical search.

Word counting is deliberately simple (runs of non-whitespace) because the
chunk budgets are expressed in words, not model tokens, and must be cheap to
recompute for every element the chunker walks.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")

# Letters only (any script), at least four of them.  Digits and underscores
# are excluded so "2024" or "__init" never count as significant.
_SIGNIFICANT_WORD_RE = re.compile(r"\b[^\W\d_]{4,}\b")

# Tokens for the in-memory lexical index.
_TOKEN_RE = re.compile(r"[^\W_]+")

# Common abbreviations that should NOT trigger a sentence split.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Jr",
        "Sr",
        "St",
        "Inc",
        "Ltd",
        "Co",
        "vs",
        "etc",
        "approx",
        "e.g",
        "i.e",
        "No",
        "Vol",
    }
)


def normalize_whitespace(text: str) -> str:
    """Collapse every run of whitespace (newlines included) to one space."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def count_words(text: str) -> int:
    """Return the number of whitespace-delimited words in *text*."""
    return len(text.split())


def significant_words(text: str) -> list[str]:
    """Return the tokens of *text* made of four or more letters."""
    return _SIGNIFICANT_WORD_RE.findall(text)


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens used by the in-memory lexical index."""
    return _TOKEN_RE.findall(text.lower())


def split_sentences(text: str) -> list[str]:
    """Split *text* at sentence boundaries while respecting abbreviations.

    Periods after known abbreviations are masked with ``\\x00`` (same length,
    so indices stay aligned with the original text) before looking for
    ``.``, ``!`` or ``?`` followed by whitespace or end-of-string.
    """
    masked = text
    for abbr in _ABBREVIATIONS:
        masked = masked.replace(f"{abbr}.", f"{abbr}\x00")

    sentences: list[str] = []
    last = 0
    for match in re.finditer(r"[.!?](?:\s|$)", masked):
        end = match.end()
        sentence = text[last:end].strip()
        if sentence:
            sentences.append(sentence)
        last = end

    remainder = text[last:].strip()
    if remainder:
        sentences.append(remainder)

    return sentences if sentences else [text]


def split_to_word_budget(text: str, max_words: int) -> list[str]:
    """Split *text* into pieces of at most *max_words* words.

    Sentences are packed greedily; a single sentence longer than the budget
    is cut at word boundaries.  Every returned piece satisfies
    ``count_words(piece) <= max_words``.
    """
    if max_words <= 0:
        raise ValueError("max_words must be positive")

    pieces: list[str] = []
    current: list[str] = []
    current_words = 0

    for sentence in split_sentences(text):
        words = sentence.split()
        if len(words) > max_words:
            if current:
                pieces.append(" ".join(current))
                current, current_words = [], 0
            for start in range(0, len(words), max_words):
                pieces.append(" ".join(words[start : start + max_words]))
            continue

        if current_words + len(words) > max_words and current:
            pieces.append(" ".join(current))
            current, current_words = [], 0
        current.append(sentence)
        current_words += len(words)

    if current:
        pieces.append(" ".join(current))
    return pieces
