"""Text canonicalization helpers shared by the data model and the scorers."""

import re

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Canonicalize free text for comparison.

    Lower-cases, strips every character that is neither a word character nor
    whitespace, collapses whitespace runs to a single space and trims.

    Examples:
        >>> normalize_text("  J.  Smith, Jr. ")
        'j smith jr'
    """
    normalized = _NON_WORD.sub("", text.lower())
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip()


def tokenize(text: str) -> list[str]:
    """Split already-normalized text into whitespace tokens."""
    return text.split()


__all__ = ["normalize_text", "tokenize"]
