from __future__ import annotations

from collections.abc import Callable, Iterable

from bs4 import BeautifulSoup

from .extractors.base import as_soup

DEFAULT_BLOCK_PHRASES = ("forbidden", "access denied", "blocked")

# Returns True when the page looks like an anti-bot response rather than content.
BlockPredicate = Callable[[BeautifulSoup], bool]


def phrase_predicate(phrases: Iterable[str] = DEFAULT_BLOCK_PHRASES) -> BlockPredicate:
    """
    Substring heuristic over the visible body text (case-insensitive).

    Loose by nature: a listing that mentions "blocked" will trip it, so the
    phrase list is configurable and any other predicate can be injected.
    """
    needles = tuple(p.strip().lower() for p in phrases if p and p.strip())

    def _is_blocked(page: BeautifulSoup) -> bool:
        if not needles:
            return False
        soup = as_soup(page)
        root = soup.body or soup
        text = root.get_text(" ").lower()
        return any(n in text for n in needles)

    return _is_blocked
