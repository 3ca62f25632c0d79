from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup

# A strategy looks at the parsed page and returns a candidate value (or None).
Strategy = Callable[[BeautifulSoup], Any]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False


def first_non_empty(candidates: Iterable[Any]) -> Any:
    """
    Priority resolution: return the first candidate that is not empty.

    `candidates` is consumed lazily, so generators of expensive lookups stop
    evaluating as soon as a value is found.
    """
    for value in candidates:
        if not is_empty(value):
            return value
    return None


@dataclass(frozen=True)
class FieldRule:
    """Ordered strategies for one ExtractedFields member."""

    field: str
    strategies: tuple[Strategy, ...]

    def resolve(self, soup: BeautifulSoup) -> Any:
        return first_non_empty(strategy(soup) for strategy in self.strategies)


def as_soup(page: BeautifulSoup | str) -> BeautifulSoup:
    if isinstance(page, BeautifulSoup):
        return page
    return BeautifulSoup(page or "", "html.parser")
