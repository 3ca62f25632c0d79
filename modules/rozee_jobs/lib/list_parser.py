from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .extractors.base import as_soup

_DETAIL_HREF_RE = re.compile(r"-jobs-\d+", re.I)

# Tried in order; the first anchor with an href wins.
NEXT_PAGE_SELECTORS = (
    'a[rel="next"]',
    "link[rel='next']",
    ".pagination li.next a",
    ".pagination a.next",
    "a.next",
)


@dataclass
class ListPage:
    """What a search-result page yields: posting URLs (document order, unique) and the next page link."""

    detail_urls: list[str] = field(default_factory=list)
    next_url: str | None = None


def _absolute(href: str, base_url: str) -> str | None:
    href = (href or "").strip()
    if not href or href.startswith(("javascript:", "mailto:", "#")):
        return None
    url = urljoin(base_url, href)
    return url if url.startswith(("http://", "https://")) else None


def parse_list_page(page: BeautifulSoup | str, base_url: str) -> ListPage:
    soup = as_soup(page)
    out = ListPage()
    seen: set[str] = set()
    for a in soup.select('a[href*="-jobs-"]'):
        href = a.get("href") or ""
        if not _DETAIL_HREF_RE.search(href):
            continue
        url = _absolute(href, base_url)
        if url and url not in seen:
            seen.add(url)
            out.detail_urls.append(url)

    for selector in NEXT_PAGE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        url = _absolute(el.get("href") or "", base_url)
        if url and url != base_url:
            out.next_url = url
            break
    return out
