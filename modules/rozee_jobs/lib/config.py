from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from .blocking import DEFAULT_BLOCK_PHRASES
from .utils import getenv_str, positive_int, truthy

log = logging.getLogger(__name__)

BASE_URL = "https://www.rozee.pk"
JOBS_PER_PAGE = 20

DEFAULT_RESULTS_WANTED = 100
DEFAULT_MAX_PAGES = 50
DEFAULT_DATASET_PATH = "/app/local/state/rozee_jobs.jsonl"

_SEARCH_PAGE_RE = re.compile(r"/(?:fc/1|fpn/\d+)/?$")


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Search URLs
# -----------------------------
def build_search_url(keyword: str | None, page: int = 1) -> str:
    """
    Canonical keyword search URL.
      page 1 -> /job/jsearch/q/<kw>/fc/1
      page N -> /job/jsearch/q/<kw>/fpn/<(N-1) * 20>
    """
    kw = (keyword or "").strip() or "all"
    encoded = quote(kw, safe="!~*'()")  # same escaping as encodeURIComponent
    if page <= 1:
        return f"{BASE_URL}/job/jsearch/q/{encoded}/fc/1"
    offset = (page - 1) * JOBS_PER_PAGE
    return f"{BASE_URL}/job/jsearch/q/{encoded}/fpn/{offset}"


def paginate_url(url: str, page: int) -> str | None:
    """
    Rewrite a search URL that ends in /fc/1 or /fpn/<offset> to point at `page`.
    Returns None for URLs that don't follow that scheme.
    """
    if not _SEARCH_PAGE_RE.search(url):
        return None
    tail = "fc/1" if page <= 1 else f"fpn/{(page - 1) * JOBS_PER_PAGE}"
    return _SEARCH_PAGE_RE.sub(f"/{tail}", url)


# -----------------------------
# Models
# -----------------------------
@dataclass
class Settings:
    """
    Canonical configuration for one crawl run.

    Built from a flat mapping (CLI --kwargs, an input JSON file, or direct
    calls). Both snake_case and the camelCase keys of Apify-style actor input
    are accepted; see `from_env_and_kwargs`.
    """

    # What to crawl
    keyword: str = ""
    results_wanted: int = DEFAULT_RESULTS_WANTED
    max_pages: int = DEFAULT_MAX_PAGES
    start_urls: list[str] = field(default_factory=list)

    # Transport
    proxy_url: str | None = field(default=None, repr=False)
    request_timeout: float = 30.0
    delay_seconds: float = 0.0

    # Scheduling / retries
    min_concurrency: int = 3
    max_concurrency: int = 10
    max_request_retries: int = 3
    retry_backoff_seconds: float = 1.0

    # Behaviour knobs
    min_new_to_paginate: int = 1
    block_phrases: tuple[str, ...] = DEFAULT_BLOCK_PHRASES
    batch_size: int = 10

    # Storage
    dataset_path: str | None = DEFAULT_DATASET_PATH
    sqlite_path: str | None = None

    skip_network: bool = False

    # ------------- convenience -------------
    @property
    def has_start_urls(self) -> bool:
        return bool(self.start_urls)

    def search_url(self, page: int = 1) -> str:
        return build_search_url(self.keyword, page)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation.

        Recognized kwargs (all optional):

            keyword: str = ""
            results_wanted | resultsWanted: int = 100
            max_pages | maxPages: int = 50
            start_urls | startUrls: list[str | {"url": str}]
            start_url | startUrl | url: str
            proxy_url | proxy | proxyConfiguration: str | {"proxyUrls": [...]}
            min_concurrency: int = 3
            max_concurrency: int = 10
            max_request_retries: int = 3
            request_timeout: float = 30
            retry_backoff_seconds: float = 1.0
            delay_seconds: float = 0
            batch_size: int = 10
            min_new_to_paginate: int = 1
            block_phrases: list[str]
            dataset_path: str   (env ROZEE_DATASET_PATH)
            sqlite_path: str | None
            skip_network: bool = false

        Env fallbacks: ROZEE_PROXY_URL, ROZEE_DATASET_PATH.
        """
        kw = dict(kwargs or {})

        def pick(*names: str) -> Any:
            for n in names:
                if n in kw and kw[n] is not None:
                    return kw[n]
            return None

        keyword = str(pick("keyword") or "").strip()
        results_wanted = positive_int(
            pick("results_wanted", "resultsWanted"), DEFAULT_RESULTS_WANTED, name="results_wanted"
        )
        max_pages = positive_int(pick("max_pages", "maxPages"), DEFAULT_MAX_PAGES, name="max_pages")

        start_urls = _parse_start_urls(
            pick("start_urls", "startUrls"),
            pick("start_url", "startUrl"),
            pick("url"),
        )

        proxy_url = _parse_proxy(pick("proxy_url", "proxy", "proxyConfiguration")) or getenv_str("ROZEE_PROXY_URL")

        dataset_path = pick("dataset_path")
        if dataset_path is None:
            dataset_path = getenv_str("ROZEE_DATASET_PATH", DEFAULT_DATASET_PATH)
        dataset_path = str(dataset_path).strip() or None
        sqlite_path = str(pick("sqlite_path") or "").strip() or None

        phrases_raw = pick("block_phrases")
        if phrases_raw is None:
            block_phrases = DEFAULT_BLOCK_PHRASES
        elif isinstance(phrases_raw, (list, tuple)):
            block_phrases = tuple(str(p).strip() for p in phrases_raw if str(p).strip())
        else:
            raise ConfigError("'block_phrases' must be a list of strings.")

        settings = cls(
            keyword=keyword,
            results_wanted=results_wanted,
            max_pages=max_pages,
            start_urls=start_urls,
            proxy_url=proxy_url,
            request_timeout=_as_float(pick("request_timeout"), 30.0, "request_timeout"),
            delay_seconds=_as_float(pick("delay_seconds"), 0.0, "delay_seconds"),
            min_concurrency=_as_int(pick("min_concurrency", "minConcurrency"), 3, "min_concurrency"),
            max_concurrency=_as_int(pick("max_concurrency", "maxConcurrency"), 10, "max_concurrency"),
            max_request_retries=_as_int(
                pick("max_request_retries", "maxRequestRetries"), 3, "max_request_retries"
            ),
            retry_backoff_seconds=_as_float(pick("retry_backoff_seconds"), 1.0, "retry_backoff_seconds"),
            min_new_to_paginate=_as_int(pick("min_new_to_paginate"), 1, "min_new_to_paginate"),
            block_phrases=block_phrases,
            batch_size=_as_int(pick("batch_size"), 10, "batch_size"),
            dataset_path=dataset_path,
            sqlite_path=sqlite_path,
            skip_network=truthy(pick("skip_network")),
        )
        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _as_int(value: Any, default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be an integer (got {value!r}).") from e


def _as_float(value: Any, default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number (got {value!r}).") from e


def _parse_start_urls(many: Any, one: Any, legacy_url: Any) -> list[str]:
    """
    Accepts: ["https://...", {"url": "https://..."}, ...] or a single string.
    Precedence mirrors the actor input: startUrls, then startUrl, then url.
    """
    out: list[str] = []
    if isinstance(many, (list, tuple)):
        for i, item in enumerate(many):
            if isinstance(item, dict):
                u = str(item.get("url") or "").strip()
            elif isinstance(item, str):
                u = item.strip()
            else:
                raise ConfigError(f"startUrls[{i}] must be a string or an object with 'url'.")
            if u.startswith(("http://", "https://")):
                out.append(u)
            elif u:
                log.warning("Skipping start URL that is not absolute http(s): %r", u)
        if many and not out:
            raise ConfigError("startUrls was given but no entry has a usable 'url'.")
    elif isinstance(many, str) and many.strip().startswith(("http://", "https://")):
        out.append(many.strip())
    if out:
        return out
    for single in (one, legacy_url):
        if isinstance(single, str) and single.strip():
            if not single.strip().startswith(("http://", "https://")):
                raise ConfigError(f"Start URL must be absolute http(s): {single!r}")
            return [single.strip()]
    return []


def _parse_proxy(value: Any) -> str | None:
    """Either a proxy URL string or an actor-style {"proxyUrls": [...]} object."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        urls = value.get("proxyUrls") or value.get("proxy_urls") or []
        if isinstance(urls, list) and urls:
            return str(urls[0]).strip() or None
        single = value.get("proxyUrl") or value.get("url")
        if isinstance(single, str):
            return single.strip() or None
    return None


def _validate_settings(s: Settings) -> None:
    if s.min_concurrency <= 0:
        raise ConfigError("'min_concurrency' must be >= 1.")
    if s.max_concurrency < s.min_concurrency:
        raise ConfigError("'max_concurrency' must be >= 'min_concurrency'.")
    if s.max_request_retries < 0:
        raise ConfigError("'max_request_retries' must be >= 0.")
    if s.request_timeout <= 0:
        raise ConfigError("'request_timeout' must be > 0.")
    if s.delay_seconds < 0 or s.retry_backoff_seconds < 0:
        raise ConfigError("'delay_seconds' and 'retry_backoff_seconds' cannot be negative.")
    if s.batch_size <= 0:
        raise ConfigError("'batch_size' must be >= 1.")
    if s.min_new_to_paginate < 0:
        raise ConfigError("'min_new_to_paginate' cannot be negative.")
