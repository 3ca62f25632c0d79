# rozee_jobs/http_client.py
from __future__ import annotations

import logging
import random
from collections.abc import Mapping

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import MaxRetryError, ReadTimeoutError
from urllib3.util.retry import Retry

from .models import FetchError, FetchTimeout, Page

LOG = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)


def browser_headers(rng: random.Random | None = None) -> dict[str, str]:
    """Browser-like request headers with a rotated User-Agent."""
    ua = (rng or random).choice(USER_AGENTS)
    return {
        "User-Agent": ua,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Accept-Encoding": "gzip, deflate",  # br needs the optional brotli package
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Cache-Control": "max-age=0",
    }


class HttpClient:
    """
    Shared HTTP client: one Session (cookies are reused across requests),
    transport-level retries, optional proxy.

    `fetch()` is the crawler's fetch capability. It never raises on HTTP
    status; the caller decides what a 403 or 503 means.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        proxy_url: str | None = None,
        transport_retries: int = 2,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update(browser_headers())
        if proxy_url:
            self.session.proxies.update({"http": proxy_url, "https": proxy_url})

        retry = Retry(
            total=transport_retries,
            connect=transport_retries,
            read=False,  # read timeouts are not retried: one fetch is bounded by its timeout
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def fetch(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Page:
        """GET `url` and return status + decoded body. Raises FetchTimeout / FetchError on transport failures."""
        try:
            resp = self.session.get(url, headers=dict(headers or {}), timeout=timeout or self.timeout)
        except requests.Timeout as e:
            raise FetchTimeout(f"timeout after {timeout or self.timeout}s: {url}") from e
        except requests.ConnectionError as e:
            if _is_read_timeout(e):
                raise FetchTimeout(f"timeout after {timeout or self.timeout}s: {url}") from e
            raise FetchError(f"{type(e).__name__}: {e}") from e
        except requests.RequestException as e:
            raise FetchError(f"{type(e).__name__}: {e}") from e
        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return Page(status_code=resp.status_code, body=resp.text, url=resp.url or url)

    __call__ = fetch

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)


def _is_read_timeout(exc: requests.ConnectionError) -> bool:
    """requests wraps an exhausted read retry as ConnectionError(MaxRetryError(ReadTimeoutError))."""
    for arg in exc.args:
        if isinstance(arg, ReadTimeoutError):
            return True
        if isinstance(arg, MaxRetryError) and isinstance(arg.reason, ReadTimeoutError):
            return True
    return False
