# tests/conftest.py
import os
import tempfile
import threading
import types
from collections import defaultdict

import pytest
from freezegun import freeze_time

from modules.rozee_jobs.lib import config as rz_config
from modules.rozee_jobs.lib.config import build_search_url
from modules.rozee_jobs.lib.models import FetchError, Page


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls against www.rozee.pk).",
    )


def pytest_configure(config: pytest.Config) -> None:
    # Marker registration (so pytest --markers shows it)
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="rz-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")
    monkeypatch.delenv("ROZEE_PROXY_URL", raising=False)
    monkeypatch.delenv("ROZEE_DATASET_PATH", raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# HTML fixtures
# ---------------------------------------------------------------------
def detail_url(job_id, slug="acme-python-developer-lahore"):
    return f"https://www.rozee.pk/{slug}-jobs-{job_id}"


def list_html(job_ids, next_href=None):
    links = "\n".join(
        f'<div class="job"><a href="/acme-python-developer-lahore-jobs-{jid}">Python Developer {jid}</a></div>'
        for jid in job_ids
    )
    nav = f'<ul class="pagination"><li class="next"><a href="{next_href}">Next</a></li></ul>' if next_href else ""
    return f"<html><body><div class='jobs'>{links}</div>{nav}</body></html>"


def detail_html(job_id, title=None, jsonld=True):
    title = f"Python Developer {job_id}" if title is None else title
    ld = ""
    if jsonld:
        ld = f"""
        <script type="application/ld+json">
        {{
          "@context": "https://schema.org",
          "@type": "JobPosting",
          "title": "{title}",
          "hiringOrganization": {{"@type": "Organization", "name": "Acme Pvt Ltd"}},
          "jobLocation": {{"@type": "Place", "address": {{
              "addressLocality": "Lahore", "addressRegion": "Punjab", "addressCountry": "Pakistan"}}}},
          "baseSalary": {{"@type": "MonetaryAmount", "currency": "PKR",
              "value": {{"@type": "QuantitativeValue", "minValue": 50000, "maxValue": 80000}}}},
          "employmentType": "FULL_TIME",
          "description": "&lt;p&gt;Build things.&lt;/p&gt;",
          "datePosted": "2025-01-01",
          "validThrough": "2025-02-01"
        }}
        </script>"""
    h1 = f"<h1>{title}</h1>" if title else ""
    return f"""<html><head>{ld}</head><body>
      {h1}
      <div class="company-name">Acme Pvt Ltd</div>
      <div class="location">Lahore, Pakistan</div>
      <div class="job-description"><p>Build things.</p></div>
    </body></html>"""


BLOCKED_HTML = "<html><body><h1>Access Denied</h1><p>You have been blocked.</p></body></html>"


class FakeSite:
    """
    In-memory stand-in for the fetch capability.

    Routes map a URL to a Page, an exception instance, or a list of those
    (served in order; the last entry repeats). Unknown URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.headers_seen = []
        self._served = defaultdict(int)
        self._lock = threading.Lock()

    def add(self, url, *responses):
        self.routes[url] = list(responses)
        return self

    def add_html(self, url, body, status=200):
        return self.add(url, Page(status_code=status, body=body, url=url))

    def add_listing(self, keyword, page, job_ids, **kw):
        return self.add_html(build_search_url(keyword, page), list_html(job_ids, **kw))

    def add_details(self, job_ids, **kw):
        for jid in job_ids:
            self.add_html(detail_url(jid), detail_html(jid, **kw))
        return self

    def fetch(self, url, headers=None):
        with self._lock:
            self.calls.append(url)
            self.headers_seen.append(dict(headers or {}))
            responses = self.routes.get(url)
            if not responses:
                return Page(status_code=404, body="not found", url=url)
            idx = min(self._served[url], len(responses) - 1)
            self._served[url] += 1
        resp = responses[idx]
        if isinstance(resp, FetchError):
            raise resp
        return resp

    __call__ = fetch

    def detail_calls(self):
        return [u for u in self.calls if "/job/jsearch/" not in u]

    def list_calls(self):
        return [u for u in self.calls if "/job/jsearch/" in u]


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def pages():
    """HTML builders for list/detail pages."""
    return types.SimpleNamespace(
        detail_url=detail_url,
        list_html=list_html,
        detail_html=detail_html,
        blocked=BLOCKED_HTML,
    )


class PersistCollector:
    def __init__(self):
        self.batches = []
        self.fail = False

    def __call__(self, batch):
        if self.fail:
            raise OSError("disk full")
        self.batches.append(list(batch))

    @property
    def records(self):
        return [r for b in self.batches for r in b]


@pytest.fixture
def persisted():
    return PersistCollector()


@pytest.fixture
def make_settings(tmp_path):
    """
    Return a factory building a **brand-new** Settings per call, tuned for
    fast deterministic runs (no backoff, small pool, temp dataset).
    """

    def _make(**overrides):
        kwargs = {
            "dataset_path": str(tmp_path / "rozee_jobs.jsonl"),
            "retry_backoff_seconds": 0,
            "min_concurrency": 2,
            "max_concurrency": 4,
        }
        kwargs.update(overrides)
        return rz_config.Settings.from_env_and_kwargs(kwargs)

    return _make
