from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'rozee_jobs' module.

    Accepts kwargs (from the CLI or an input JSON file), including:
      keyword: str = ""                 # blank searches everything
      results_wanted: int = 100
      max_pages: int = 50
      start_urls: list[str]             # explicit seeds instead of a keyword search
      proxy_url: str | None
      dataset_path: str = "/app/local/state/rozee_jobs.jsonl"
      sqlite_path: str | None
      skip_network: bool = False

    The camelCase keys of Apify-style actor input (resultsWanted, maxPages,
    startUrls, startUrl, proxyConfiguration) are accepted too.

    Returns:
      The run summary as a plain dict (saved, detail_tasks, list_pages, ...).
    """
    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    # Log a small start record (structured; no prints)
    log_activity({
        "component": "rozee_jobs.main",
        "op": "start",
        "keyword": settings.keyword,
        "results_wanted": settings.results_wanted,
        "max_pages": settings.max_pages,
        "start_urls": settings.start_urls,
        "proxy": bool(settings.proxy_url),
        "flags": {"skip_network": settings.skip_network},
    })

    summary = _run_engine(settings)
    return summary.as_dict()
