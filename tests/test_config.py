# tests/test_config.py
import logging

import pytest

from modules.rozee_jobs.lib.blocking import DEFAULT_BLOCK_PHRASES
from modules.rozee_jobs.lib.config import (
    DEFAULT_DATASET_PATH,
    ConfigError,
    Settings,
    build_search_url,
    paginate_url,
)


def test_defaults():
    s = Settings.from_env_and_kwargs({})
    assert s.keyword == ""
    assert s.results_wanted == 100
    assert s.max_pages == 50
    assert s.start_urls == []
    assert s.proxy_url is None
    assert s.dataset_path == DEFAULT_DATASET_PATH
    assert s.sqlite_path is None
    assert s.block_phrases == DEFAULT_BLOCK_PHRASES
    assert (s.min_concurrency, s.max_concurrency, s.max_request_retries) == (3, 10, 3)
    assert s.min_new_to_paginate == 1
    assert s.skip_network is False


def test_camel_case_actor_input():
    s = Settings.from_env_and_kwargs({
        "keyword": "  data entry ",
        "resultsWanted": "25",
        "maxPages": 4,
        "startUrls": [{"url": "https://www.rozee.pk/job/jsearch/q/php/fc/1"}, "https://www.rozee.pk/x-jobs-5"],
        "proxyConfiguration": {"useApifyProxy": False, "proxyUrls": ["http://u:p@proxy.local:8000"]},
    })
    assert s.keyword == "data entry"
    assert s.results_wanted == 25
    assert s.max_pages == 4
    assert s.start_urls == ["https://www.rozee.pk/job/jsearch/q/php/fc/1", "https://www.rozee.pk/x-jobs-5"]
    assert s.proxy_url == "http://u:p@proxy.local:8000"
    assert s.has_start_urls


@pytest.mark.parametrize("bad", ["abc", 0, -3, "", 0.4])
def test_invalid_counts_fall_back_to_defaults(bad, caplog):
    with caplog.at_level(logging.WARNING):
        s = Settings.from_env_and_kwargs({"results_wanted": bad, "max_pages": bad})
    assert s.results_wanted == 100
    assert s.max_pages == 50


def test_single_start_url_aliases():
    assert Settings.from_env_and_kwargs({"startUrl": "https://www.rozee.pk/a"}).start_urls == ["https://www.rozee.pk/a"]
    assert Settings.from_env_and_kwargs({"url": "https://www.rozee.pk/b"}).start_urls == ["https://www.rozee.pk/b"]
    # the list wins over the single forms
    s = Settings.from_env_and_kwargs({"startUrls": ["https://www.rozee.pk/c"], "url": "https://www.rozee.pk/d"})
    assert s.start_urls == ["https://www.rozee.pk/c"]


def test_start_urls_skip_non_http_entries(caplog):
    with caplog.at_level(logging.WARNING):
        s = Settings.from_env_and_kwargs({"startUrls": ["ftp://nope", "https://www.rozee.pk/ok"]})
    assert s.start_urls == ["https://www.rozee.pk/ok"]
    assert any("ftp://nope" in r.getMessage() for r in caplog.records)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"startUrls": ["not a url"]},
        {"startUrls": [42]},
        {"startUrl": "www.rozee.pk/no-scheme"},
        {"min_concurrency": 0},
        {"min_concurrency": 5, "max_concurrency": 2},
        {"max_concurrency": "many"},
        {"max_request_retries": -1},
        {"request_timeout": 0},
        {"retry_backoff_seconds": -1},
        {"batch_size": 0},
        {"min_new_to_paginate": -1},
        {"block_phrases": "blocked"},
    ],
)
def test_structural_errors_raise(kwargs):
    with pytest.raises(ConfigError):
        Settings.from_env_and_kwargs(kwargs)


def test_env_fallbacks(monkeypatch, tmp_path):
    monkeypatch.setenv("ROZEE_PROXY_URL", "http://env-proxy:3128")
    monkeypatch.setenv("ROZEE_DATASET_PATH", str(tmp_path / "env.jsonl"))
    s = Settings.from_env_and_kwargs({})
    assert s.proxy_url == "http://env-proxy:3128"
    assert s.dataset_path == str(tmp_path / "env.jsonl")
    # kwargs beat env
    s = Settings.from_env_and_kwargs({"proxy": "http://kw:1", "dataset_path": "/tmp/kw.jsonl"})
    assert s.proxy_url == "http://kw:1"
    assert s.dataset_path == "/tmp/kw.jsonl"


def test_proxy_not_in_repr():
    s = Settings.from_env_and_kwargs({"proxy_url": "http://user:secret@p:1"})
    assert "secret" not in repr(s)


def test_block_phrases_override():
    s = Settings.from_env_and_kwargs({"block_phrases": [" Captcha ", ""]})
    assert s.block_phrases == ("Captcha",)


def test_build_search_url():
    assert build_search_url("python", 1) == "https://www.rozee.pk/job/jsearch/q/python/fc/1"
    assert build_search_url("python", 3) == "https://www.rozee.pk/job/jsearch/q/python/fpn/40"
    assert build_search_url("", 1) == "https://www.rozee.pk/job/jsearch/q/all/fc/1"
    assert build_search_url(None, 2) == "https://www.rozee.pk/job/jsearch/q/all/fpn/20"
    assert build_search_url("c++ & c#", 1) == "https://www.rozee.pk/job/jsearch/q/c%2B%2B%20%26%20c%23/fc/1"
    assert Settings(keyword="sales").search_url(2) == "https://www.rozee.pk/job/jsearch/q/sales/fpn/20"


def test_paginate_url():
    assert paginate_url("https://www.rozee.pk/job/jsearch/q/php/fc/1", 2) == "https://www.rozee.pk/job/jsearch/q/php/fpn/20"
    assert paginate_url("https://www.rozee.pk/job/jsearch/q/php/fpn/20/", 3) == "https://www.rozee.pk/job/jsearch/q/php/fpn/40"
    assert paginate_url("https://www.rozee.pk/jobs-in-lahore", 2) is None
