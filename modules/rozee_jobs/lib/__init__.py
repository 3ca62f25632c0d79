# modules/rozee_jobs/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, Settings, build_search_url
from .engine import CrawlController, run_once
from .models import ExtractedFields, FailureKind, FrontierTask, JobRecord, Page, RunSummary, TaskKind

__all__ = [
    "ConfigError",
    "CrawlController",
    "ExtractedFields",
    "FailureKind",
    "FrontierTask",
    "JobRecord",
    "Page",
    "RunSummary",
    "Settings",
    "TaskKind",
    "build_search_url",
    "run_once",
]
