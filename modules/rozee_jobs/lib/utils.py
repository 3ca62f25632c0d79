from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any

log = logging.getLogger(__name__)


def truthy(v: Any) -> bool:
    """
    Normalize common truthy inputs from env/kwargs.
    Accepts bools or strings like: '1', 'true', 'yes', 'on'.
    """
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    if isinstance(v, (int, float)):
        return v != 0
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "on", "y", "t"}


def positive_int(value: Any, default: int, *, name: str = "value") -> int:
    """
    Coerce `value` to a positive int; anything else falls back to `default`.
    Operator input like results_wanted="abc" or max_pages=0 is tolerated this way.
    """
    if value is None or value == "":
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        log.warning("Invalid %s=%r; using default %s", name, value, default)
        return default
    if num != num or num <= 0 or num == float("inf"):
        log.warning("Invalid %s=%r; using default %s", name, value, default)
        return default
    if int(num) <= 0:
        log.warning("Invalid %s=%r; using default %s", name, value, default)
        return default
    return int(num)


def now_iso() -> str:
    """
    UTC ISO-8601 timestamp with 'Z' suffix.
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def getenv_str(name: str, default: str | None = None) -> str | None:
    """
    Typed wrapper for environment access.
    """
    val = os.getenv(name)
    return val if val is not None else default
