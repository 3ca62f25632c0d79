"""
Pure text helpers used on every extracted field.

Nothing in here touches the network or shared state; everything is safe to
call from any worker thread.
"""

from __future__ import annotations

import html
import re

_WS_RE = re.compile(r"[\s\u00a0]+")
_HSPACE_RE = re.compile(r"[ \t\f\v\u00a0]+")
_BR_RE = re.compile(r"<\s*br\s*/?\s*>", re.I)
_BLOCK_CLOSE_RE = re.compile(r"<\s*/\s*(?:p|div|li|h[1-6])\s*>", re.I)
_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_RUN_RE = re.compile(r"\n\s*\n+")
_NUMERIC_RE = re.compile(r"^\d+$")
_JOB_ID_RE = re.compile(r"-jobs-(\d+)", re.I)
_TRAILING_ID_RE = re.compile(r"(\d+)/?$")

# Segments that leak from serialized objects or empty template slots.
_PLACEHOLDER_SEGMENTS = {"null", "none", "undefined", "n/a", "-"}

MAX_LOCATION_PARTS = 3


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace (NBSP included) to one space and trim."""
    if not text:
        return ""
    return _WS_RE.sub(" ", str(text)).strip()


def html_to_text(fragment: str | None) -> str:
    """
    Turn a description HTML fragment into readable plain text.

    Line breaks and closing block tags become newlines, every other tag is
    dropped, entities are decoded, and blank lines are squeezed to one.
    """
    if not fragment:
        return ""
    text = str(fragment)
    # JSON-LD descriptions are sometimes entity-escaped markup ("&lt;p&gt;...").
    if "<" not in text and "&lt;" in text:
        text = html.unescape(text)
    text = _BR_RE.sub("\n", text)
    text = _BLOCK_CLOSE_RE.sub("\n", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    text = text.replace("\r", "")
    lines = [_HSPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    text = "\n".join(lines)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def _is_placeholder(segment: str) -> bool:
    low = segment.lower()
    return "[object" in low or low in _PLACEHOLDER_SEGMENTS


def normalize_location(raw: str | None) -> str:
    """
    "Lahore, Lahore, Punjab, Pakistan, 12345" -> "Lahore, Punjab, Pakistan"

    Idempotent: normalizing an already-normalized value returns it unchanged.
    """
    if not raw:
        return ""
    unique: list[str] = []
    seen: set[str] = set()
    for part in str(raw).split(","):
        seg = clean_text(part)
        if not seg or _NUMERIC_RE.match(seg) or _is_placeholder(seg):
            continue
        key = seg.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(seg)
    return ", ".join(unique[:MAX_LOCATION_PARTS])


def extract_job_id(url: str | None) -> str | None:
    """
    Site posting id from a detail URL: digits after '-jobs-', else the
    trailing digit run. None when neither pattern matches.
    """
    if not url:
        return None
    m = _JOB_ID_RE.search(url) or _TRAILING_ID_RE.search(url)
    return m.group(1) if m else None


def looks_like_detail_url(url: str | None) -> bool:
    return bool(url and _JOB_ID_RE.search(url))
