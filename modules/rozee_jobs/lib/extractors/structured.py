"""
JSON-LD (schema.org JobPosting) extraction.

Every <script type="application/ld+json"> block is parsed on its own; a block
that will not parse is skipped and the rest still count. When a page carries
several JobPosting nodes, fields are folded first-non-null-wins.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from ..models import ExtractedFields
from .base import as_soup, first_non_empty, is_empty

log = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_WRAPPER_RE = re.compile(r"^\s*(?://\s*)?(?:<!--|<!\[CDATA\[)|(?://\s*)?(?:-->|\]\]>)\s*$")

JOB_POSTING_TYPE = "JobPosting"


def _load_block(raw: str) -> Any:
    """Permissive json.loads: tolerates raw control chars, trailing commas and CDATA/comment wrappers."""
    text = _WRAPPER_RE.sub("", raw.strip()).strip()
    if not text:
        return None
    try:
        return json.loads(text, strict=False)
    except ValueError:
        return json.loads(_TRAILING_COMMA_RE.sub(r"\1", text), strict=False)


def _iter_nodes(payload: Any) -> list[dict[str, Any]]:
    """Flatten dict / list / @graph / mainEntity payloads into a list of dict nodes."""
    nodes: list[dict[str, Any]] = []

    def add(node: Any) -> None:
        if isinstance(node, dict):
            nodes.append(node)
            if isinstance(node.get("@graph"), list):
                for g in node["@graph"]:
                    add(g)
            if isinstance(node.get("mainEntity"), (dict, list)):
                add(node["mainEntity"])
        elif isinstance(node, list):
            for n in node:
                add(n)

    add(payload)
    return nodes


def _is_job_posting(node: dict[str, Any]) -> bool:
    t = node.get("@type")
    if isinstance(t, list):
        return JOB_POSTING_TYPE in t
    return t == JOB_POSTING_TYPE


def _text(value: Any) -> str | None:
    if is_empty(value):
        return None
    if isinstance(value, (dict, list)):
        return None
    return str(value).strip()


def _named(value: Any) -> str | None:
    """Strings pass through; schema.org Thing objects contribute their name."""
    if isinstance(value, dict):
        return _text(value.get("name"))
    return _text(value)


def _location(node: dict[str, Any]) -> str | None:
    job_loc = node.get("jobLocation")
    if isinstance(job_loc, list):
        job_loc = job_loc[0] if job_loc else None
    if not isinstance(job_loc, dict):
        return None
    addr = job_loc.get("address")
    if isinstance(addr, str):
        return _text(addr)
    if not isinstance(addr, dict):
        return None
    parts = [_named(addr.get(k)) for k in ("addressLocality", "addressRegion", "addressCountry")]
    joined = ", ".join(p for p in parts if p)
    return joined or None


def _number(value: Any) -> str | None:
    if is_empty(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def format_salary(base_salary: Any) -> str | None:
    """
    Render schema.org baseSalary as display text.

    {"value": {"minValue": 50000, "maxValue": 80000, "currency": "PKR"}} -> "PKR 50000–80000"
    A single bound renders alone; a scalar value renders as-is.
    """
    if is_empty(base_salary):
        return None
    if not isinstance(base_salary, dict):
        return _text(base_salary)

    val = base_salary.get("value")
    if val is None and ("minValue" in base_salary or "maxValue" in base_salary):
        val = base_salary  # bare QuantitativeValue without the MonetaryAmount wrapper
    if isinstance(val, dict):
        lo, hi = _number(val.get("minValue")), _number(val.get("maxValue"))
        if lo and hi:
            amount = f"{lo}–{hi}"
        else:
            amount = first_non_empty([_number(val.get("value")), lo, hi]) or ""
        currency = _text(val.get("currency")) or _text(base_salary.get("currency")) or ""
        rendered = f"{currency} {amount}".strip()
        return rendered or None
    if not is_empty(val):
        return _number(val)
    return None


def _employment_type(value: Any) -> str | None:
    if isinstance(value, list):
        parts = [_text(v) for v in value]
        joined = ", ".join(p for p in parts if p)
        return joined or None
    return _text(value)


def _fields_from_node(node: dict[str, Any]) -> ExtractedFields:
    return ExtractedFields(
        title=_text(node.get("title")) or _text(node.get("name")),
        company=_named(node.get("hiringOrganization")),
        location=_location(node),
        salary=format_salary(node.get("baseSalary")),
        contract_type=_employment_type(node.get("employmentType")),
        description_html=_text(node.get("description")),
        date_posted=_text(node.get("datePosted")),
        valid_through=_text(node.get("validThrough")),
    )


def extract_structured(page: BeautifulSoup | str) -> ExtractedFields:
    """Fold every JobPosting node on the page into one ExtractedFields."""
    soup = as_soup(page)
    result = ExtractedFields()
    for idx, tag in enumerate(soup.find_all("script", attrs={"type": "application/ld+json"})):
        raw = tag.string or tag.get_text() or ""
        try:
            payload = _load_block(raw)
        except ValueError as e:
            log.debug("Skipping malformed JSON-LD block #%d: %s", idx, e)
            continue
        for node in _iter_nodes(payload):
            if _is_job_posting(node):
                result.fill_missing(_fields_from_node(node))
    return result
