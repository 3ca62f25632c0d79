"""
Markup-selector extraction for pages whose JSON-LD is missing or partial.

Each field has an ordered list of CSS selectors; the first one that matches
and yields non-empty content wins. Update the tables below when the site
template drifts.
"""

from __future__ import annotations

from bs4 import BeautifulSoup

from ..models import ExtractedFields
from ..normalize import clean_text
from .base import FieldRule, Strategy, as_soup

TITLE_SELECTORS = ("h1", "h2", ".job-title")
COMPANY_SELECTORS = (".company-name", ".cp-name", '[itemprop="hiringOrganization"]')
LOCATION_SELECTORS = (".location", ".job-location", '[itemprop="jobLocation"]')
SALARY_SELECTORS = (".salary", ".job-salary")
CONTRACT_TYPE_SELECTORS = (".job-type", ".employment-type")
DESCRIPTION_SELECTORS = (".job-description", "#job-description", '[itemprop="description"]')


def select_text(selector: str) -> Strategy:
    def _strategy(soup: BeautifulSoup) -> str | None:
        el = soup.select_one(selector)
        if el is None:
            return None
        return clean_text(el.get_text(" ")) or None

    return _strategy


def select_inner_html(selector: str) -> Strategy:
    def _strategy(soup: BeautifulSoup) -> str | None:
        el = soup.select_one(selector)
        if el is None:
            return None
        inner = el.decode_contents().strip()
        return inner or None

    return _strategy


def _text_rule(field: str, selectors: tuple[str, ...]) -> FieldRule:
    return FieldRule(field, tuple(select_text(s) for s in selectors))


RULES: tuple[FieldRule, ...] = (
    _text_rule("title", TITLE_SELECTORS),
    _text_rule("company", COMPANY_SELECTORS),
    _text_rule("location", LOCATION_SELECTORS),
    _text_rule("salary", SALARY_SELECTORS),
    _text_rule("contract_type", CONTRACT_TYPE_SELECTORS),
    FieldRule("description_html", tuple(select_inner_html(s) for s in DESCRIPTION_SELECTORS)),
)


def extract_fallback(page: BeautifulSoup | str, rules: tuple[FieldRule, ...] = RULES) -> ExtractedFields:
    soup = as_soup(page)
    out = ExtractedFields()
    for rule in rules:
        setattr(out, rule.field, rule.resolve(soup))
    return out
