from __future__ import annotations

from .extractors.base import first_non_empty
from .models import ExtractedFields, JobRecord
from .normalize import clean_text, html_to_text, normalize_location
from .utils import now_iso

SOURCE = "rozee.pk"

# Fields recoverable from markup; JSON-LD always wins when it has a value.
MERGED_FIELDS = ("title", "company", "location", "salary", "contract_type", "description_html")
# No markup source exists for these.
STRUCTURED_ONLY_FIELDS = ("date_posted", "valid_through")


def merge_fields(structured: ExtractedFields, fallback: ExtractedFields) -> ExtractedFields:
    merged = ExtractedFields()
    for name in MERGED_FIELDS:
        setattr(merged, name, first_non_empty([getattr(structured, name), getattr(fallback, name)]))
    for name in STRUCTURED_ONLY_FIELDS:
        setattr(merged, name, first_non_empty([getattr(structured, name)]))
    return merged


def _or_none(text: str) -> str | None:
    return text or None


def build_record(
    merged: ExtractedFields,
    *,
    url: str,
    job_id: str | None,
    scraped_at: str | None = None,
) -> JobRecord | None:
    """
    Normalize merged fields into a JobRecord. Returns None when the title is
    empty; such postings are never persisted.
    """
    title = clean_text(merged.title)
    if not title:
        return None
    description_html = merged.description_html.strip() if merged.description_html else None
    return JobRecord(
        source=SOURCE,
        job_id=job_id,
        url=url,
        title=title,
        company=_or_none(clean_text(merged.company)),
        location=normalize_location(merged.location),
        salary=_or_none(clean_text(merged.salary)),
        contract_type=_or_none(clean_text(merged.contract_type)),
        description_html=description_html or None,
        description_text=html_to_text(description_html),
        date_posted=_or_none(clean_text(merged.date_posted)),
        valid_through=_or_none(clean_text(merged.valid_through)),
        scraped_at=scraped_at or now_iso(),
    )
