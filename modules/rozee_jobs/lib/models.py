from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any


class TaskKind(str, Enum):
    LIST = "LIST"
    DETAIL = "DETAIL"


@dataclass(frozen=True)
class FrontierTask:
    """
    One unit of crawl work. Created by the controller (seeds) or from a parsed
    list page; consumed once. A retry is a *new* task with attempt + 1 and the
    same dedup_key (see `retry`).
    """

    kind: TaskKind
    url: str
    dedup_key: str
    page_number: int | None = None
    keyword: str | None = None
    stream: str | None = None  # pagination chain: the keyword or "seed<N>"
    job_id: str | None = None
    attempt: int = 0

    @classmethod
    def list_page(cls, url: str, page_number: int, *, stream: str, keyword: str | None = None) -> FrontierTask:
        return cls(
            kind=TaskKind.LIST,
            url=url,
            dedup_key=f"list:{stream}:{page_number}",
            page_number=page_number,
            keyword=keyword,
            stream=stream,
        )

    @classmethod
    def detail(cls, url: str, job_id: str | None) -> FrontierTask:
        key = f"detail:{job_id}" if job_id else f"detail-url:{url}"
        return cls(kind=TaskKind.DETAIL, url=url, dedup_key=key, job_id=job_id)

    def retry(self) -> FrontierTask:
        return replace(self, attempt=self.attempt + 1)


@dataclass(frozen=True)
class Page:
    """Fetched page content as returned by a fetch capability."""

    status_code: int
    body: str
    url: str = ""


class FetchError(Exception):
    """Transport-level failure raised by a fetch capability (DNS, reset, proxy...)."""


class FetchTimeout(FetchError):
    """The request exceeded its per-request timeout."""


@dataclass
class ExtractedFields:
    """
    Partial record produced by one extractor. Every member is optional and
    independent of the others.
    """

    title: str | None = None
    company: str | None = None
    location: str | None = None
    salary: str | None = None
    contract_type: str | None = None
    description_html: str | None = None
    date_posted: str | None = None
    valid_through: str | None = None

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def fill_missing(self, other: ExtractedFields) -> None:
        """First-non-null-wins: copy only the fields that are still empty here."""
        for name in self.names():
            if _is_empty(getattr(self, name)):
                value = getattr(other, name)
                if not _is_empty(value):
                    setattr(self, name, value)

    def is_empty(self) -> bool:
        return all(_is_empty(getattr(self, n)) for n in self.names())


@dataclass(frozen=True)
class JobRecord:
    """
    Fully merged, normalized posting. This is the output wire format: keep the
    field names and order stable.
    """

    source: str
    job_id: str | None
    url: str
    title: str
    company: str | None
    location: str
    salary: str | None
    contract_type: str | None
    description_html: str | None
    description_text: str
    date_posted: str | None
    valid_through: str | None
    scraped_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FailureKind(str, Enum):
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"
    NO_TITLE = "no_title"
    TARGET_REACHED = "target_reached"
    UNEXPECTED = "unexpected"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE


_RETRYABLE = frozenset({FailureKind.BLOCKED, FailureKind.TIMEOUT, FailureKind.HTTP_STATUS, FailureKind.TRANSPORT})


@dataclass(frozen=True)
class TaskResult:
    """
    Outcome of one pass of the per-task pipeline.
    - record: set only when the sink accepted the record
    - failure: None on success
    - discovered/enqueued: list-page link counts (0 for detail tasks)
    """

    task: FrontierTask
    record: JobRecord | None = None
    failure: FailureKind | None = None
    detail: str = ""
    discovered: int = 0
    enqueued: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class RunSummary:
    saved: int = 0
    detail_tasks: int = 0
    list_pages: int = 0
    discarded: int = 0
    abandoned: int = 0
    retries: int = 0
    dropped: int = 0
    persist_failures: int = 0
    stop_reason: str = ""
    total_us: int = 0
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
