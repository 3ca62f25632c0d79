"""
Crawl controller: seeds the frontier, runs the per-task pipeline on a worker
pool and feeds discovered links back.

Features:
  - LIST tasks: block detection, link discovery, ordered pagination per stream
  - DETAIL tasks: JSON-LD + markup extraction, merge, title gate, batched persist
  - Retryable failures requeued with exponential backoff, then abandoned
  - Concurrency that widens on success and narrows on retryable failures
  - Dependency injection for fetch / persist / block predicate (tests, other backends)
  - Structured activity logging via `logging_bridge`
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from bs4 import BeautifulSoup

from . import logging_bridge
from .blocking import BlockPredicate, phrase_predicate
from .config import ConfigError, Settings, build_search_url, paginate_url
from .extractors import extract_fallback, extract_structured
from .frontier import Admission, Frontier, RunState
from .http_client import browser_headers
from .list_parser import parse_list_page
from .merge import build_record, merge_fields
from .models import (
    FailureKind,
    FetchError,
    FetchTimeout,
    FrontierTask,
    Page,
    RunSummary,
    TaskKind,
    TaskResult,
)
from .normalize import extract_job_id, looks_like_detail_url
from .sink import PersistFn, ResultSink

log = logging.getLogger(__name__)

FetchFn = Callable[..., Page]  # fetch(url, headers) -> Page
HeaderFactory = Callable[[], Mapping[str, str]]


class CrawlController:
    def __init__(
        self,
        settings: Settings,
        *,
        fetch: FetchFn,
        persist: PersistFn,
        is_blocked: BlockPredicate | None = None,
        headers: HeaderFactory = browser_headers,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._fetch_fn = fetch
        self._headers = headers
        self._sleep = sleep
        self._clock = clock
        self.is_blocked = is_blocked or phrase_predicate(settings.block_phrases)

        self.state = RunState(settings.results_wanted)
        self.frontier = Frontier(self.state, max_pages=settings.max_pages)
        self.sink = ResultSink(persist, self.state, batch_size=settings.batch_size)
        self.summary = RunSummary()
        self._limit = settings.min_concurrency
        # stream -> next LIST task held back while the detail ceiling is full
        self._parked: dict[str, FrontierTask] = {}

    # =========================================================================
    # SEEDING
    # =========================================================================
    def seed(self) -> int:
        """Enqueue the initial tasks. Raises ConfigError if none can be built."""
        admitted = 0
        if self.settings.start_urls:
            for idx, url in enumerate(self.settings.start_urls):
                if looks_like_detail_url(url):
                    verdict = self.frontier.admit_detail(FrontierTask.detail(url, extract_job_id(url)))
                else:
                    verdict = self.frontier.admit_list(FrontierTask.list_page(url, 1, stream=f"seed{idx}"))
                admitted += verdict is Admission.ADMITTED
        else:
            keyword = self.settings.keyword
            task = FrontierTask.list_page(
                self.settings.search_url(1),
                1,
                stream=f"q:{keyword or 'all'}",
                keyword=keyword,
            )
            admitted += self.frontier.admit_list(task) is Admission.ADMITTED
        if not admitted:
            raise ConfigError("No seed task could be constructed from the configuration.")
        return admitted

    # =========================================================================
    # MAIN LOOP
    # =========================================================================
    def run(self) -> RunSummary:
        start_ns = time.perf_counter_ns()
        self.seed()

        logging_bridge.activity({
            "component": "rozee_jobs.engine",
            "op": "start",
            "keyword": self.settings.keyword,
            "start_urls": self.settings.start_urls,
            "target": self.settings.results_wanted,
            "max_pages": self.settings.max_pages,
            "concurrency": [self.settings.min_concurrency, self.settings.max_concurrency],
        })

        if self.settings.skip_network:
            self.summary.dropped = len(self.frontier.drain())
            self.summary.stop_reason = "skip_network"
        else:
            self._dispatch()
        self.sink.close()
        return self._finish(start_ns)

    def _dispatch(self) -> None:
        with ThreadPoolExecutor(
            max_workers=self.settings.max_concurrency, thread_name_prefix="rozee-worker"
        ) as pool:
            in_flight: dict[Future, FrontierTask] = {}
            while True:
                stopping = self.state.target_reached()
                if not stopping:
                    while len(in_flight) < self._limit:
                        task = self.frontier.dequeue(self._clock())
                        if task is None:
                            break
                        in_flight[pool.submit(self.process, task)] = task

                if not in_flight:
                    if stopping:
                        self.summary.stop_reason = "target_reached"
                        break
                    delay = self.frontier.next_delayed_in(self._clock())
                    if delay is None:
                        self.summary.stop_reason = "frontier_exhausted"
                        break
                    self._sleep(delay)
                    continue

                # Wake up for a due retry only when there is a free slot to run it.
                timeout = None
                if not stopping and len(in_flight) < self._limit:
                    timeout = self.frontier.next_delayed_in(self._clock())
                done, _ = wait(in_flight, timeout=timeout, return_when=FIRST_COMPLETED)
                for fut in done:
                    self._settle(in_flight.pop(fut), fut)

            leftover = self.frontier.drain()
            for task in leftover:
                if task.kind is TaskKind.DETAIL:
                    self.state.release_detail()
            self.summary.dropped = len(leftover) + len(self._parked)
            self._parked.clear()

    def _settle(self, task: FrontierTask, fut: Future) -> None:
        """Runs on the dispatcher thread: retry bookkeeping and concurrency scaling."""
        try:
            result: TaskResult = fut.result()
        except Exception as e:  # task bodies report failures via TaskResult; this is a bug
            log.exception("Unhandled error while processing %s", task.url)
            result = TaskResult(task=task, failure=FailureKind.UNEXPECTED, detail=repr(e))

        failure = result.failure
        if failure is None:
            self._limit = min(self.settings.max_concurrency, self._limit + 1)
            return

        if failure.retryable:
            self._limit = max(self.settings.min_concurrency, self._limit - 1)
            if task.attempt < self.settings.max_request_retries:
                delay = self.settings.retry_backoff_seconds * (2**task.attempt)
                self.frontier.requeue(task.retry(), delay=delay, now=self._clock())
                self.summary.retries += 1
                log.warning(
                    "%s %s failed (%s: %s); retry %d/%d in %.1fs",
                    task.kind.value, task.url, failure.value, result.detail,
                    task.attempt + 1, self.settings.max_request_retries, delay,
                )
                return
            self.summary.abandoned += 1
            logging_bridge.error({
                "component": "rozee_jobs.engine",
                "op": "abandoned",
                "kind": task.kind.value,
                "url": task.url,
                "failure": failure.value,
                "detail": result.detail,
                "attempts": task.attempt + 1,
            })
            self.summary.errors.append(f"{task.url}: {failure.value} {result.detail}".strip())
        elif failure is FailureKind.NO_TITLE:
            self.summary.discarded += 1
        elif failure is FailureKind.UNEXPECTED:
            self.summary.abandoned += 1
            logging_bridge.error({
                "component": "rozee_jobs.engine",
                "op": "task_error",
                "kind": task.kind.value,
                "url": task.url,
                "error": result.detail,
            })
            self.summary.errors.append(f"{task.url}: {result.detail}")

        if task.kind is TaskKind.DETAIL:
            self._release_detail_slot()

    # =========================================================================
    # PER-TASK PIPELINE (worker threads)
    # =========================================================================
    def process(self, task: FrontierTask) -> TaskResult:
        if task.kind is TaskKind.LIST:
            return self._process_list(task)
        return self._process_detail(task)

    def _fetch(self, task: FrontierTask) -> Page | TaskResult:
        if self.settings.delay_seconds > 0:
            self._sleep(self.settings.delay_seconds)
        try:
            page = self._fetch_fn(task.url, self._headers())
        except FetchTimeout as e:
            return TaskResult(task=task, failure=FailureKind.TIMEOUT, detail=str(e))
        except FetchError as e:
            return TaskResult(task=task, failure=FailureKind.TRANSPORT, detail=str(e))
        if page.status_code != 200:
            return TaskResult(task=task, failure=FailureKind.HTTP_STATUS, detail=f"status {page.status_code}")
        return page

    def _process_list(self, task: FrontierTask) -> TaskResult:
        fetched = self._fetch(task)
        if isinstance(fetched, TaskResult):
            return fetched
        soup = BeautifulSoup(fetched.body or "", "html.parser")
        if self.is_blocked(soup):
            log.warning("Page blocked: %s", task.url)
            return TaskResult(task=task, failure=FailureKind.BLOCKED, detail="block phrase in body")

        base_url = fetched.url or task.url
        listing = parse_list_page(soup, base_url)

        enqueued = 0
        hit_ceiling = False
        for url in listing.detail_urls:
            job_id = extract_job_id(url)
            if not job_id:
                continue
            verdict = self.frontier.admit_detail(FrontierTask.detail(url, job_id))
            if verdict is Admission.CEILING:
                hit_ceiling = True
                break
            enqueued += verdict is Admission.ADMITTED

        next_page = None
        if self._should_paginate(found=len(listing.detail_urls), enqueued=enqueued, hit_ceiling=hit_ceiling):
            next_page = self._queue_next_page(self._next_list_task(task, listing.next_url))

        snap = self.state.snapshot()
        log.info(
            "LIST #%s | found=%d, enqueued=%d, saved=%d",
            task.page_number, len(listing.detail_urls), enqueued, snap["saved"],
        )
        logging_bridge.activity({
            "component": "rozee_jobs.engine",
            "op": "list_page",
            "url": task.url,
            "page": task.page_number,
            "stream": task.stream,
            "found": len(listing.detail_urls),
            "enqueued": enqueued,
            "next_page": next_page.url if next_page else None,
            **snap,
        })
        return TaskResult(task=task, discovered=len(listing.detail_urls), enqueued=enqueued)

    def _should_paginate(self, *, found: int, enqueued: int, hit_ceiling: bool = False) -> bool:
        if hit_ceiling:
            return True
        threshold = self.settings.min_new_to_paginate
        if threshold <= 0:
            return found > 0
        return enqueued >= threshold

    def _queue_next_page(self, candidate: FrontierTask | None) -> FrontierTask | None:
        """
        Admit the next page of a stream, or park it while the detail ceiling is
        full. A parked page is admitted once a detail slot is released.
        """
        if candidate is None:
            return None
        with self.state.lock:
            if self.state.detail_capacity() <= 0:
                self._parked[candidate.stream or ""] = candidate
                return None
            if self.frontier.admit_list(candidate) is Admission.ADMITTED:
                return candidate
        return None

    def _release_detail_slot(self) -> None:
        """Settle a detail task that saved nothing; hand its slot to a parked stream."""
        with self.state.lock:
            self.state.release_detail()
            while self._parked and not self.state.target_reached() and self.state.detail_capacity() > 0:
                stream = next(iter(self._parked))
                task = self._parked.pop(stream)
                if self.frontier.admit_list(task) is Admission.ADMITTED:
                    log.info("Resuming %s at page %s", stream, task.page_number)
                    break

    def _next_list_task(self, task: FrontierTask, discovered_next: str | None) -> FrontierTask | None:
        page_number = (task.page_number or 1) + 1
        if page_number > self.settings.max_pages:
            return None
        if task.keyword is not None:
            url = build_search_url(task.keyword, page_number)
        else:
            url = discovered_next or paginate_url(task.url, page_number)
        if not url:
            return None
        return FrontierTask.list_page(url, page_number, stream=task.stream or "", keyword=task.keyword)

    def _process_detail(self, task: FrontierTask) -> TaskResult:
        if self.state.target_reached():
            return TaskResult(task=task, failure=FailureKind.TARGET_REACHED)
        fetched = self._fetch(task)
        if isinstance(fetched, TaskResult):
            return fetched

        soup = BeautifulSoup(fetched.body or "", "html.parser")
        merged = merge_fields(extract_structured(soup), extract_fallback(soup))
        job = build_record(merged, url=task.url, job_id=task.job_id or extract_job_id(task.url))
        if job is None:
            log.debug("Skipping - no title: %s", task.url)
            return TaskResult(task=task, failure=FailureKind.NO_TITLE)

        if not self.sink.record(job):
            return TaskResult(task=task, failure=FailureKind.TARGET_REACHED)
        return TaskResult(task=task, record=job)

    # =========================================================================
    # SUMMARY
    # =========================================================================
    def _finish(self, start_ns: int) -> RunSummary:
        s = self.summary
        s.saved = self.state.saved_count
        s.detail_tasks = self.state.detail_tasks_admitted
        s.list_pages = self.state.list_pages_admitted
        s.persist_failures = self.sink.failed_batches
        s.total_us = int((time.perf_counter_ns() - start_ns) // 1000)

        logging_bridge.activity({
            "component": "rozee_jobs.engine",
            "op": "summary",
            "keyword": self.settings.keyword,
            **{k: v for k, v in s.as_dict().items() if k != "errors"},
            "error_count": len(s.errors),
        })
        if s.saved == 0 and s.stop_reason != "skip_network":
            log.warning("No jobs scraped. The site may be blocking or its structure changed.")
            logging_bridge.activity({
                "component": "rozee_jobs.engine",
                "op": "no_results",
                "keyword": self.settings.keyword,
                "stop_reason": s.stop_reason,
            })
        else:
            log.info("Scraping complete. Total jobs saved: %d", s.saved)
        return s


# =============================================================================
# ENTRY POINT
# =============================================================================
def run_once(
    settings: Settings,
    *,
    fetch: FetchFn | None = None,
    persist: PersistFn | None = None,
    is_blocked: BlockPredicate | None = None,
    **controller_kwargs,
) -> RunSummary:
    """
    Run one crawl to completion.

    Args:
        settings: validated run configuration.
        fetch: optional fetch capability override (default: HttpClient.fetch).
        persist: optional persist override (default: storage.build_persist(settings)).
        is_blocked: optional block predicate override.
    """
    client = None
    if fetch is None:
        from .http_client import HttpClient

        client = HttpClient(timeout=settings.request_timeout, proxy_url=settings.proxy_url)
        fetch = client.fetch
    if persist is None:
        from .storage import build_persist

        persist = build_persist(settings)

    controller = CrawlController(settings, fetch=fetch, persist=persist, is_blocked=is_blocked, **controller_kwargs)
    try:
        return controller.run()
    finally:
        if client is not None:
            client.close()
