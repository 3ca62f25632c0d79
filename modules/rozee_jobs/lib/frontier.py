"""
Work queue and run counters shared by the dispatcher, the workers and the sink.

Everything mutable goes through one re-entrant lock owned by RunState, so a
dedup check, a ceiling check and the matching counter update always happen
as one step no matter how many workers are running.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from collections import deque
from enum import Enum

from .models import FrontierTask, TaskKind


class Admission(str, Enum):
    ADMITTED = "admitted"
    DUPLICATE = "duplicate"
    CEILING = "ceiling"


class RunState:
    """
    Per-run counters. Discarded at the end of the run; nothing is persisted.

    enqueued_detail_count counts detail tasks that were admitted and have not
    settled yet (saved, discarded or abandoned), so
    saved_count + enqueued_detail_count is the number of postings the run has
    committed to.
    """

    def __init__(self, target_count: int) -> None:
        self.lock = threading.RLock()
        self.target_count = int(target_count)
        self.saved_count = 0
        self.enqueued_detail_count = 0
        self.seen_job_ids: set[str] = set()
        # diagnostics
        self.detail_tasks_admitted = 0
        self.list_pages_admitted = 0

    def target_reached(self) -> bool:
        with self.lock:
            return self.saved_count >= self.target_count

    def detail_capacity(self) -> int:
        with self.lock:
            return self.target_count - (self.saved_count + self.enqueued_detail_count)

    def reserve_detail(self) -> None:
        with self.lock:
            self.enqueued_detail_count += 1
            self.detail_tasks_admitted += 1

    def release_detail(self) -> None:
        """A detail task finished without producing a saved record."""
        with self.lock:
            if self.enqueued_detail_count > 0:
                self.enqueued_detail_count -= 1

    def commit_saved(self) -> bool:
        """
        Count one saved record and settle its detail slot in the same step.
        Returns False (and changes nothing) once the target is reached.
        """
        with self.lock:
            if self.saved_count >= self.target_count:
                return False
            self.saved_count += 1
            if self.enqueued_detail_count > 0:
                self.enqueued_detail_count -= 1
            return True

    def snapshot(self) -> dict[str, int]:
        with self.lock:
            return {
                "saved": self.saved_count,
                "enqueued_details": self.enqueued_detail_count,
                "seen_job_ids": len(self.seen_job_ids),
                "target": self.target_count,
            }


class Frontier:
    """
    FIFO of pending tasks with dedup on FrontierTask.dedup_key.

    Retries come back through `requeue` with a delay; once the delay expires
    they join the back of the FIFO.
    """

    def __init__(self, state: RunState, *, max_pages: int) -> None:
        self._state = state
        self._lock = state.lock
        self.max_pages = int(max_pages)
        self._queue: deque[FrontierTask] = deque()
        self._delayed: list[tuple[float, int, FrontierTask]] = []
        self._seq = itertools.count()
        self._seen: set[str] = set()

    # ---- admission ---------------------------------------------------------
    def enqueue(self, task: FrontierTask) -> Admission:
        with self._lock:
            if task.dedup_key in self._seen:
                return Admission.DUPLICATE
            self._seen.add(task.dedup_key)
            self._queue.append(task)
            return Admission.ADMITTED

    def admit_list(self, task: FrontierTask) -> Admission:
        if task.kind is not TaskKind.LIST:
            raise ValueError(f"admit_list() got a {task.kind.value} task")
        with self._lock:
            if (task.page_number or 1) > self.max_pages:
                return Admission.CEILING
            verdict = self.enqueue(task)
            if verdict is Admission.ADMITTED:
                self._state.list_pages_admitted += 1
            return verdict

    def admit_detail(self, task: FrontierTask) -> Admission:
        if task.kind is not TaskKind.DETAIL:
            raise ValueError(f"admit_detail() got a {task.kind.value} task")
        with self._lock:
            if task.dedup_key in self._seen or (task.job_id and task.job_id in self._state.seen_job_ids):
                return Admission.DUPLICATE
            if self._state.detail_capacity() <= 0:
                return Admission.CEILING
            self.enqueue(task)
            if task.job_id:
                self._state.seen_job_ids.add(task.job_id)
            self._state.reserve_detail()
            return Admission.ADMITTED

    def requeue(self, task: FrontierTask, *, delay: float, now: float) -> None:
        """Put a retry back; its dedup_key is already owned, so no dedup check."""
        with self._lock:
            if delay <= 0:
                self._queue.append(task)
            else:
                heapq.heappush(self._delayed, (now + delay, next(self._seq), task))

    # ---- consumption -------------------------------------------------------
    def dequeue(self, now: float) -> FrontierTask | None:
        with self._lock:
            while self._delayed and self._delayed[0][0] <= now:
                _, _, task = heapq.heappop(self._delayed)
                self._queue.append(task)
            return self._queue.popleft() if self._queue else None

    def next_delayed_in(self, now: float) -> float | None:
        """Seconds until the earliest delayed retry becomes ready; None if there is none."""
        with self._lock:
            if not self._delayed:
                return None
            return max(0.0, self._delayed[0][0] - now)

    def drain(self) -> list[FrontierTask]:
        """Remove and return everything still pending (used when the run stops early)."""
        with self._lock:
            pending = list(self._queue) + [t for _, _, t in sorted(self._delayed)]
            self._queue.clear()
            self._delayed.clear()
            return pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue) + len(self._delayed)

    def is_empty(self) -> bool:
        return len(self) == 0
