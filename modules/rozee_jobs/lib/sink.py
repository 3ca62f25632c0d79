from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from . import logging_bridge
from .frontier import RunState
from .models import JobRecord

log = logging.getLogger(__name__)

PersistFn = Callable[[Sequence[JobRecord]], None]

DEFAULT_BATCH_SIZE = 10


class ResultSink:
    """
    Batches accepted records and hands each batch to `persist`.

    No dedup happens here; the frontier already guarantees one detail task per
    posting id. Call `close()` at the end of the run to push the partial batch.
    """

    def __init__(self, persist: PersistFn, state: RunState, *, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be >= 1")
        self._persist = persist
        self._state = state
        self.batch_size = int(batch_size)
        self._batch: list[JobRecord] = []
        self._flush_lock = threading.Lock()
        self.persisted_count = 0
        self.failed_batches = 0

    def record(self, job: JobRecord) -> bool:
        """Accept one record. Returns False once the target count is reached."""
        with self._state.lock:
            if not self._state.commit_saved():
                return False
            self._batch.append(job)
            saved = self._state.saved_count
            should_flush = len(self._batch) >= self.batch_size or saved >= self._state.target_count
        if saved % 10 == 0 or saved >= self._state.target_count:
            log.info("Saved %d jobs", saved)
        if should_flush:
            self.flush()
        return True

    def flush(self) -> int:
        """Persist the current batch (if any). Returns the number of records handed over."""
        with self._state.lock:
            batch, self._batch = self._batch, []
        if not batch:
            return 0
        # persist() runs outside the state lock; flushes are serialized among themselves.
        with self._flush_lock:
            try:
                self._persist(list(batch))
            except Exception as e:
                self.failed_batches += 1
                logging_bridge.error({
                    "component": "rozee_jobs.sink",
                    "op": "persist",
                    "batch_size": len(batch),
                    "job_ids": [j.job_id for j in batch],
                    "error": repr(e),
                })
                return 0
            self.persisted_count += len(batch)
        return len(batch)

    def close(self) -> int:
        return self.flush()

    def pending(self) -> int:
        with self._state.lock:
            return len(self._batch)
