"""
Default persist collaborators: an append-only JSON-lines dataset and an
optional append-only SQLite table. The crawler only sees `persist(batch)`.
"""

from __future__ import annotations

import contextlib
import json
import os
import sqlite3
import threading
from collections.abc import Callable, Sequence

from .config import Settings
from .logging_bridge import error as log_error
from .models import JobRecord

PersistFn = Callable[[Sequence[JobRecord]], None]


# ---- JSON lines ---------------------------------------------------------------


class JsonlDataset:
    """One JSON object per posting, appended in batches."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def __call__(self, batch: Sequence[JobRecord]) -> None:
        self.append(batch)

    def append(self, batch: Sequence[JobRecord]) -> int:
        if not batch:
            return 0
        _ensure_dir(self.path)
        data = "".join(json.dumps(job.to_dict(), ensure_ascii=False) + "\n" for job in batch)
        with self._lock, open(self.path, "a", encoding="utf-8") as f:
            f.write(data)
        return len(batch)

    def read_all(self) -> list[dict]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]


# ---- SQLite -------------------------------------------------------------------


class SqliteStore:
    """
    Append-only `jobs` table. No uniqueness constraint: every accepted record
    of every run is kept, dedup is a per-run concern upstream.
    """

    def __init__(self, sqlite_path: str) -> None:
        self.sqlite_path = sqlite_path
        init_db(sqlite_path)

    def __call__(self, batch: Sequence[JobRecord]) -> None:
        self.append(batch)

    def append(self, batch: Sequence[JobRecord]) -> int:
        if not batch:
            return 0
        rows = [
            (j.source, j.job_id, j.url, j.title, j.scraped_at, json.dumps(j.to_dict(), ensure_ascii=False))
            for j in batch
        ]
        try:
            with contextlib.closing(_connect(self.sqlite_path)) as conn:
                _apply_pragmas(conn)
                cur = conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
                cur.executemany(
                    """
                    INSERT INTO jobs (source, job_id, url, title, scraped_at_utc, payload)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                conn.commit()
        except Exception as e:
            # Surface to caller, but also log a structured error.
            log_error({
                "component": "rozee_jobs.storage",
                "op": "sqlite_append",
                "sqlite_path": self.sqlite_path,
                "batch_size": len(rows),
                "error": repr(e),
            })
            raise
        return len(rows)


def init_db(sqlite_path: str) -> None:
    """
    Ensure the SQLite database and schema exist.
    Safe to call multiple times.
    """
    _ensure_dir(sqlite_path)
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _apply_pragmas(conn)
        _ensure_schema(conn)


def count_rows(sqlite_path: str) -> int:
    """Return total rows in jobs table; 0 if DB missing/empty."""
    if not os.path.exists(sqlite_path):
        return 0
    with contextlib.closing(_connect(sqlite_path)) as conn:
        _ensure_schema(conn)
        (n,) = conn.execute("SELECT COUNT(*) FROM jobs").fetchone()
    return int(n or 0)


def reset_db(sqlite_path: str) -> None:
    """
    Remove the DB file entirely (for pytest fixtures).
    Safe if it doesn't exist.
    """
    with contextlib.suppress(FileNotFoundError):
        os.remove(sqlite_path)


# ---- Composition ----------------------------------------------------------------


def build_persist(settings: Settings) -> PersistFn:
    """
    Persist callable writing each batch to every configured store
    (dataset_path and/or sqlite_path). Every store is attempted even when
    an earlier one fails; the first failure is re-raised afterwards.
    """
    stores: list[PersistFn] = []
    if settings.dataset_path:
        stores.append(JsonlDataset(settings.dataset_path))
    if settings.sqlite_path:
        stores.append(SqliteStore(settings.sqlite_path))

    def _persist(batch: Sequence[JobRecord]) -> None:
        first_error: Exception | None = None
        for store in stores:
            try:
                store(batch)
            except Exception as e:
                log_error({
                    "component": "rozee_jobs.storage",
                    "op": "persist_store",
                    "store": type(store).__name__,
                    "batch_size": len(batch),
                    "error": repr(e),
                })
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    return _persist


# ---- Internal utilities -----------------------------------------------------


def _ensure_dir(path: str) -> None:
    d = os.path.dirname(os.path.abspath(path)) or "."
    os.makedirs(d, exist_ok=True)


def _connect(sqlite_path: str) -> sqlite3.Connection:
    # isolation_level=None gives autocommit mode; we'll manage transactions explicitly.
    return sqlite3.connect(sqlite_path, timeout=30.0, isolation_level=None, check_same_thread=False)


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS jobs (
          id INTEGER PRIMARY KEY,
          source TEXT NOT NULL,
          job_id TEXT,
          url    TEXT NOT NULL,
          title  TEXT NOT NULL,
          scraped_at_utc TEXT NOT NULL,
          payload TEXT NOT NULL
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS ix_jobs_job_id ON jobs (job_id);")
