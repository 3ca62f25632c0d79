# tests/test_storage.py
import json
import sqlite3

import pytest

from modules.rozee_jobs.lib.config import Settings
from modules.rozee_jobs.lib.merge import build_record
from modules.rozee_jobs.lib.models import ExtractedFields
from modules.rozee_jobs.lib.storage import JsonlDataset, SqliteStore, build_persist, count_rows, init_db, reset_db


def _rec(i, title=None):
    return build_record(
        ExtractedFields(title=title or f"Job {i}", company="Acme", location="Lahore"),
        url=f"https://www.rozee.pk/acme-jobs-{i}",
        job_id=str(i),
        scraped_at="2025-01-01T00:00:00Z",
    )


def test_jsonl_append_and_read(tmp_path):
    ds = JsonlDataset(str(tmp_path / "nested" / "jobs.jsonl"))
    assert ds.read_all() == []
    assert ds.append([_rec(1), _rec(2, title="Développeur")]) == 2
    ds([_rec(3)])
    rows = ds.read_all()
    assert [r["job_id"] for r in rows] == ["1", "2", "3"]
    assert rows[1]["title"] == "Développeur"
    assert rows[0]["location"] == "Lahore"
    assert ds.append([]) == 0


def test_sqlite_is_append_only(tmp_path):
    dbp = str(tmp_path / "rz.db")
    reset_db(dbp)
    assert count_rows(dbp) == 0
    store = SqliteStore(dbp)
    store.append([_rec(1), _rec(2)])
    # same posting again in a later run is kept
    store([_rec(1)])
    assert count_rows(dbp) == 3

    with sqlite3.connect(dbp) as conn:
        payloads = [json.loads(p) for (p,) in conn.execute("SELECT payload FROM jobs ORDER BY id")]
    assert [p["job_id"] for p in payloads] == ["1", "2", "1"]
    reset_db(dbp)
    assert count_rows(dbp) == 0


def test_init_db_is_idempotent(tmp_path):
    dbp = str(tmp_path / "rz.db")
    init_db(dbp)
    init_db(dbp)
    assert count_rows(dbp) == 0


def test_sqlite_error_is_logged_and_raised(tmp_path, monkeypatch):
    store = SqliteStore(str(tmp_path / "rz.db"))

    def boom(*a, **k):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr("modules.rozee_jobs.lib.storage._connect", boom)
    with pytest.raises(sqlite3.OperationalError):
        store.append([_rec(1)])


def test_build_persist_writes_every_store(tmp_path):
    s = Settings(dataset_path=str(tmp_path / "a.jsonl"), sqlite_path=str(tmp_path / "a.db"))
    persist = build_persist(s)
    persist([_rec(1), _rec(2)])
    assert len(JsonlDataset(s.dataset_path).read_all()) == 2
    assert count_rows(s.sqlite_path) == 2


def test_build_persist_without_stores_is_a_noop(tmp_path):
    persist = build_persist(Settings(dataset_path=None))
    persist([_rec(1)])
    assert list(tmp_path.iterdir()) == []


def test_failing_store_does_not_starve_the_others(tmp_path):
    blocked = tmp_path / "as_dir.jsonl"
    blocked.mkdir()  # appending to a directory fails with an OSError
    s = Settings(dataset_path=str(blocked), sqlite_path=str(tmp_path / "b.db"))
    persist = build_persist(s)

    with pytest.raises(OSError):
        persist([_rec(1), _rec(2)])

    assert count_rows(s.sqlite_path) == 2
