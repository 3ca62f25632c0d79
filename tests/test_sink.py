# tests/test_sink.py
import json
import logging

import pytest

from modules.rozee_jobs.lib.frontier import RunState
from modules.rozee_jobs.lib.models import JobRecord
from modules.rozee_jobs.lib.sink import ResultSink
from service import logging_utils


def _job(i):
    return JobRecord(
        source="rozee.pk",
        job_id=str(i),
        url=f"https://www.rozee.pk/x-jobs-{i}",
        title=f"Job {i}",
        company=None,
        location="",
        salary=None,
        contract_type=None,
        description_html=None,
        description_text="",
        date_posted=None,
        valid_through=None,
        scraped_at="2025-01-01T00:00:00Z",
    )


def test_batches_flush_at_size_and_on_close(persisted):
    sink = ResultSink(persisted, RunState(100), batch_size=3)
    for i in range(7):
        assert sink.record(_job(i))
    assert [len(b) for b in persisted.batches] == [3, 3]
    assert sink.pending() == 1
    assert sink.close() == 1
    assert [len(b) for b in persisted.batches] == [3, 3, 1]
    assert sink.persisted_count == 7
    assert sink.close() == 0


def test_target_forces_flush_and_refuses_extra(persisted):
    state = RunState(2)
    sink = ResultSink(persisted, state, batch_size=10)
    assert sink.record(_job(1))
    assert persisted.batches == []
    assert sink.record(_job(2))
    assert [j.job_id for j in persisted.records] == ["1", "2"]
    assert sink.record(_job(3)) is False
    assert state.saved_count == 2
    assert sink.pending() == 0


def test_progress_logged_every_ten(persisted, caplog):
    sink = ResultSink(persisted, RunState(100), batch_size=50)
    with caplog.at_level(logging.INFO, logger="modules.rozee_jobs.lib.sink"):
        for i in range(20):
            sink.record(_job(i))
    msgs = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Saved")]
    assert msgs == ["Saved 10 jobs", "Saved 20 jobs"]


def test_persist_failure_is_logged_not_raised(persisted):
    persisted.fail = True
    sink = ResultSink(persisted, RunState(5), batch_size=1)
    assert sink.record(_job(1)) is True
    assert sink.failed_batches == 1
    assert sink.persisted_count == 0

    with open(logging_utils.get_error_log_path(), encoding="utf-8") as f:
        rec = json.loads(f.readline())
    assert rec["op"] == "persist"
    assert rec["job_ids"] == ["1"]
    assert "disk full" in rec["error"]


def test_invalid_batch_size(persisted):
    with pytest.raises(ValueError):
        ResultSink(persisted, RunState(1), batch_size=0)
