import sqlite3

import pytest

from conftest import ScriptedModel, quota_error
from emotrack.db import init_analytics_schema, record_chat_run
from emotrack.pipeline.stores import record_lineage
from emotrack.utils.config import settings
from emotrack.utils.errors import BackendFatalError
from emotrack.utils.observability import detect_anomalies, get_chat_run_summary, log_chat_metrics
from emotrack.utils.schemas import ConversationRequest


@pytest.fixture
def conn():
    c = sqlite3.connect(":memory:")
    init_analytics_schema(c)
    yield c
    c.close()


def _run(conn, run_id, backend, is_fallback, status, attempts=(), started="2026-01-01T10:00:00+00:00"):
    record_chat_run(
        conn,
        run_id=run_id,
        child_id="c1",
        backend_used=backend,
        is_fallback=is_fallback,
        emotion="neutre",
        attempts=list(attempts),
        status=status,
        started_at=started,
        finished_at="2026-01-01T10:00:01.500000+00:00",
    )


def test_summary_reads_runs_with_latency(conn):
    _run(conn, "r1", "gemini-2.0-flash-lite", False, "success", [{"model": "gemini-2.0-flash-lite", "outcome": "success"}])

    [run] = get_chat_run_summary(conn=conn)

    assert run["backend_used"] == "gemini-2.0-flash-lite"
    assert run["is_fallback"] is False
    assert run["latency_ms"] == 1500.0
    assert run["attempts"][0]["outcome"] == "success"


def test_detect_anomalies_kinds():
    runs = [
        {"run_id": "a", "status": "error", "is_fallback": True, "attempts": []},
        {"run_id": "b", "status": "fallback", "is_fallback": True, "attempts": [{"model": "m1", "outcome": "fatal"}]},
        {"run_id": "c", "status": "fallback", "is_fallback": True, "attempts": [{"model": "m1", "outcome": "quota"}]},
        {"run_id": "d", "status": "success", "is_fallback": False, "attempts": []},
    ]

    kinds = [a["type"] for a in detect_anomalies(runs)]

    assert kinds == ["pipeline_error", "backend_aborted", "backends_exhausted", "high_fallback_rate"]


def test_no_anomalies_for_healthy_runs():
    runs = [{"run_id": "a", "status": "success", "is_fallback": False, "attempts": []}]
    assert detect_anomalies(runs) == []


def test_log_chat_metrics_reports_backend_usage(conn):
    _run(conn, "r1", "m1", False, "success", started="2026-01-01T10:00:00+00:00")
    _run(conn, "r2", "m1", False, "success", started="2026-01-01T10:01:00+00:00")
    _run(conn, "r3", "fallback-local", True, "fallback", started="2026-01-01T10:02:00+00:00")

    report = log_chat_metrics(conn=conn)

    assert report["backend_usage"] == [{"backend_used": "m1", "runs": 2}, {"backend_used": "fallback-local", "runs": 1}]
    assert [r["run_id"] for r in report["runs"]] == ["r3", "r2", "r1"]


def test_pipeline_lineage_lands_in_sqlite(make_pipeline, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "analytics.db"))
    pipeline = make_pipeline(
        ScriptedModel("m1", error=quota_error("m1")),
        ScriptedModel("m2", error=BackendFatalError("boom", model="m2")),
        run_log=record_lineage,
    )

    pipeline.respond(ConversationRequest(message="Bonjour", child_id="c1"))

    [run] = get_chat_run_summary()
    assert run["backend_used"] == "fallback-local"
    assert run["status"] == "fallback"
    assert [a["outcome"] for a in run["attempts"]] == ["quota", "fatal"]
    assert detect_anomalies([run])[0] == {"type": "backend_aborted", "run_id": run["run_id"], "model": "m2"}


class TrackedConnection:
    """sqlite3 connection wrapper that remembers whether it was closed."""

    def __init__(self):
        self._conn = sqlite3.connect(":memory:")
        self.closed = False

    def __getattr__(self, name):
        return getattr(self._conn, name)

    def close(self):
        self.closed = True
        self._conn.close()


def test_metrics_close_the_connection_they_open(monkeypatch):
    opened = []

    def connect():
        opened.append(TrackedConnection())
        return opened[-1]

    monkeypatch.setattr("emotrack.utils.observability.get_connection", connect)

    log_chat_metrics()
    get_chat_run_summary()

    assert len(opened) == 2
    assert all(c.closed for c in opened)


def test_metrics_leave_a_passed_connection_open(conn):
    log_chat_metrics(conn=conn)
    assert conn.execute("SELECT COUNT(*) FROM chat_runs").fetchone() == (0,)
