"""SQLite analytics DB: chat run lineage."""
import json
import sqlite3
from pathlib import Path

from emotrack.utils.config import settings


def get_connection():
    Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(settings.sqlite_path)


def init_analytics_schema(conn):
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS chat_runs (
            run_id TEXT PRIMARY KEY,
            child_id TEXT,
            backend_used TEXT,
            is_fallback INTEGER,
            emotion TEXT,
            attempts TEXT,
            status TEXT,
            started_at TEXT,
            finished_at TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_chat_runs_started ON chat_runs(started_at);
        CREATE INDEX IF NOT EXISTS idx_chat_runs_backend ON chat_runs(backend_used);
    """)
    conn.commit()


def record_chat_run(
    conn,
    run_id: str,
    child_id: str,
    backend_used: str,
    is_fallback: bool,
    emotion: str,
    attempts: list[dict],
    status: str,
    started_at: str,
    finished_at: str = None,
):
    conn.execute(
        """
        INSERT OR REPLACE INTO chat_runs
            (run_id, child_id, backend_used, is_fallback, emotion, attempts, status, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (run_id, child_id, backend_used, int(is_fallback), emotion, json.dumps(attempts), status, started_at, finished_at),
    )
    conn.commit()


def fetch_chat_runs(conn, limit: int = 20) -> list[tuple]:
    cur = conn.execute(
        """
        SELECT run_id, child_id, backend_used, is_fallback, emotion, attempts, status, started_at, finished_at
        FROM chat_runs ORDER BY started_at DESC LIMIT ?
        """,
        (limit,),
    )
    return cur.fetchall()


def get_backend_usage(conn) -> list[tuple]:
    """Return (backend_used, run_count) sorted by run count desc."""
    cur = conn.execute(
        "SELECT backend_used, COUNT(*) AS total FROM chat_runs GROUP BY backend_used ORDER BY total DESC"
    )
    return cur.fetchall()
