"""Write chat run lineage to SQLite."""
from emotrack.db import get_connection, init_analytics_schema, record_chat_run
from emotrack.pipeline.responder import ChatOutcome


def record_lineage(outcome: ChatOutcome) -> None:
    """Persist run_id, backend, fallback flag, attempts and timestamps to chat_runs."""
    conn = get_connection()
    try:
        init_analytics_schema(conn)
        record_chat_run(
            conn,
            run_id=outcome.run_id,
            child_id=outcome.child_id,
            backend_used=outcome.result.backend_used,
            is_fallback=outcome.result.is_fallback,
            emotion=outcome.result.emotion.value,
            attempts=outcome.attempts,
            status=outcome.status,
            started_at=outcome.started_at.isoformat(),
            finished_at=outcome.finished_at.isoformat(),
        )
    finally:
        conn.close()
