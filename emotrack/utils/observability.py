"""Observability: chat run summary, backend usage and anomaly detection from SQLite lineage."""
import json
from datetime import datetime

from emotrack.db import get_connection, init_analytics_schema, fetch_chat_runs, get_backend_usage
from emotrack.utils.logger import logger

FALLBACK_RATE_THRESHOLD = 0.5


def _parse_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        return datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None


def get_chat_run_summary(limit: int = 20, conn=None) -> list[dict]:
    """Recent chat runs with latency_ms computed from started_at/finished_at."""
    owned = conn is None
    conn = conn or get_connection()
    try:
        init_analytics_schema(conn)
        rows = fetch_chat_runs(conn, limit)
    finally:
        if owned:
            conn.close()
    out = []
    for r in rows:
        run_id, child_id, backend_used, is_fallback, emotion, attempts, status, started_at, finished_at = r
        latency_ms = None
        start, end = _parse_ts(started_at), _parse_ts(finished_at)
        if start and end:
            latency_ms = round((end - start).total_seconds() * 1000, 2)
        out.append({
            "run_id": run_id,
            "child_id": child_id,
            "backend_used": backend_used,
            "is_fallback": bool(is_fallback),
            "emotion": emotion,
            "attempts": json.loads(attempts) if attempts else [],
            "status": status,
            "started_at": started_at,
            "finished_at": finished_at,
            "latency_ms": latency_ms,
        })
    return out


def detect_anomalies(run_summary: list[dict]) -> list[dict]:
    """Error-fallback runs, aborted backend sequences, and a high overall fallback rate."""
    anomalies = []
    for run in run_summary:
        if run["status"] == "error":
            anomalies.append({"type": "pipeline_error", "run_id": run["run_id"]})
        elif run["is_fallback"]:
            fatal = [a["model"] for a in run["attempts"] if a.get("outcome") == "fatal"]
            if fatal:
                anomalies.append({"type": "backend_aborted", "run_id": run["run_id"], "model": fatal[0]})
            else:
                anomalies.append({"type": "backends_exhausted", "run_id": run["run_id"]})
    if run_summary:
        rate = sum(1 for r in run_summary if r["is_fallback"]) / len(run_summary)
        if rate >= FALLBACK_RATE_THRESHOLD:
            anomalies.append({"type": "high_fallback_rate", "fallback_rate": round(rate, 2), "runs": len(run_summary)})
    return anomalies


def log_chat_metrics(limit: int = 20, conn=None) -> dict:
    """Log chat run status, backend usage and latency; report anomalies."""
    owned = conn is None
    conn = conn or get_connection()
    try:
        summary = get_chat_run_summary(limit=limit, conn=conn)
        usage = [{"backend_used": b, "runs": n} for b, n in get_backend_usage(conn)]
    finally:
        if owned:
            conn.close()
    anomalies = detect_anomalies(summary)
    if latencies := [r["latency_ms"] for r in summary if r.get("latency_ms") is not None]:
        logger.info("chat_latency", avg_ms=round(sum(latencies) / len(latencies), 2), max_ms=round(max(latencies), 2), run_count=len(latencies))
    logger.info("observability_summary", runs=len(summary), anomalies=len(anomalies), backend_usage=usage)
    return {"runs": summary, "backend_usage": usage, "anomalies": anomalies}
