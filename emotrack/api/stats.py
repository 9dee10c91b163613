"""Emotion statistics for one child: MongoDB aggregation, cached with Redis."""
import redis

from emotrack.db import EmotionRecordStore, cache_emotion_stats, get_cached_emotion_stats
from emotrack.utils.logger import measure_latency, log_anomaly


def _round(value, digits: int = 2):
    return round(value, digits) if value is not None else None


def summarize_emotion_stats(aggregates: dict) -> dict:
    """Flatten the per-emotion / per-source groups into the dashboard payload."""
    by_emotion = aggregates.get("by_emotion", [])
    by_source = aggregates.get("by_source", [])
    total = sum(g["count"] for g in by_emotion)

    distribution = {g["_id"]: g["count"] for g in by_emotion}
    emotions = [
        {
            "emotion": g["_id"],
            "count": g["count"],
            "percentage": round(g["count"] * 100 / total, 1) if total else 0.0,
            "avg_intensity": _round(g.get("avg_intensity")),
            "avg_confidence": _round(g.get("avg_confidence")),
        }
        for g in by_emotion
    ]

    weighted = [(g["avg_confidence"], g["count"]) for g in by_emotion if g.get("avg_confidence") is not None]
    weight = sum(n for _, n in weighted)
    avg_confidence = round(sum(c * n for c, n in weighted) / weight, 2) if weight else 0

    most_frequent = None
    if by_emotion:
        most_frequent = max(by_emotion, key=lambda g: g["count"])["_id"]

    return {
        "total": total,
        "distribution": distribution,
        "by_source": {g["_id"]: g["count"] for g in by_source},
        "avg_confidence": avg_confidence,
        "most_frequent": most_frequent,
        "emotions": emotions,
    }


def get_emotion_stats_for_child(
    child_id: str,
    days: int,
    store: EmotionRecordStore,
    cache: redis.Redis | None = None,
) -> dict:
    """Stats over the last `days` days. A Redis outage only skips the cache."""
    try:
        cached = get_cached_emotion_stats(child_id, days, client=cache)
    except redis.RedisError as e:
        log_anomaly("cache_unavailable", str(e), child_id=child_id)
        cached = None
    if cached is not None:
        return cached

    with measure_latency("mongodb_emotion_stats", child_id=child_id, days=days):
        aggregates = store.aggregate_stats(child_id, days=days)
    result = {"child_id": child_id, "period_days": days, **summarize_emotion_stats(aggregates)}
    if result["total"] == 0:
        log_anomaly("no_emotion_data", f"child_id={child_id} days={days}", child_id=child_id)

    try:
        cache_emotion_stats(child_id, days, result, client=cache)
    except redis.RedisError as e:
        log_anomaly("cache_unavailable", str(e), child_id=child_id)
    return result
