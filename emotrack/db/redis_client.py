"""Redis cache for emotion statistics and the chat rate-limit counters."""
import json
from typing import Optional

import redis
from emotrack.utils.config import settings


def get_redis_client() -> redis.Redis:
    return redis.from_url(settings.redis_url, decode_responses=True)


def _stats_key(child_id: str, days: int) -> str:
    return f"emotion_stats:{child_id}:{days}"


def cache_emotion_stats(child_id: str, days: int, payload: dict, client: Optional[redis.Redis] = None) -> None:
    client = client or get_redis_client()
    client.setex(_stats_key(child_id, days), settings.redis_ttl_seconds, json.dumps(payload))


def get_cached_emotion_stats(child_id: str, days: int, client: Optional[redis.Redis] = None) -> dict | None:
    client = client or get_redis_client()
    raw = client.get(_stats_key(child_id, days))
    if raw is None:
        return None
    return json.loads(raw)


def hit_rate_limit(
    user_id: str,
    limit: int,
    window_seconds: int,
    client: Optional[redis.Redis] = None,
) -> bool:
    """Count one chat request for the user; True once the window's budget is exceeded."""
    client = client or get_redis_client()
    key = f"ratelimit:chat:{user_id}"
    # The window is created with its TTL in the same transaction as the first increment.
    pipe = client.pipeline()
    pipe.set(key, 0, ex=window_seconds, nx=True)
    pipe.incr(key)
    _, count = pipe.execute()
    return count > limit
