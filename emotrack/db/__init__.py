from .mongodb import (
    get_mongo_client,
    get_emotion_records_collection,
    ensure_indexes,
    EmotionRecordStore,
    get_emotion_record_store,
)
from .sqlite_analytics import get_connection, init_analytics_schema, record_chat_run, fetch_chat_runs, get_backend_usage
from .redis_client import (
    get_redis_client,
    cache_emotion_stats,
    get_cached_emotion_stats,
    hit_rate_limit,
)

__all__ = [
    "get_mongo_client",
    "get_emotion_records_collection",
    "ensure_indexes",
    "EmotionRecordStore",
    "get_emotion_record_store",
    "get_connection",
    "init_analytics_schema",
    "record_chat_run",
    "fetch_chat_runs",
    "get_backend_usage",
    "get_redis_client",
    "cache_emotion_stats",
    "get_cached_emotion_stats",
    "hit_rate_limit",
]
