from conftest import FakeRedis, FakeStore
from emotrack.api.stats import get_emotion_stats_for_child, summarize_emotion_stats


AGGREGATES = {
    "by_emotion": [
        {"_id": "joie", "count": 6, "avg_intensity": 3.0, "avg_confidence": 90.0},
        {"_id": "colère", "count": 3, "avg_intensity": 4.333, "avg_confidence": 60.0},
        {"_id": "accueil", "count": 1, "avg_intensity": 3.0, "avg_confidence": None},
    ],
    "by_source": [{"_id": "chat", "count": 7}, {"_id": "manual", "count": 3}],
}


def test_summarize_emotion_stats():
    stats = summarize_emotion_stats(AGGREGATES)

    assert stats["total"] == 10
    assert stats["distribution"] == {"joie": 6, "colère": 3, "accueil": 1}
    assert stats["by_source"] == {"chat": 7, "manual": 3}
    assert stats["most_frequent"] == "joie"
    assert stats["avg_confidence"] == 80.0
    assert stats["emotions"][1] == {
        "emotion": "colère",
        "count": 3,
        "percentage": 30.0,
        "avg_intensity": 4.33,
        "avg_confidence": 60.0,
    }


def test_summarize_empty_window():
    stats = summarize_emotion_stats({"by_emotion": [], "by_source": []})
    assert stats["total"] == 0
    assert stats["most_frequent"] is None
    assert stats["avg_confidence"] == 0


def test_stats_served_from_cache_after_first_call():
    store = FakeStore()
    store.aggregates = AGGREGATES
    cache = FakeRedis()

    first = get_emotion_stats_for_child("c1", 30, store=store, cache=cache)
    second = get_emotion_stats_for_child("c1", 30, store=store, cache=cache)

    assert store.aggregate_calls == 1
    assert first == second
    assert cache.ttls["emotion_stats:c1:30"] > 0


def test_stats_computed_when_cache_is_down():
    store = FakeStore()
    store.aggregates = AGGREGATES

    stats = get_emotion_stats_for_child("c1", 30, store=store, cache=FakeRedis(fail=True))

    assert stats["child_id"] == "c1"
    assert stats["period_days"] == 30
    assert stats["total"] == 10
