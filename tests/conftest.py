import random
from datetime import datetime, timedelta, timezone

import jwt
import pytest
import redis
from fastapi.testclient import TestClient

from emotrack.pipeline import Backend, ConversationPipeline
from emotrack.utils.config import settings
from emotrack.utils.errors import BackendQuotaError, PersistenceError


class ScriptedModel:
    """Stand-in for one generation model: returns `reply` or raises `error`."""

    def __init__(self, model, reply=None, error=None):
        self.model = model
        self.reply = reply
        self.error = error
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply

    @property
    def calls(self):
        return len(self.prompts)

    def as_backend(self):
        return Backend(model=self.model, invoke=self)


class FakeStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.records = []
        self.documents = []
        self.aggregates = {"by_emotion": [], "by_source": []}
        self.aggregate_calls = 0
        self.timeline_points = []
        self.timeline_calls = []

    def create(self, record):
        if self.fail:
            raise PersistenceError("mongodb down")
        self.records.append(record)
        return str(len(self.records))

    def find_by_child(self, child_id, page=1, limit=50, emotion=None, source=None):
        docs = [d for d in self.documents if d["child_id"] == child_id]
        if emotion:
            docs = [d for d in docs if d["emotion"] == emotion]
        if source:
            docs = [d for d in docs if d["source"] == source]
        docs.sort(key=lambda d: d["timestamp"], reverse=True)
        start = (page - 1) * limit
        return docs[start:start + limit], len(docs)

    def aggregate_stats(self, child_id, days=30):
        self.aggregate_calls += 1
        return self.aggregates

    def get(self, record_id):
        return next((d for d in self.documents if d["id"] == record_id), None)

    def update(self, record_id, changes):
        doc = self.get(record_id)
        if doc is not None:
            doc.update(changes)
        return doc

    def delete(self, record_id):
        doc = self.get(record_id)
        if doc is None:
            return False
        self.documents.remove(doc)
        return True

    def timeline(self, child_id, start=None, end=None):
        self.timeline_calls.append((child_id, start, end))
        return self.timeline_points


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.data = {}
        self.ttls = {}

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis down")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl

    def incr(self, key):
        self._check()
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def set(self, key, value, ex=None, nx=False):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Queues commands and runs them against the owning FakeRedis on execute()."""

    def __init__(self, redis_client):
        self.redis = redis_client
        self.commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self

        return queue

    def execute(self):
        results = [getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


def quota_error(model):
    return BackendQuotaError("429 Quota exceeded", model=model, status_code=429)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def cache():
    return FakeRedis()


@pytest.fixture
def make_pipeline(store):
    def _make(*models, rng_seed=0, sink=None, run_log=None):
        return ConversationPipeline(
            backends=[m.as_backend() for m in models],
            store=sink if sink is not None else store,
            run_log=run_log,
            rng=random.Random(rng_seed),
        )

    return _make


def make_token(user_id="u1", role="parent", expires_in=timedelta(hours=1)):
    claims = {"userId": user_id, "role": role, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def chat_model():
    return ScriptedModel("gemini-2.0-flash-lite", reply="🦊 Coucou mon ami ! Je suis là pour toi. 🌟")


@pytest.fixture
def client(store, cache, chat_model, tmp_path, monkeypatch):
    from emotrack.api import main

    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "analytics.db"))
    pipeline = ConversationPipeline([chat_model.as_backend()], store=store, rng=random.Random(0))
    main.app.dependency_overrides[main.get_pipeline] = lambda: pipeline
    main.app.dependency_overrides[main.get_store] = lambda: store
    main.app.dependency_overrides[main.get_cache] = lambda: cache
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
