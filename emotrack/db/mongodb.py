"""MongoDB connection and emotion-record storage."""
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from emotrack.utils.config import settings
from emotrack.utils.errors import PersistenceError
from emotrack.utils.schemas import EmotionRecord


@lru_cache(maxsize=1)
def get_mongo_client() -> MongoClient:
    return MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)


def get_emotion_records_collection() -> Collection:
    client = get_mongo_client()
    return client[settings.mongodb_db]["emotion_records"]


def ensure_indexes(collection: Collection) -> None:
    collection.create_index([("child_id", ASCENDING), ("timestamp", DESCENDING)])
    collection.create_index([("child_id", ASCENDING), ("emotion", ASCENDING)])
    collection.create_index([("child_id", ASCENDING), ("source", ASCENDING), ("timestamp", DESCENDING)])


def _object_id(record_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(record_id)
    except (InvalidId, TypeError):
        return None


def _serialize(doc: dict) -> dict:
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    ts = out.get("timestamp")
    if isinstance(ts, datetime):
        out["timestamp"] = ts.isoformat()
    return out


class EmotionRecordStore:
    """Emotion records of every child, one document per observation."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def create(self, record: EmotionRecord) -> str:
        try:
            res = self.collection.insert_one(record.to_document())
        except PyMongoError as e:
            raise PersistenceError(f"emotion record insert failed: {e}") from e
        return str(res.inserted_id)

    def get(self, record_id: str) -> Optional[dict]:
        oid = _object_id(record_id)
        if oid is None:
            return None
        doc = self.collection.find_one({"_id": oid})
        return _serialize(doc) if doc else None

    def update(self, record_id: str, changes: dict) -> Optional[dict]:
        """Apply a partial edit; None when the record does not exist."""
        oid = _object_id(record_id)
        if oid is None:
            return None
        if not changes:
            return self.get(record_id)
        doc = self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return _serialize(doc) if doc else None

    def delete(self, record_id: str) -> bool:
        oid = _object_id(record_id)
        if oid is None:
            return False
        return self.collection.delete_one({"_id": oid}).deleted_count == 1

    def find_by_child(
        self,
        child_id: str,
        page: int = 1,
        limit: int = 50,
        emotion: Optional[str] = None,
        source: Optional[str] = None,
    ) -> tuple[list[dict], int]:
        """One page of a child's records, newest first, with the unpaged total."""
        query: dict = {"child_id": child_id}
        if emotion:
            query["emotion"] = emotion
        if source:
            query["source"] = source
        total = self.collection.count_documents(query)
        cursor = (
            self.collection.find(query)
            .sort("timestamp", DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        return [_serialize(d) for d in cursor], total

    def aggregate_stats(self, child_id: str, days: int = 30) -> dict:
        """Per-emotion and per-source counts over the last `days` days."""
        start = datetime.now(timezone.utc) - timedelta(days=days)
        match = {"$match": {"child_id": child_id, "timestamp": {"$gte": start}}}
        by_emotion = list(
            self.collection.aggregate([
                match,
                {
                    "$group": {
                        "_id": "$emotion",
                        "count": {"$sum": 1},
                        "avg_intensity": {"$avg": "$intensity"},
                        "avg_confidence": {"$avg": "$confidence"},
                    }
                },
                {"$sort": {"count": -1}},
            ])
        )
        by_source = list(
            self.collection.aggregate([
                match,
                {"$group": {"_id": "$source", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
            ])
        )
        return {"by_emotion": by_emotion, "by_source": by_source}

    def timeline(
        self,
        child_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[dict]:
        """Daily counts per emotion, oldest day first."""
        match: dict = {"child_id": child_id}
        if start or end:
            match["timestamp"] = {}
            if start:
                match["timestamp"]["$gte"] = start
            if end:
                match["timestamp"]["$lte"] = end
        groups = self.collection.aggregate([
            {"$match": match},
            {
                "$group": {
                    "_id": {
                        "date": {"$dateToString": {"format": "%Y-%m-%d", "date": "$timestamp"}},
                        "emotion": "$emotion",
                    },
                    "count": {"$sum": 1},
                }
            },
            {"$sort": {"_id.date": 1, "_id.emotion": 1}},
        ])
        return [{"date": g["_id"]["date"], "emotion": g["_id"]["emotion"], "count": g["count"]} for g in groups]


def get_emotion_record_store() -> EmotionRecordStore:
    coll = get_emotion_records_collection()
    return EmotionRecordStore(coll)
