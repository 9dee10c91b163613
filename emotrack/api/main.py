"""FastAPI app: child chat companion (POST /api/chat/emotion) and emotion record logging."""
import math
from datetime import datetime
from functools import lru_cache

import redis
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from emotrack.api.auth import get_current_user
from emotrack.api.stats import get_emotion_stats_for_child
from emotrack.db import EmotionRecordStore, get_emotion_record_store, get_redis_client, hit_rate_limit
from emotrack.pipeline import ConversationPipeline, build_pipeline
from emotrack.utils.config import settings
from emotrack.utils.errors import ValidationError
from emotrack.utils.logger import logger, log_anomaly
from emotrack.utils.observability import log_chat_metrics
from emotrack.utils.schemas import ConversationRequest, Emotion, EmotionCreate, EmotionSource, EmotionUpdate

app = FastAPI(
    title="Emotrack API",
    description="Emotion tracking for children on the autism spectrum, with the Rusty chat companion",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


@lru_cache(maxsize=1)
def get_pipeline() -> ConversationPipeline:
    return build_pipeline(settings)


def get_store() -> EmotionRecordStore:
    return get_emotion_record_store()


def get_cache() -> redis.Redis:
    return get_redis_client()


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()]
    return JSONResponse(status_code=422, content={"success": False, "message": "Données invalides", "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Error bodies are always flat: {"success": false, "message": ...}."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"success": False, "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Erreur serveur"})


def _server_error(message: str) -> HTTPException:
    return HTTPException(status_code=500, detail={"success": False, "message": message})


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"success": False, "message": "Émotion non trouvée"})


def enforce_chat_rate_limit(
    user: dict = Depends(get_current_user),
    cache: redis.Redis = Depends(get_cache),
) -> dict:
    """Per-user fixed window on the chat endpoint. Redis being down lets the request through."""
    user_id = str(user["userId"])
    try:
        limited = hit_rate_limit(
            user_id,
            settings.chat_rate_limit,
            settings.chat_rate_window_seconds,
            client=cache,
        )
    except redis.RedisError as e:
        log_anomaly("rate_limit_unavailable", str(e), user_id=user_id)
        return user
    if limited:
        logger.warning("chat_rate_limited", user_id=user_id)
        raise HTTPException(
            status_code=429,
            detail={"success": False, "message": "Trop de requêtes, réessayez dans un instant"},
        )
    return user


@app.post("/api/chat/emotion")
def chat_emotion(
    payload: ConversationRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(enforce_chat_rate_limit),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    """
    Reply to a child's chat message.

    The reply is computed first; the emotion record and run lineage are written
    after the response is sent.
    """
    outcome = pipeline.reply(payload)
    background_tasks.add_task(pipeline.persist, outcome)
    return outcome.result.to_response()


@app.get("/api/emotions/child/{child_id}")
def list_child_emotions(
    child_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    emotion: Emotion | None = None,
    source: EmotionSource | None = None,
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    try:
        records, total = store.find_by_child(
            child_id,
            page=page,
            limit=limit,
            emotion=emotion.value if emotion else None,
            source=source.value if source else None,
        )
    except Exception:
        logger.exception("list_emotions_error", child_id=child_id)
        raise _server_error("Erreur lors de la récupération des émotions")
    return {
        "success": True,
        "data": records,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@app.get("/api/emotions/child/{child_id}/stats")
def child_emotion_stats(
    child_id: str,
    days: int = Query(30, ge=1, le=365),
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
    cache: redis.Redis = Depends(get_cache),
):
    try:
        stats = get_emotion_stats_for_child(child_id, days, store=store, cache=cache)
    except Exception:
        logger.exception("emotion_stats_error", child_id=child_id)
        raise _server_error("Erreur lors du calcul des statistiques")
    return {"success": True, "data": stats}


@app.get("/api/emotions/child/{child_id}/timeline")
def child_emotion_timeline(
    child_id: str,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    try:
        timeline = store.timeline(child_id, start=start_date, end=end_date)
    except Exception:
        logger.exception("emotion_timeline_error", child_id=child_id)
        raise _server_error("Erreur lors de la récupération de la chronologie")
    return {"success": True, "data": timeline}


@app.post("/api/emotions", status_code=201)
def create_emotion(
    payload: EmotionCreate,
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    """Log an emotion observed by a parent or therapist."""
    record = payload.to_record()
    try:
        record_id = store.create(record)
    except Exception:
        logger.exception("create_emotion_error", child_id=record.child_id)
        raise _server_error("Erreur lors de l'enregistrement de l'émotion")
    logger.info("emotion_logged", child_id=record.child_id, emotion=record.emotion.value, source=record.source.value)
    return {
        "success": True,
        "message": "Émotion enregistrée avec succès",
        "data": {"id": record_id, **record.model_dump(mode="json")},
    }


@app.get("/api/emotions/{record_id}")
def get_emotion(
    record_id: str,
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    record = store.get(record_id)
    if record is None:
        raise _not_found()
    return {"success": True, "data": record}


@app.put("/api/emotions/{record_id}")
def update_emotion(
    record_id: str,
    payload: EmotionUpdate,
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    changes = payload.changes()
    if not changes:
        raise ValidationError("Aucune modification fournie")
    record = store.update(record_id, changes)
    if record is None:
        raise _not_found()
    return {"success": True, "message": "Émotion mise à jour", "data": record}


@app.delete("/api/emotions/{record_id}")
def delete_emotion(
    record_id: str,
    user: dict = Depends(get_current_user),
    store: EmotionRecordStore = Depends(get_store),
):
    if not store.delete(record_id):
        raise _not_found()
    logger.info("emotion_deleted", record_id=record_id)
    return {"success": True, "message": "Émotion supprimée"}


@app.get("/observability/chat")
def chat_observability(limit: int = Query(20, ge=1, le=200), user: dict = Depends(get_current_user)):
    return log_chat_metrics(limit=limit)


@app.get("/health")
def health():
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run("emotrack.api.main:app", host=settings.api_host, port=settings.api_port)
