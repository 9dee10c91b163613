"""Chat response pipeline: ordered backend attempts, local fallback, emotion record.

A reply is always produced once the request is valid. Backends are tried one after
the other in priority order; quota and not-found failures move on to the next
model, any other failure stops the loop. When nothing answers, a canned reply is
picked locally. Persistence runs after the reply is known and never changes it.
"""
import random
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from emotrack.pipeline.backends import Backend, BackendFailure, classify_backend_error
from emotrack.pipeline.classifier import classify_emotion
from emotrack.pipeline.fallback import ERROR_FALLBACK_REPLIES, LOCAL_FALLBACK_REPLIES, pick_reply
from emotrack.utils.errors import ValidationError
from emotrack.utils.logger import logger, log_anomaly, log_latency, log_pipeline_stage
from emotrack.utils.schemas import (
    CONTEXT_MAX_CHARS,
    CHAT_INTENSITY,
    FALLBACK_ERROR,
    FALLBACK_LOCAL,
    NOTES_MAX_CHARS,
    ConversationRequest,
    ConversationResult,
    Emotion,
    EmotionRecord,
    EmotionSource,
)

PERSONA_PROMPT = """Tu es Rusty le Renard 🦊, assistant pour enfants.
Réponds avec douceur et empathie en 2 phrases maximum.
Utilise des emojis.

Enfant: "{message}"
Réponse:"""

NOTES_REPLY_CHARS = 100

_LEADING_NOISE = re.compile(r"^[^a-zA-ZÀ-ÿ]*")


class EmotionRecordSink(Protocol):
    def create(self, record: EmotionRecord) -> Any: ...


@dataclass
class PipelineConfig:
    models: list[str]
    temperature: float = 0.8
    max_output_tokens: int = 120
    max_reply_chars: int = 400


@dataclass
class ChatOutcome:
    """Everything one run produced; `result` is what the caller sees."""

    run_id: str
    child_id: str
    message: str
    result: ConversationResult
    record: Optional[EmotionRecord]
    status: str
    started_at: datetime
    finished_at: datetime
    attempts: list[dict] = field(default_factory=list)


def build_prompt(message: str) -> str:
    return PERSONA_PROMPT.format(message=message.strip())


def normalize_reply(text: str, max_chars: int) -> str:
    """Drop leading emoji/punctuation, trim, cap length."""
    cleaned = _LEADING_NOISE.sub("", text or "").strip()
    if len(cleaned) > max_chars:
        cleaned = cleaned[:max_chars].rstrip()
    return cleaned


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationPipeline:
    def __init__(
        self,
        backends: list[Backend],
        store: Optional[EmotionRecordSink] = None,
        run_log: Optional[Callable[[ChatOutcome], None]] = None,
        rng: Optional[random.Random] = None,
        max_reply_chars: int = 400,
    ):
        self.backends = list(backends)
        self.store = store
        self.run_log = run_log
        self.rng = rng or random.Random()
        self.max_reply_chars = max_reply_chars

    def respond(self, request: ConversationRequest) -> ConversationResult:
        """Reply to a child's message and record the detected emotion."""
        outcome = self.reply(request)
        self.persist(outcome)
        return outcome.result

    def reply(self, request: ConversationRequest) -> ChatOutcome:
        """Compute the reply without side effects. Raises only ValidationError."""
        message, child_id = self._validate(request)
        run_id = str(uuid.uuid4())
        started = _utcnow()
        start = time.perf_counter()
        attempts: list[dict] = []
        log_pipeline_stage("chat_request", run_id=run_id, child_id=child_id)

        try:
            text, backend_used = self._try_backends(message, run_id, attempts)
            if text is None:
                log_anomaly(
                    "all_backends_failed",
                    f"{len(attempts)} attempt(s) without a reply",
                    run_id=run_id,
                    child_id=child_id,
                )
                text = pick_reply(LOCAL_FALLBACK_REPLIES, self.rng)
                backend_used = FALLBACK_LOCAL
                status = "fallback"
            else:
                status = "success"
            result = ConversationResult(
                reply=text,
                emotion=classify_emotion(message),
                backend_used=backend_used,
                is_fallback=backend_used == FALLBACK_LOCAL,
            )
            record = self._build_record(child_id, message, result)
        except Exception as e:
            logger.exception("pipeline_error", run_id=run_id, child_id=child_id)
            log_anomaly("pipeline_error", str(e), run_id=run_id, child_id=child_id)
            result = ConversationResult(
                reply=pick_reply(ERROR_FALLBACK_REPLIES, self.rng),
                emotion=Emotion.NEUTRE,
                backend_used=FALLBACK_ERROR,
                is_fallback=True,
            )
            record = self._safe_build_record(child_id, message, result, run_id)
            status = "error"

        log_latency(
            "chat_reply",
            (time.perf_counter() - start) * 1000,
            run_id=run_id,
            backend=result.backend_used,
            attempts=len(attempts),
        )
        return ChatOutcome(
            run_id=run_id,
            child_id=child_id,
            message=message,
            result=result,
            record=record,
            status=status,
            started_at=started,
            finished_at=_utcnow(),
            attempts=attempts,
        )

    def persist(self, outcome: ChatOutcome) -> None:
        """Write the emotion record and run lineage. Failures are logged, never raised."""
        if outcome.record is not None and self.store is not None:
            try:
                self.store.create(outcome.record)
                log_pipeline_stage(
                    "emotion_recorded",
                    run_id=outcome.run_id,
                    emotion=outcome.record.emotion.value,
                    backend=outcome.result.backend_used,
                )
            except Exception as e:
                log_anomaly("persistence_failed", str(e), run_id=outcome.run_id, child_id=outcome.child_id)
        if self.run_log is not None:
            try:
                self.run_log(outcome)
            except Exception as e:
                log_anomaly("lineage_failed", str(e), run_id=outcome.run_id)

    @staticmethod
    def _validate(request: ConversationRequest) -> tuple[str, str]:
        message = request.message if request is not None else None
        child_id = request.child_id if request is not None else None
        if not message or not message.strip() or not child_id or not str(child_id).strip():
            raise ValidationError("Message et childId requis")
        return message, str(child_id)

    def _try_backends(self, message: str, run_id: str, attempts: list[dict]) -> tuple[Optional[str], Optional[str]]:
        prompt = build_prompt(message)
        for backend in self.backends:
            logger.info("backend_attempt", run_id=run_id, model=backend.model)
            start = time.perf_counter()
            try:
                text = normalize_reply(backend.invoke(prompt), self.max_reply_chars)
            except Exception as e:
                failure = classify_backend_error(e)
                attempts.append(self._attempt(backend.model, failure.value, start))
                if failure is BackendFailure.FATAL:
                    logger.error("backend_aborted", run_id=run_id, model=backend.model, error=str(e))
                    return None, None
                logger.warning("backend_skipped", run_id=run_id, model=backend.model, failure=failure.value)
                continue
            if not text:
                attempts.append(self._attempt(backend.model, "empty", start))
                logger.warning("backend_skipped", run_id=run_id, model=backend.model, failure="empty")
                continue
            attempts.append(self._attempt(backend.model, "success", start))
            logger.info("backend_succeeded", run_id=run_id, model=backend.model, preview=text[:50])
            return text, backend.model
        return None, None

    @staticmethod
    def _attempt(model: str, outcome: str, start: float) -> dict:
        return {
            "model": model,
            "outcome": outcome,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }

    @staticmethod
    def _build_record(child_id: str, message: str, result: ConversationResult) -> EmotionRecord:
        notes = f"Modèle: {result.backend_used} | Réponse: {result.reply[:NOTES_REPLY_CHARS]}"
        return EmotionRecord(
            child_id=child_id,
            emotion=result.emotion,
            source=EmotionSource.CHAT,
            context=message.strip()[:CONTEXT_MAX_CHARS],
            intensity=CHAT_INTENSITY,
            notes=notes[:NOTES_MAX_CHARS],
            is_fallback=result.is_fallback,
        )

    def _safe_build_record(
        self, child_id: str, message: str, result: ConversationResult, run_id: str
    ) -> Optional[EmotionRecord]:
        try:
            return self._build_record(child_id, message, result)
        except Exception as e:
            log_anomaly("record_build_failed", str(e), run_id=run_id)
            return None
