"""Schemas for chat requests, results and emotion records."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


CONTEXT_MAX_CHARS = 500
NOTES_MAX_CHARS = 1000
CHAT_INTENSITY = 3

FALLBACK_LOCAL = "fallback-local"
FALLBACK_ERROR = "fallback-error"


class Emotion(str, Enum):
    JOIE = "joie"
    TRISTESSE = "tristesse"
    COLERE = "colère"
    PEUR = "peur"
    SURPRISE = "surprise"
    NEUTRE = "neutre"
    DEGOUT = "dégoût"
    ACCUEIL = "accueil"


class EmotionSource(str, Enum):
    CAMERA_NLP = "camera_nlp"
    GAME = "game"
    MANUAL = "manual"
    PARENT_OBSERVATION = "parent_observation"
    CHAT = "chat"


MANUAL_SOURCES = (EmotionSource.MANUAL, EmotionSource.PARENT_OBSERVATION)


class EmotionLocation(str, Enum):
    HOME = "home"
    SCHOOL = "school"
    THERAPY = "therapy"
    PUBLIC = "public"
    OTHER = "other"


class EmotionResolution(str, Enum):
    SELF_REGULATED = "self-regulated"
    PARENT_HELP = "parent-help"
    TIMEOUT = "timeout"
    DISTRACTION = "distraction"
    OTHER = "other"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationRequest(BaseModel):
    """Chat input. Fields are optional here so that the pipeline can reject them itself."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    child_id: Optional[str] = Field(default=None, alias="childId")


class ConversationResult(BaseModel):
    reply: str
    emotion: Emotion
    backend_used: str
    is_fallback: bool

    def to_response(self) -> dict:
        """Shape returned to the chat surface."""
        return {
            "response": self.reply,
            "emotion": self.emotion.value,
            "model": self.backend_used,
            "isFallback": self.is_fallback,
        }


class EmotionRecord(BaseModel):
    """Emotion observation stored in MongoDB."""

    child_id: str = Field(..., min_length=1)
    emotion: Emotion
    source: EmotionSource
    context: Optional[str] = Field(default=None, max_length=CONTEXT_MAX_CHARS)
    intensity: int = Field(default=CHAT_INTENSITY, ge=1, le=5)
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_CHARS)
    location: Optional[EmotionLocation] = None
    triggers: list[str] = Field(default_factory=list)
    duration: Optional[int] = Field(default=None, ge=0)
    resolution: Optional[EmotionResolution] = None
    is_fallback: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude={"timestamp"}) | {"timestamp": self.timestamp}


class EmotionCreate(BaseModel):
    """Emotion logged by hand from the parent or therapist dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    child_id: str = Field(..., min_length=1, alias="childId")
    emotion: Emotion
    source: EmotionSource = EmotionSource.MANUAL
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    context: Optional[str] = Field(default=None, max_length=CONTEXT_MAX_CHARS)
    location: Optional[EmotionLocation] = EmotionLocation.HOME
    triggers: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_CHARS)
    intensity: int = Field(default=CHAT_INTENSITY, ge=1, le=5)
    duration: Optional[int] = Field(default=None, ge=0)
    resolution: Optional[EmotionResolution] = None
    timestamp: Optional[datetime] = None

    @field_validator("source")
    @classmethod
    def _hand_logged_source(cls, value: EmotionSource) -> EmotionSource:
        if value not in MANUAL_SOURCES:
            raise ValueError("source must be manual or parent_observation")
        return value

    def to_record(self) -> EmotionRecord:
        fields = self.model_dump(exclude_none=True)
        return EmotionRecord(**fields)


class EmotionUpdate(BaseModel):
    """Partial edit of a stored emotion; unset fields are left untouched."""

    emotion: Optional[Emotion] = None
    confidence: Optional[float] = Field(default=None, ge=0, le=100)
    context: Optional[str] = Field(default=None, max_length=CONTEXT_MAX_CHARS)
    location: Optional[EmotionLocation] = None
    triggers: Optional[list[str]] = None
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX_CHARS)
    intensity: Optional[int] = Field(default=None, ge=1, le=5)
    duration: Optional[int] = Field(default=None, ge=0)
    resolution: Optional[EmotionResolution] = None

    def changes(self) -> dict:
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)
