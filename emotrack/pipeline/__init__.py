from .backends import Backend, BackendFailure, GeminiClient, build_backends, classify_backend_error
from .classifier import classify_emotion
from .fallback import ERROR_FALLBACK_REPLIES, LOCAL_FALLBACK_REPLIES, pick_reply
from .responder import ChatOutcome, ConversationPipeline, PipelineConfig, build_prompt, normalize_reply
from .stores import record_lineage
from .factory import build_pipeline

__all__ = [
    "Backend",
    "BackendFailure",
    "GeminiClient",
    "build_backends",
    "classify_backend_error",
    "classify_emotion",
    "ERROR_FALLBACK_REPLIES",
    "LOCAL_FALLBACK_REPLIES",
    "pick_reply",
    "ChatOutcome",
    "ConversationPipeline",
    "PipelineConfig",
    "build_prompt",
    "normalize_reply",
    "record_lineage",
    "build_pipeline",
]
