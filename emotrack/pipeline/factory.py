"""Wire the production chat pipeline from settings."""
from emotrack.db import ensure_indexes, get_emotion_record_store
from emotrack.pipeline.backends import GeminiClient, build_backends
from emotrack.pipeline.responder import ConversationPipeline, PipelineConfig
from emotrack.pipeline.stores import record_lineage
from emotrack.utils.config import Settings
from emotrack.utils.logger import logger, log_anomaly


def pipeline_config_from_settings(settings: Settings) -> PipelineConfig:
    return PipelineConfig(
        models=list(settings.chat_models),
        temperature=settings.chat_temperature,
        max_output_tokens=settings.chat_max_output_tokens,
        max_reply_chars=settings.chat_max_reply_chars,
    )


def build_pipeline(settings: Settings) -> ConversationPipeline:
    config = pipeline_config_from_settings(settings)
    if not settings.gemini_api_key:
        log_anomaly("missing_api_key", "GEMINI_API_KEY is empty, every chat will use local replies")
    client = GeminiClient(settings.gemini_api_key, timeout_seconds=settings.chat_timeout_seconds)
    backends = build_backends(client, config.models, config.temperature, config.max_output_tokens)

    store = get_emotion_record_store()
    try:
        ensure_indexes(store.collection)
    except Exception as e:
        log_anomaly("mongodb_unreachable", str(e))

    logger.info("chat_pipeline_ready", models=config.models, max_output_tokens=config.max_output_tokens)
    return ConversationPipeline(
        backends=backends,
        store=store,
        run_log=record_lineage,
        max_reply_chars=config.max_reply_chars,
    )
