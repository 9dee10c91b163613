from .config import settings, Settings
from .logger import logger, log_pipeline_stage, log_latency, log_anomaly, measure_latency

__all__ = [
    "settings",
    "Settings",
    "logger",
    "log_pipeline_stage",
    "log_latency",
    "log_anomaly",
    "measure_latency",
]
