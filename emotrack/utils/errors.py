"""Error taxonomy for the chat pipeline and its collaborators."""
from typing import Optional


class EmotrackError(Exception):
    """Base class for application errors."""


class ValidationError(EmotrackError, ValueError):
    """Required input is missing or empty. The only error that reaches callers of the pipeline."""


class BackendError(EmotrackError):
    """A text-generation backend call failed."""

    def __init__(self, message: str, model: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.model = model
        self.status_code = status_code


class BackendQuotaError(BackendError):
    """Quota exhausted or rate limited (HTTP 429)."""


class BackendUnavailableError(BackendError):
    """Model not found or temporarily unavailable (HTTP 404/503)."""


class BackendFatalError(BackendError):
    """Any other backend failure; stops further backend attempts."""


class PersistenceError(EmotrackError):
    """Writing to the emotion-record store failed."""
