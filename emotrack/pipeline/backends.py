"""Gemini text-generation backends and failure classification."""
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from emotrack.utils.errors import (
    BackendError,
    BackendFatalError,
    BackendQuotaError,
    BackendUnavailableError,
)

QUOTA_MARKERS = ("quota", "429", "rate limit", "resource exhausted")
NOT_FOUND_MARKERS = ("404", "not found", "unavailable")


class BackendFailure(str, Enum):
    QUOTA = "quota"
    NOT_FOUND = "not_found"
    FATAL = "fatal"


@dataclass(frozen=True)
class Backend:
    """One entry of the priority list: a model name and the call that prompts it."""

    model: str
    invoke: Callable[[str], str]


def classify_backend_error(exc: BaseException) -> BackendFailure:
    """Typed errors first, then HTTP status, then message markers. Unknown means fatal."""
    if isinstance(exc, BackendQuotaError):
        return BackendFailure.QUOTA
    if isinstance(exc, BackendUnavailableError):
        return BackendFailure.NOT_FOUND
    if isinstance(exc, BackendFatalError):
        return BackendFailure.FATAL
    if isinstance(exc, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return BackendFailure.QUOTA
    if isinstance(exc, (google_exceptions.NotFound, google_exceptions.ServiceUnavailable)):
        return BackendFailure.NOT_FOUND

    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status == 429:
        return BackendFailure.QUOTA
    if status in (404, 503):
        return BackendFailure.NOT_FOUND

    text = str(exc).lower()
    if any(marker in text for marker in QUOTA_MARKERS):
        return BackendFailure.QUOTA
    if any(marker in text for marker in NOT_FOUND_MARKERS):
        return BackendFailure.NOT_FOUND
    return BackendFailure.FATAL


_ERROR_TYPES: dict[BackendFailure, type[BackendError]] = {
    BackendFailure.QUOTA: BackendQuotaError,
    BackendFailure.NOT_FOUND: BackendUnavailableError,
    BackendFailure.FATAL: BackendFatalError,
}


def _status_of(exc: BaseException):
    code = getattr(exc, "code", None)
    return code if isinstance(code, int) else None


class GeminiClient:
    """Thin wrapper over google.generativeai that raises typed backend errors."""

    def __init__(self, api_key: str, timeout_seconds: float = 20.0):
        genai.configure(api_key=api_key)
        self.timeout_seconds = timeout_seconds

    def generate(self, model: str, prompt: str, temperature: float, max_output_tokens: int) -> str:
        generative_model = genai.GenerativeModel(
            model_name=model,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
        )
        try:
            response = generative_model.generate_content(
                prompt, request_options={"timeout": self.timeout_seconds}
            )
            text = response.text
        except google_exceptions.GoogleAPICallError as e:
            failure = classify_backend_error(e)
            raise _ERROR_TYPES[failure](str(e), model=model, status_code=_status_of(e)) from e
        except ValueError as e:
            # response.text raises when the candidate has no text parts (blocked or empty)
            raise BackendUnavailableError(f"no text in response: {e}", model=model) from e
        except Exception as e:
            raise BackendFatalError(str(e), model=model) from e
        return text or ""


def build_backends(
    client: GeminiClient,
    models: list[str],
    temperature: float,
    max_output_tokens: int,
) -> list[Backend]:
    """Priority list of backends sharing one client and generation config."""
    return [
        Backend(
            model=m,
            invoke=partial(
                client.generate,
                m,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            ),
        )
        for m in models
    ]
