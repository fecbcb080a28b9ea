"""Provider error classification.

Everything that knows about the provider's wire shapes (status codes, error
bodies, where the generated text lives) is kept here, so swapping providers
touches this module and the request body in model_client only.
"""

from enum import StrEnum
from typing import Any

import httpx

from fitplan.generation.errors import (
    GenerationError,
    MalformedResponseError,
    ProviderAuthFailedError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
)

MAX_DETAIL_CHARS = 500


class FailureReason(StrEnum):
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    AUTH_FAILED = "auth_failed"
    REQUEST_REJECTED = "request_rejected"
    EMPTY_CONTENT = "empty_content"


TRANSIENT_REASONS = frozenset(
    {
        FailureReason.TIMEOUT,
        FailureReason.NETWORK_ERROR,
        FailureReason.RATE_LIMITED,
        FailureReason.SERVER_ERROR,
    }
)


def is_transient(reason: FailureReason) -> bool:
    return reason in TRANSIENT_REASONS


def classify_status(status_code: int) -> FailureReason | None:
    """Map an HTTP status to a failure reason; None means success."""
    if 200 <= status_code < 300:
        return None
    if status_code == 429:
        return FailureReason.RATE_LIMITED
    if status_code in (401, 403):
        return FailureReason.AUTH_FAILED
    if status_code >= 500:
        return FailureReason.SERVER_ERROR
    # Other 4xx (bad model name, unsupported parameter...) will not fix themselves
    return FailureReason.REQUEST_REJECTED


def extract_message_content(payload: Any) -> str | None:
    """Return `choices[0].message.content` of a chat-completion reply, if present."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        return None
    return content


def error_detail(response: httpx.Response) -> str:
    """Best-effort human readable error from a provider error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:MAX_DETAIL_CHARS]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:MAX_DETAIL_CHARS]
        if isinstance(error, str):
            return error[:MAX_DETAIL_CHARS]
    return response.text[:MAX_DETAIL_CHARS]


def retry_after_seconds(response: httpx.Response) -> float | None:
    """Numeric Retry-After header value; HTTP-date values are ignored."""
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def to_generation_error(reason: FailureReason, message: str, status_code: int | None = None) -> GenerationError:
    """Map the final provider failure onto the caller-facing error taxonomy.

    Transient failures whose last observed status was 429 are reported as rate
    limiting even when the final attempt failed differently.
    """
    if reason == FailureReason.RATE_LIMITED or (is_transient(reason) and status_code == 429):
        return ProviderRateLimitedError(message, status_code=status_code)
    if reason in (FailureReason.AUTH_FAILED, FailureReason.REQUEST_REJECTED):
        return ProviderAuthFailedError(message, status_code=status_code)
    if reason == FailureReason.EMPTY_CONTENT:
        return MalformedResponseError(message, status_code=status_code)
    return ProviderUnavailableError(message, status_code=status_code)
