"""Workout plan generation error taxonomy.

Every failure the pipeline reports to its caller is one of these types:
- INVALID_REQUEST: preferences are missing a field or carry an unacceptable value
- PROVIDER_UNAVAILABLE: provider timed out, was unreachable or kept returning 5xx
- PROVIDER_RATE_LIMITED: provider kept answering 429 until attempts ran out
- PROVIDER_AUTH_FAILED: provider rejected the configured credential or request setup
- MALFORMED_RESPONSE: provider reply is not parseable JSON
- SCHEMA_VIOLATION: reply is JSON but not a workout plan document

The message is for operators; public_message is what callers outside the service see.
"""

from enum import StrEnum
from typing import ClassVar


class ErrorKind(StrEnum):
    INVALID_REQUEST = "invalid_request"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_RATE_LIMITED = "provider_rate_limited"
    PROVIDER_AUTH_FAILED = "provider_auth_failed"
    MALFORMED_RESPONSE = "malformed_response"
    SCHEMA_VIOLATION = "schema_violation"


class GenerationError(RuntimeError):
    """Base class for workout plan generation failures.

    Attributes:
        message: Detailed, operator-facing description
        status_code: Upstream provider status code, when one was observed
    """

    kind: ClassVar[ErrorKind]
    http_status: ClassVar[int]
    public_message: ClassVar[str] = "Failed to generate workout plan"

    def __init__(self, message: str, *, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(f"{self.kind.value}: {message}")

    def to_public_dict(self) -> dict[str, str]:
        return {"message": self.public_message}


class InvalidRequestError(GenerationError):
    kind = ErrorKind.INVALID_REQUEST
    http_status = 400

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return self.message


class ProviderUnavailableError(GenerationError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE
    http_status = 503
    public_message = "AI provider is temporarily unavailable. Please try again later."


class ProviderRateLimitedError(GenerationError):
    kind = ErrorKind.PROVIDER_RATE_LIMITED
    http_status = 429
    public_message = "Rate limit exceeded. Please try again later."


class ProviderAuthFailedError(GenerationError):
    kind = ErrorKind.PROVIDER_AUTH_FAILED
    http_status = 500
    public_message = "Server configuration error with AI provider."


class MalformedResponseError(GenerationError):
    kind = ErrorKind.MALFORMED_RESPONSE
    http_status = 502

    def __init__(self, message: str, *, diagnostic: str | None = None, status_code: int | None = None):
        self.diagnostic = diagnostic or message
        super().__init__(message, status_code=status_code)


class SchemaViolationError(GenerationError):
    kind = ErrorKind.SCHEMA_VIOLATION
    http_status = 502

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")
