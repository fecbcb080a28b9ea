"""Chat-completion client for workout plan generation.

Sends a prompt pair to an OpenAI-compatible provider and returns a closed
outcome: ModelSuccess, TransientFailure or FatalFailure. Provider failures are
values, not exceptions; only cancellation propagates.

Retry policy: transient failures (timeout, network error, 5xx, 429) are retried
with capped exponential backoff up to `max_attempts` total attempts. Fatal
failures (401/403, other 4xx, a reply without content) end the call at once.
"""

import asyncio
import time
from dataclasses import dataclass

import httpx
from loguru import logger

from fitplan.config.settings import GenerationSettings
from fitplan.generation.provider_errors import (
    FailureReason,
    classify_status,
    error_detail,
    extract_message_content,
    is_transient,
    retry_after_seconds,
)
from fitplan.generation.schemas import AttemptOutcome, GenerationAttempt, PromptPair

HEALTH_CHECK_PROMPT = PromptPair(
    system_instruction="You are a service health probe. Answer in one short sentence.",
    user_instruction="Respond with 'AI provider is operational'",
)


@dataclass(frozen=True)
class CallOptions:
    """Per-call overrides of the configured defaults."""

    temperature: float | None = None
    max_tokens: int | None = None
    timeout_seconds: float | None = None
    max_attempts: int | None = None
    json_response: bool = True


@dataclass(frozen=True)
class ModelSuccess:
    text: str
    attempts: tuple[GenerationAttempt, ...]


@dataclass(frozen=True)
class TransientFailure:
    """Last transient failure once retries are exhausted ("try again later").

    `status_code` is the last HTTP status observed across all attempts, so a 429
    followed by a timeout still reads as rate limiting.
    """

    reason: FailureReason
    message: str
    status_code: int | None
    attempts: tuple[GenerationAttempt, ...]


@dataclass(frozen=True)
class FatalFailure:
    """Failure that retrying cannot fix ("fix configuration")."""

    reason: FailureReason
    message: str
    status_code: int | None
    attempts: tuple[GenerationAttempt, ...]


ModelOutcome = ModelSuccess | TransientFailure | FatalFailure


@dataclass(frozen=True)
class ProviderHealth:
    available: bool
    operational: bool
    latency_seconds: float | None
    detail: str


@dataclass(frozen=True)
class _AttemptResult:
    text: str | None = None
    reason: FailureReason | None = None
    message: str = ""
    status_code: int | None = None
    retry_after: float | None = None


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before the attempt following `attempt` (1-based): base, 2*base, 4*base... capped."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class ModelClient:
    """Provider client owning one pooled HTTP connection.

    An httpx.AsyncClient may be injected (tests, shared pools); an injected client
    is not closed by `aclose`.
    """

    def __init__(self, settings: GenerationSettings, http_client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._settings.request_timeout_seconds)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def build_request_body(self, prompt: PromptPair, options: CallOptions | None = None) -> dict:
        options = options or CallOptions()
        temperature = options.temperature if options.temperature is not None else self._settings.llm_temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else self._settings.llm_max_tokens

        body: dict = {
            "model": self._settings.llm_model,
            "messages": prompt.to_messages(),
            "temperature": temperature,
        }
        if options.json_response:
            body["response_format"] = {"type": "json_object"}
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        return body

    async def _attempt(self, body: dict, timeout: float) -> _AttemptResult:
        """Send exactly one request, bounded by `timeout` seconds end to end."""
        client = self._get_client()
        try:
            # Leaving the timeout block cancels the in-flight request
            async with asyncio.timeout(timeout):
                response = await client.post(
                    self._settings.chat_completions_url,
                    json=body,
                    headers=self._headers(),
                    timeout=timeout,
                )
        except (TimeoutError, httpx.TimeoutException):
            return _AttemptResult(reason=FailureReason.TIMEOUT, message=f"Provider did not answer within {timeout}s")
        except httpx.RequestError as e:
            return _AttemptResult(
                reason=FailureReason.NETWORK_ERROR,
                message=f"Provider request failed: {type(e).__name__}: {e}",
            )

        status_code = response.status_code
        reason = classify_status(status_code)
        if reason is not None:
            return _AttemptResult(
                reason=reason,
                message=f"Provider returned HTTP {status_code}: {error_detail(response)}",
                status_code=status_code,
                retry_after=retry_after_seconds(response) if reason == FailureReason.RATE_LIMITED else None,
            )

        try:
            payload = response.json()
        except ValueError:
            return _AttemptResult(
                reason=FailureReason.EMPTY_CONTENT,
                message="Provider reply is not a JSON chat-completion envelope",
                status_code=status_code,
            )

        text = extract_message_content(payload)
        if text is None:
            return _AttemptResult(
                reason=FailureReason.EMPTY_CONTENT,
                message="Provider reply contains no generated message content",
                status_code=status_code,
            )
        return _AttemptResult(text=text, status_code=status_code)

    async def call(self, prompt: PromptPair, options: CallOptions | None = None) -> ModelOutcome:
        """Call the provider with retry/backoff.

        Args:
            prompt: System and user instructions
            options: Optional per-call overrides

        Returns:
            ModelSuccess with the generated text, or the classified failure
        """
        options = options or CallOptions()
        max_attempts = options.max_attempts or self._settings.max_attempts
        timeout = options.timeout_seconds or self._settings.request_timeout_seconds
        body = self.build_request_body(prompt, options)

        attempts: list[GenerationAttempt] = []
        last_status_code: int | None = None
        attempt = 0
        while True:
            attempt += 1
            start_time = time.monotonic()
            result = await self._attempt(body, timeout)
            elapsed = round(time.monotonic() - start_time, 3)
            if result.status_code is not None:
                last_status_code = result.status_code

            if result.reason is None and result.text is not None:
                attempts.append(GenerationAttempt(attempt, elapsed, AttemptOutcome.SUCCESS, result.status_code))
                logger.bind(attempt=attempt, elapsed_seconds=elapsed, model=self._settings.llm_model).info(
                    "Provider call succeeded"
                )
                return ModelSuccess(text=result.text, attempts=tuple(attempts))

            reason = result.reason or FailureReason.EMPTY_CONTENT
            log_ctx = {
                "attempt": attempt,
                "max_attempts": max_attempts,
                "elapsed_seconds": elapsed,
                "reason": reason.value,
                "status_code": result.status_code,
                "detail": result.message,
            }

            if not is_transient(reason):
                attempts.append(GenerationAttempt(attempt, elapsed, AttemptOutcome.FATAL_FAILURE, result.status_code))
                logger.bind(**log_ctx).error("Provider call failed permanently, not retrying")
                return FatalFailure(reason, result.message, result.status_code, tuple(attempts))

            attempts.append(GenerationAttempt(attempt, elapsed, AttemptOutcome.TRANSIENT_FAILURE, result.status_code))
            if attempt >= max_attempts:
                logger.bind(**log_ctx).error(f"Provider call failed after {attempt} attempts")
                return TransientFailure(reason, result.message, last_status_code, tuple(attempts))

            wait_time = backoff_delay(
                attempt,
                self._settings.retry_base_delay_seconds,
                self._settings.retry_max_delay_seconds,
            )
            if result.retry_after is not None:
                wait_time = min(result.retry_after, self._settings.retry_max_delay_seconds)
            logger.bind(**log_ctx, wait_seconds=wait_time).warning(
                f"Provider transient failure, retrying in {wait_time}s (attempt {attempt}/{max_attempts})"
            )
            await asyncio.sleep(wait_time)

    async def check_health(self) -> ProviderHealth:
        """Single short probe of the provider, never retried."""
        options = CallOptions(
            max_tokens=20,
            timeout_seconds=self._settings.health_timeout_seconds,
            max_attempts=1,
            json_response=False,
        )
        outcome = await self.call(HEALTH_CHECK_PROMPT, options)
        latency = outcome.attempts[-1].elapsed_seconds if outcome.attempts else None

        if isinstance(outcome, ModelSuccess):
            return ProviderHealth(
                available=True,
                operational="operational" in outcome.text.lower(),
                latency_seconds=latency,
                detail=outcome.text.strip()[:200],
            )

        logger.bind(reason=outcome.reason.value, status_code=outcome.status_code).warning("Provider health check failed")
        return ProviderHealth(available=False, operational=False, latency_seconds=latency, detail=outcome.reason.value)
