import asyncio
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest

from fitplan.config.settings import GenerationSettings
from fitplan.generation.model_client import (
    CallOptions,
    FatalFailure,
    ModelSuccess,
    TransientFailure,
    backoff_delay,
)
from fitplan.generation.prompts import compose_prompt
from fitplan.generation.provider_errors import FailureReason
from fitplan.generation.schemas import AttemptOutcome
from fitplan.generation.validator import validate_preferences


@pytest.fixture
def prompt(valid_preferences):
    return compose_prompt(validate_preferences(valid_preferences))


def test_backoff_delay_doubles_until_capped():
    assert [backoff_delay(attempt, 1.0, 10.0) for attempt in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 10.0]


def test_request_body(make_model_client, scripted_provider, prompt):
    client = make_model_client(scripted_provider())

    body = client.build_request_body(prompt)

    assert body["model"] == "gpt-test"
    assert body["temperature"] == 0.7
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0] == {"role": "system", "content": prompt.system_instruction}
    assert body["messages"][1] == {"role": "user", "content": prompt.user_instruction}
    assert "max_tokens" not in body


def test_request_body_overrides(make_model_client, scripted_provider, prompt):
    client = make_model_client(scripted_provider())

    body = client.build_request_body(prompt, CallOptions(temperature=0.2, max_tokens=300, json_response=False))

    assert body["temperature"] == 0.2
    assert body["max_tokens"] == 300
    assert "response_format" not in body


@pytest.mark.asyncio
async def test_success_on_first_attempt(make_model_client, scripted_provider, ok_reply, prompt):
    provider = scripted_provider(ok_reply('{"workoutPlan": {}}'))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, ModelSuccess)
    assert outcome.text == '{"workoutPlan": {}}'
    assert [a.outcome for a in outcome.attempts] == [AttemptOutcome.SUCCESS]
    assert provider.call_count == 1

    request = provider.requests[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test-key"
    assert provider.request_body()["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [500, 502, 503, 429])
async def test_retries_transient_status_then_succeeds(
    make_model_client, scripted_provider, ok_reply, provider_error, prompt, status_code
):
    provider = scripted_provider(provider_error(status_code), ok_reply("{}"))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, ModelSuccess)
    assert provider.call_count == 2
    assert [a.outcome for a in outcome.attempts] == [AttemptOutcome.TRANSIENT_FAILURE, AttemptOutcome.SUCCESS]
    assert outcome.attempts[0].status_code == status_code


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "reason"),
    [(503, FailureReason.SERVER_ERROR), (429, FailureReason.RATE_LIMITED)],
)
async def test_transient_status_exhausts_attempts(
    make_model_client, scripted_provider, provider_error, prompt, status_code, reason
):
    provider = scripted_provider(provider_error(status_code, "busy"))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, TransientFailure)
    assert outcome.reason == reason
    assert outcome.status_code == status_code
    assert "busy" in outcome.message
    assert provider.call_count == 3
    assert len(outcome.attempts) == 3
    assert [a.attempt for a in outcome.attempts] == [1, 2, 3]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error_type", "reason"),
    [
        (httpx.ReadTimeout, FailureReason.TIMEOUT),
        (httpx.ConnectTimeout, FailureReason.TIMEOUT),
        (httpx.ConnectError, FailureReason.NETWORK_ERROR),
        (httpx.RemoteProtocolError, FailureReason.NETWORK_ERROR),
    ],
)
async def test_transport_errors_are_retried(make_model_client, scripted_provider, prompt, error_type, reason):
    provider = scripted_provider(error_type)
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, TransientFailure)
    assert outcome.reason == reason
    assert outcome.status_code is None
    assert provider.call_count == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_auth_failures_are_not_retried(make_model_client, scripted_provider, provider_error, prompt, status_code):
    provider = scripted_provider(provider_error(status_code, "Incorrect API key provided"))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, FatalFailure)
    assert outcome.reason == FailureReason.AUTH_FAILED
    assert outcome.status_code == status_code
    assert provider.call_count == 1
    assert [a.outcome for a in outcome.attempts] == [AttemptOutcome.FATAL_FAILURE]


@pytest.mark.asyncio
async def test_other_client_errors_are_not_retried(make_model_client, scripted_provider, provider_error, prompt):
    provider = scripted_provider(provider_error(404, "The model `gpt-test` does not exist"))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, FatalFailure)
    assert outcome.reason == FailureReason.REQUEST_REJECTED
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_reply_without_content_is_fatal(make_model_client, scripted_provider, prompt):
    reply = httpx.Response(200, json={"choices": [{"index": 0, "message": {"role": "assistant"}}]})
    provider = scripted_provider(reply)
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, FatalFailure)
    assert outcome.reason == FailureReason.EMPTY_CONTENT
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_non_json_envelope_is_fatal(make_model_client, scripted_provider, prompt):
    provider = scripted_provider(httpx.Response(200, text="upstream proxy says hi"))
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, FatalFailure)
    assert outcome.reason == FailureReason.EMPTY_CONTENT


@pytest.mark.asyncio
async def test_attempts_never_exceed_configured_maximum(make_model_client, scripted_provider, provider_error, prompt):
    settings = GenerationSettings(
        OPENAI_API_KEY="sk-test-key",
        LLM_BASE_URL="https://llm.test/v1",
        LLM_MAX_ATTEMPTS=5,
        LLM_RETRY_BASE_DELAY_SECONDS=0.0,
        LLM_RETRY_MAX_DELAY_SECONDS=0.0,
    )
    provider = scripted_provider(provider_error(500))
    client = make_model_client(provider, settings)

    outcome = await client.call(prompt, CallOptions(max_attempts=2))
    assert provider.call_count == 2
    assert len(outcome.attempts) == 2

    outcome = await client.call(prompt)
    assert provider.call_count == 7
    assert len(outcome.attempts) == 5


@pytest.mark.asyncio
async def test_backoff_between_attempts(make_model_client, scripted_provider, provider_error, prompt):
    settings = GenerationSettings(
        OPENAI_API_KEY="sk-test-key",
        LLM_BASE_URL="https://llm.test/v1",
        LLM_MAX_ATTEMPTS=3,
        LLM_RETRY_BASE_DELAY_SECONDS=0.5,
        LLM_RETRY_MAX_DELAY_SECONDS=10.0,
    )
    client = make_model_client(scripted_provider(provider_error(503)), settings)

    with patch("fitplan.generation.model_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await client.call(prompt)

    # No wait after the final attempt
    assert mock_sleep.await_args_list == [call(0.5), call(1.0)]


@pytest.mark.asyncio
async def test_retry_after_is_honoured_and_capped(make_model_client, scripted_provider, provider_error, ok_reply, prompt):
    settings = GenerationSettings(
        OPENAI_API_KEY="sk-test-key",
        LLM_BASE_URL="https://llm.test/v1",
        LLM_MAX_ATTEMPTS=3,
        LLM_RETRY_BASE_DELAY_SECONDS=0.5,
        LLM_RETRY_MAX_DELAY_SECONDS=4.0,
    )
    provider = scripted_provider(
        provider_error(429, headers={"Retry-After": "2"}),
        provider_error(429, headers={"Retry-After": "120"}),
        ok_reply("{}"),
    )
    client = make_model_client(provider, settings)

    with patch("fitplan.generation.model_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        outcome = await client.call(prompt)

    assert isinstance(outcome, ModelSuccess)
    assert mock_sleep.await_args_list == [call(2.0), call(4.0)]


@pytest.mark.asyncio
async def test_slow_provider_hits_attempt_timeout(make_model_client, generation_settings, ok_reply, prompt):
    calls = 0

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        await asyncio.sleep(1.0)
        return ok_reply("{}")

    settings = generation_settings.model_copy(update={"request_timeout_seconds": 0.05, "max_attempts": 2})
    client = make_model_client(slow_handler, settings)

    outcome = await client.call(prompt)

    assert isinstance(outcome, TransientFailure)
    assert outcome.reason == FailureReason.TIMEOUT
    assert calls == 2


@pytest.mark.asyncio
async def test_injected_http_client_is_not_closed(make_model_client, scripted_provider):
    client = make_model_client(scripted_provider())

    await client.aclose()

    assert not client._client.is_closed


@pytest.mark.asyncio
async def test_health_check_operational(make_model_client, scripted_provider, ok_reply):
    provider = scripted_provider(ok_reply("AI provider is operational"))
    client = make_model_client(provider)

    health = await client.check_health()

    assert health.available is True
    assert health.operational is True
    assert health.detail == "AI provider is operational"
    assert health.latency_seconds is not None
    body = provider.request_body()
    assert body["max_tokens"] == 20
    assert "response_format" not in body


@pytest.mark.asyncio
async def test_health_check_reachable_but_unexpected_answer(make_model_client, scripted_provider, ok_reply):
    client = make_model_client(scripted_provider(ok_reply("Hello!")))

    health = await client.check_health()

    assert health.available is True
    assert health.operational is False


@pytest.mark.asyncio
async def test_health_check_failure_is_not_retried(make_model_client, scripted_provider, provider_error):
    provider = scripted_provider(provider_error(503))
    client = make_model_client(provider)

    health = await client.check_health()

    assert health.available is False
    assert health.operational is False
    assert health.detail == "server_error"
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_transient_failure_keeps_last_observed_status(make_model_client, scripted_provider, provider_error, prompt):
    provider = scripted_provider(provider_error(429), provider_error(429), httpx.ReadTimeout)
    client = make_model_client(provider)

    outcome = await client.call(prompt)

    assert isinstance(outcome, TransientFailure)
    assert outcome.reason == FailureReason.TIMEOUT
    assert outcome.status_code == 429
    assert [a.status_code for a in outcome.attempts] == [429, 429, None]


@pytest.mark.asyncio
async def test_cancellation_propagates_without_retry(make_model_client, ok_reply, prompt):
    started = asyncio.Event()
    calls = 0

    async def hanging_handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        started.set()
        await asyncio.sleep(10)
        return ok_reply("{}")

    client = make_model_client(hanging_handler)
    task = asyncio.create_task(client.call(prompt))
    await started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    await asyncio.sleep(0.05)
    assert calls == 1
