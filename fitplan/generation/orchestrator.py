"""Workout plan generation orchestrator.

validate -> compose -> call provider (the only retried stage) -> parse/validate.
Each generate call is independent; the only state shared between calls is the
provider connection and the optional concurrency bound.
"""

import asyncio
import time
from collections.abc import Mapping
from contextlib import nullcontext
from typing import Any

from loguru import logger

from fitplan.config.settings import GenerationSettings
from fitplan.generation.errors import GenerationError
from fitplan.generation.model_client import ModelClient, ModelOutcome, ModelSuccess, ProviderHealth
from fitplan.generation.parser import parse_plan
from fitplan.generation.plan_document import WorkoutPlanDocument
from fitplan.generation.prompts import compose_prompt
from fitplan.generation.provider_errors import to_generation_error
from fitplan.generation.schemas import PromptPair
from fitplan.generation.validator import validate_preferences


class GenerationOrchestrator:
    def __init__(self, settings: GenerationSettings, model_client: ModelClient | None = None):
        self._settings = settings
        self._model_client = model_client or ModelClient(settings)
        self._call_slots = asyncio.Semaphore(settings.max_concurrent_requests) if settings.max_concurrent_requests > 0 else None

    @property
    def model_client(self) -> ModelClient:
        return self._model_client

    async def aclose(self) -> None:
        await self._model_client.aclose()

    async def _call_provider(self, prompt: PromptPair) -> ModelOutcome:
        # Waiting for a slot is a cancellation point like the call itself
        async with self._call_slots or nullcontext():
            return await self._model_client.call(prompt)

    async def generate(self, raw_request: Mapping[str, Any] | None) -> WorkoutPlanDocument:
        """Generate a workout plan from a raw preference payload.

        Args:
            raw_request: Decoded JSON payload with the user's preferences

        Returns:
            Structurally valid WorkoutPlanDocument, owned by the caller

        Raises:
            InvalidRequestError: Payload rejected; the provider is not called
            ProviderRateLimitedError: Provider kept answering 429
            ProviderUnavailableError: Timeouts, network errors or 5xx until attempts ran out
            ProviderAuthFailedError: Provider rejected the credential or request setup
            MalformedResponseError: Reply is not JSON (or has no content)
            SchemaViolationError: Reply is JSON but not a workout plan
        """
        start_time = time.monotonic()
        request = validate_preferences(raw_request)
        prompt = compose_prompt(request)

        log = logger.bind(
            fitness_goal=request.fitness_goal.value,
            experience_level=request.experience_level.value,
            days_per_week=request.workout_days_per_week,
            equipment=request.equipment_access.value,
        )
        log.info("Generating workout plan")

        outcome = await self._call_provider(prompt)
        if not isinstance(outcome, ModelSuccess):
            error = to_generation_error(outcome.reason, outcome.message, outcome.status_code)
            log.bind(
                error_kind=error.kind.value,
                reason=outcome.reason.value,
                status_code=outcome.status_code,
                attempts=len(outcome.attempts),
                detail=outcome.message,
            ).error("Workout plan generation failed at provider stage")
            raise error

        try:
            document = parse_plan(outcome.text)
        except GenerationError as e:
            log.bind(error_kind=e.kind.value, detail=e.message, response_chars=len(outcome.text)).error(
                "Provider returned an unusable workout plan"
            )
            raise

        log.bind(
            weeks=len(document.schedule),
            training_days=len(document.training_days()),
            attempts=len(outcome.attempts),
            elapsed_seconds=round(time.monotonic() - start_time, 3),
        ).info("Workout plan generated")
        return document

    async def check_provider_health(self) -> ProviderHealth:
        return await self._model_client.check_health()
