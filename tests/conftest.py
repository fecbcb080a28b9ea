"""Root conftest for all tests.

Shared fixtures: fast-retry settings, a valid preference payload, a valid plan
document, and a scripted provider behind httpx.MockTransport.
"""

import copy
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from fitplan.config.settings import GenerationSettings
from fitplan.generation.model_client import ModelClient

PROVIDER_BASE_URL = "https://llm.test/v1"


class ScriptedProvider:
    """MockTransport handler replaying scripted replies in order.

    Each script item is an httpx.Response, or an httpx exception class raised
    against the request. The last item repeats once the script runs out.
    """

    def __init__(self, script: list[Any]):
        self.script = script
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(item, type) and issubclass(item, Exception):
            raise item("simulated transport failure", request=request)
        # Fresh copy per request; a Response object is bound to the request it answered
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def request_body(self, index: int = 0) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


def chat_completion_response(content: str | None, status_code: int = 200) -> httpx.Response:
    message: dict[str, Any] = {"role": "assistant"}
    if content is not None:
        message["content"] = content
    return httpx.Response(
        status_code,
        json={
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
        },
    )


def error_response(status_code: int, message: str = "error", headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"message": message}}, headers=headers)


@pytest.fixture
def generation_settings() -> GenerationSettings:
    """Settings with zero backoff so retry tests run instantly."""
    return GenerationSettings(
        OPENAI_API_KEY="sk-test-key",
        LLM_BASE_URL=PROVIDER_BASE_URL,
        LLM_MODEL="gpt-test",
        LLM_MAX_ATTEMPTS=3,
        LLM_REQUEST_TIMEOUT_SECONDS=5.0,
        LLM_RETRY_BASE_DELAY_SECONDS=0.0,
        LLM_RETRY_MAX_DELAY_SECONDS=0.0,
    )


@pytest.fixture
def valid_preferences() -> dict[str, Any]:
    return {
        "fitnessGoal": "weight_loss",
        "experienceLevel": "intermediate",
        "workoutDaysPerWeek": 4,
        "workoutDuration": 45,
        "availableDays": ["Mon", "Wed", "Fri", "Sat"],
        "preferredWorkoutTypes": ["strength", "cardio"],
        "equipmentAccess": "full_gym",
    }


def _exercise(name: str, muscles: list[str]) -> dict[str, Any]:
    return {
        "name": name,
        "category": "Strength",
        "targetMuscles": muscles,
        "sets": 3,
        "reps": 10,
        "weight": "Moderate",
        "restBetweenSets": 60,
        "notes": "Control the eccentric",
        "alternatives": ["Machine variation"],
    }


@pytest.fixture
def plan_document() -> dict[str, Any]:
    """A schema-conforming document with one training day and one rest day per week."""
    training_day = {
        "dayOfWeek": "Monday",
        "workoutType": "strength",
        "focus": "Full body",
        "duration": 45,
        "exercises": [
            _exercise("Back Squat", ["Quadriceps", "Glutes"]),
            _exercise("Bench Press", ["Chest", "Triceps"]),
            _exercise("Bent-over Row", ["Lats", "Biceps"]),
        ],
        "warmup": {"duration": 5, "description": "Light cardio and dynamic stretching"},
        "cooldown": {"duration": 5, "description": "Static stretching"},
    }
    rest_day = {"dayOfWeek": "Tuesday", "isRestDay": True, "recommendations": "Easy 20 minute walk"}
    return {
        "workoutPlan": {
            "metadata": {
                "name": "Lean Four",
                "goal": "weight_loss",
                "fitnessLevel": "intermediate",
                "durationWeeks": 2,
                "createdAt": "2026-10-19T00:00:00Z",
            },
            "overview": {
                "description": "Strength and conditioning for fat loss",
                "weeklyStructure": "4 sessions, 3 rest days",
                "recommendedEquipment": ["Barbell", "Dumbbells", "Rower"],
                "estimatedTimePerSession": "45 minutes",
            },
            "schedule": [
                {"week": 1, "days": [copy.deepcopy(training_day), copy.deepcopy(rest_day)]},
                {"week": 2, "days": [copy.deepcopy(training_day), copy.deepcopy(rest_day)]},
            ],
            "nutrition": {
                "generalGuidelines": "Moderate calorie deficit, mostly whole foods",
                "dailyProteinGoal": "1.6g per kg of bodyweight",
                "mealTimingRecommendation": "Protein-rich meal within 2 hours after training",
            },
            "progressionPlan": {"weeklyAdjustments": [{"week": 2, "adjustments": "Add one set to compound lifts"}]},
            "additionalNotes": "Stop any exercise that causes sharp pain.",
        }
    }


@pytest.fixture
def scripted_provider() -> Callable[..., ScriptedProvider]:
    def _make(*script: Any) -> ScriptedProvider:
        return ScriptedProvider(list(script))

    return _make


@pytest.fixture
def make_model_client(generation_settings: GenerationSettings) -> Callable[..., ModelClient]:
    """Build a ModelClient wired to a ScriptedProvider (or any MockTransport handler)."""

    def _make(handler: Callable, settings: GenerationSettings | None = None) -> ModelClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return ModelClient(settings or generation_settings, http_client=http_client)

    return _make


@pytest.fixture
def ok_reply() -> Callable[[Any], httpx.Response]:
    """Chat-completion reply whose message content is the JSON dump of a value (or a raw string)."""

    def _make(content: Any) -> httpx.Response:
        return chat_completion_response(content if isinstance(content, str) else json.dumps(content))

    return _make


@pytest.fixture
def provider_error() -> Callable[..., httpx.Response]:
    return error_response
