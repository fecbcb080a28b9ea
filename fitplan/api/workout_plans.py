"""Workout plan generation endpoints.

Maps generation outcomes onto HTTP: the plan on success, otherwise the status
of the error kind with a caller-safe message. Details stay in server logs.
"""

import json
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from fitplan.generation.errors import GenerationError, InvalidRequestError
from fitplan.generation.orchestrator import GenerationOrchestrator

router = APIRouter(prefix="/ai", tags=["ai", "workout-plans"])


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    return request.app.state.orchestrator


async def _read_preferences(request: Request) -> Any:
    """Decode the request body; an empty body is passed on as None."""
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        logger.bind(body_bytes=len(body)).info("Rejected workout preferences: body is not JSON")
        raise InvalidRequestError("body", "Workout preferences must be a valid JSON object") from e


@router.post("/workout-plan")
async def generate_workout_plan(
    request: Request,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """Generate a workout plan from the posted preferences."""
    try:
        payload = await _read_preferences(request)
        document = await orchestrator.generate(payload)
    except GenerationError as e:
        logger.bind(error_kind=e.kind.value, http_status=e.http_status).warning("Workout plan request failed")
        return JSONResponse(status_code=e.http_status, content=e.to_public_dict())

    return JSONResponse(status_code=status.HTTP_200_OK, content=document.to_dict())


@router.get("/health")
async def provider_health(orchestrator: GenerationOrchestrator = Depends(get_orchestrator)) -> JSONResponse:
    health = await orchestrator.check_provider_health()
    status_code = status.HTTP_200_OK if health.available else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=asdict(health))
