"""FastAPI application factory.

Run with: uvicorn fitplan.main:create_app --factory
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from fitplan.api.workout_plans import router as workout_plans_router
from fitplan.config.settings import GenerationSettings, load_settings
from fitplan.core.logger import setup_logger
from fitplan.generation.model_client import ModelClient
from fitplan.generation.orchestrator import GenerationOrchestrator


def create_app(settings: GenerationSettings | None = None, model_client: ModelClient | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        model_client: Provider client override (tests inject one with a mock transport)
    """
    settings = settings or load_settings()
    setup_logger(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator = GenerationOrchestrator(settings, model_client)
        app.state.orchestrator = orchestrator
        logger.bind(
            model=settings.llm_model,
            max_attempts=settings.max_attempts,
            timeout_seconds=settings.request_timeout_seconds,
            max_concurrent_requests=settings.max_concurrent_requests,
        ).info("Workout plan generator started")
        try:
            yield
        finally:
            await orchestrator.aclose()
            logger.info("Workout plan generator stopped")

    app = FastAPI(title="Workout Plan Generator", lifespan=lifespan)
    app.include_router(workout_plans_router)
    return app
