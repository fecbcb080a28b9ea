"""Preference validation.

Turns an untyped request payload into a PlanRequest or rejects it with a single,
actionable InvalidRequestError naming the first offending field.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from fitplan.generation.errors import InvalidRequestError
from fitplan.generation.schemas import PlanRequest

# Checked in this order; the first missing one is reported
REQUIRED_FIELDS: tuple[str, ...] = (
    "fitnessGoal",
    "experienceLevel",
    "workoutDaysPerWeek",
    "workoutDuration",
    "availableDays",
    "preferredWorkoutTypes",
    "equipmentAccess",
)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple):
        return len(value) == 0
    return False


def _raise_invalid(field: str, message: str) -> None:
    logger.bind(field=field).info("Rejected workout preferences")
    raise InvalidRequestError(field, message)


def _describe_validation_error(error: ValidationError) -> tuple[str, str]:
    """Pick the first pydantic error and phrase it around the payload field name."""
    first = error.errors()[0]
    loc = first.get("loc", ())
    field = str(loc[0]) if loc else "body"
    if len(loc) > 1 and isinstance(loc[1], int):
        return field, f"{field}[{loc[1]}] is invalid: {first['msg']}"
    return field, f"{field} is invalid: {first['msg']}"


def validate_preferences(raw: Mapping[str, Any] | None) -> PlanRequest:
    """Validate a workout preference payload.

    Presence of every required field is checked first, in a fixed order, so the
    error always names the same field for the same payload. Types and ranges are
    checked afterwards.

    Args:
        raw: Decoded JSON payload

    Returns:
        Immutable PlanRequest

    Raises:
        InvalidRequestError: If a field is missing or has an unacceptable value
    """
    if not isinstance(raw, Mapping):
        _raise_invalid("body", "Workout preferences are required")

    for field in REQUIRED_FIELDS:
        if _is_missing(raw.get(field)):
            _raise_invalid(field, f"{field} is required")

    try:
        return PlanRequest.model_validate(dict(raw))
    except ValidationError as e:
        field, message = _describe_validation_error(e)
        logger.bind(field=field).info("Rejected workout preferences")
        raise InvalidRequestError(field, message) from e
