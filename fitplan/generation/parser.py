"""Provider response parsing.

Two steps, both deterministic and never retried:
1. Decode the raw text as one JSON value (MalformedResponseError otherwise).
2. Validate it as a WorkoutPlanDocument (SchemaViolationError naming the first
   offending path otherwise, e.g. `schedule[0].days[2].exercises`).

Paths are relative to the `workoutPlan` object.
"""

import json
from collections.abc import Sequence
from typing import Any

from loguru import logger
from pydantic import ValidationError

from fitplan.generation.errors import MalformedResponseError, SchemaViolationError
from fitplan.generation.plan_document import DAY_VARIANT_TAGS, WorkoutPlanDocument

ROOT_KEY = "workoutPlan"

# Labels pydantic adds to locations inside scalar unions such as `reps: int | str`
_UNION_MEMBER_LABELS = frozenset({"str", "int", "float"})

# Requested from the model but not enforced
MIN_RECOMMENDED_EXERCISES = 3


def format_error_path(loc: Sequence[int | str]) -> str:
    """Render a pydantic error location as a document path.

    Union tags inserted after a day index, and scalar union labels, are not part
    of the document and are dropped.
    """
    parts = list(loc)
    if parts and parts[0] == ROOT_KEY:
        parts = parts[1:]
    if not parts:
        return ROOT_KEY

    path = ""
    previous: int | str | None = None
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        elif (part in DAY_VARIANT_TAGS and isinstance(previous, int)) or part in _UNION_MEMBER_LABELS:
            pass
        elif path:
            path += f".{part}"
        else:
            path = str(part)
        previous = part
    return path


def _describe_error(error: dict[str, Any]) -> str:
    error_type = error.get("type")
    if error_type == "missing":
        return "required field is missing"
    if error_type == "too_short":
        return "must not be empty"
    if error_type == "literal_error":
        return f"unexpected value ({error['msg']})"
    return str(error.get("msg", "invalid value"))


def _reject_constant(token: str) -> Any:
    # NaN and Infinity are not JSON and cannot be serialized back to callers
    diagnostic = f"non-standard JSON constant {token}"
    raise MalformedResponseError(f"Provider response is not valid JSON: {diagnostic}", diagnostic=diagnostic)


def decode_response(raw_text: str) -> Any:
    if not isinstance(raw_text, str):
        raise MalformedResponseError(f"Provider response is not text (got {type(raw_text).__name__})")
    try:
        return json.loads(raw_text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        diagnostic = f"{e.msg} (line {e.lineno}, column {e.colno})"
        raise MalformedResponseError(f"Provider response is not valid JSON: {diagnostic}", diagnostic=diagnostic) from e


def validate_document(data: Any) -> WorkoutPlanDocument:
    """Validate decoded JSON as a workout plan document.

    Raises:
        SchemaViolationError: On the first structural violation
    """
    if not isinstance(data, dict):
        raise SchemaViolationError("<root>", f"expected a JSON object, got {type(data).__name__}")
    if ROOT_KEY not in data:
        raise SchemaViolationError(ROOT_KEY, "required field is missing")
    if not isinstance(data[ROOT_KEY], dict):
        raise SchemaViolationError(ROOT_KEY, f"expected an object, got {type(data[ROOT_KEY]).__name__}")

    try:
        return WorkoutPlanDocument.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        raise SchemaViolationError(format_error_path(first["loc"]), _describe_error(first)) from e


def _log_quality_warnings(document: WorkoutPlanDocument) -> None:
    sparse_days = [
        path for path, day in document.training_days() if len(day.exercises) < MIN_RECOMMENDED_EXERCISES
    ]
    if sparse_days:
        logger.bind(paths=sparse_days, minimum=MIN_RECOMMENDED_EXERCISES).warning(
            "Generated plan has training days with fewer exercises than requested"
        )


def parse_plan(raw_text: str) -> WorkoutPlanDocument:
    """Parse and structurally validate provider output.

    Args:
        raw_text: Message content returned by the provider

    Returns:
        Validated WorkoutPlanDocument

    Raises:
        MalformedResponseError: If the text is not a single JSON value
        SchemaViolationError: If the JSON is not a workout plan document
    """
    document = validate_document(decode_response(raw_text))
    _log_quality_warnings(document)
    return document
