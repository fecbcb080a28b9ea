"""Generation pipeline input schemas.

PlanRequest is the validated, immutable form of a user's workout preferences.
PromptPair and GenerationAttempt are frozen dataclasses that live only for the
duration of one generate call.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FitnessGoal(StrEnum):
    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    STRENGTH = "strength"
    ENDURANCE = "endurance"
    GENERAL_FITNESS = "general_fitness"


class ExperienceLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class EquipmentAccess(StrEnum):
    NONE = "none"
    LIMITED = "limited"
    HOME_GYM = "home_gym"
    FULL_GYM = "full_gym"


class Weekday(StrEnum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"
    SUN = "Sun"


# Spellings sent by the legacy web client
_GOAL_ALIASES = {
    "weightloss": FitnessGoal.WEIGHT_LOSS,
    "musclegain": FitnessGoal.MUSCLE_GAIN,
    "general": FitnessGoal.GENERAL_FITNESS,
    "generalfitness": FitnessGoal.GENERAL_FITNESS,
}
_EQUIPMENT_ALIASES = {
    "full": EquipmentAccess.FULL_GYM,
    "fullgym": EquipmentAccess.FULL_GYM,
    "homegym": EquipmentAccess.HOME_GYM,
    "bodyweight": EquipmentAccess.NONE,
}


def _enum_key(value: str) -> str:
    return value.strip().lower().replace("_", "").replace("-", "").replace(" ", "")


_WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_WEEKDAY_LOOKUP: dict[str, Weekday] = {
    **{day.value.lower(): day for day in Weekday},
    **{name.lower(): day for name, day in zip(_WEEKDAY_NAMES, Weekday, strict=True)},
}


def _normalize_weekday(value: Any) -> Any:
    if isinstance(value, str):
        return _WEEKDAY_LOOKUP.get(value.strip().lower(), value)
    return value


def _dedupe(values: list[Any]) -> list[Any]:
    seen: list[Any] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class PlanRequest(BaseModel):
    """Validated workout preferences.

    Field names follow the JSON payload (camelCase aliases); set-like fields are
    stored as tuples in first-seen order so prompts render deterministically.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    fitness_goal: FitnessGoal
    experience_level: ExperienceLevel
    workout_days_per_week: int = Field(..., ge=1, le=7)
    workout_duration: int = Field(..., gt=0, description="Session length in minutes")
    available_days: tuple[Weekday, ...] = Field(..., min_length=1)
    preferred_workout_types: tuple[str, ...] = Field(..., min_length=1)
    equipment_access: EquipmentAccess
    limitations: str | None = None
    additional_notes: str | None = None

    @field_validator("fitness_goal", mode="before")
    @classmethod
    def normalize_goal(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = _enum_key(value)
            if key in _GOAL_ALIASES:
                return _GOAL_ALIASES[key]
            for goal in FitnessGoal:
                if _enum_key(goal.value) == key:
                    return goal
        return value

    @field_validator("experience_level", mode="before")
    @classmethod
    def normalize_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("equipment_access", mode="before")
    @classmethod
    def normalize_equipment(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = _enum_key(value)
            if key in _EQUIPMENT_ALIASES:
                return _EQUIPMENT_ALIASES[key]
            for equipment in EquipmentAccess:
                if _enum_key(equipment.value) == key:
                    return equipment
        return value

    @field_validator("available_days", mode="before")
    @classmethod
    def normalize_days(cls, value: Any) -> Any:
        if isinstance(value, list | tuple):
            return tuple(_dedupe([_normalize_weekday(day) for day in value]))
        return value

    @field_validator("preferred_workout_types", mode="before")
    @classmethod
    def normalize_workout_types(cls, value: Any) -> Any:
        if isinstance(value, list | tuple):
            cleaned = [item.strip() if isinstance(item, str) else item for item in value]
            return tuple(_dedupe([item for item in cleaned if item != ""]))
        return value

    @field_validator("limitations", "additional_notes", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@dataclass(frozen=True)
class PromptPair:
    """System and user instructions sent to the provider, in that order.

    Attributes:
        system_instruction: Fixed output contract
        user_instruction: The specific preferences
    """

    system_instruction: str
    user_instruction: str

    def to_messages(self) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": self.system_instruction},
            {"role": "user", "content": self.user_instruction},
        ]


class AttemptOutcome(StrEnum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class GenerationAttempt:
    """One provider call made while serving a generate request.

    Attributes:
        attempt: 1-based attempt number
        elapsed_seconds: Wall time spent on this attempt
        outcome: How the attempt ended
        status_code: HTTP status returned by the provider, if any
    """

    attempt: int
    elapsed_seconds: float
    outcome: AttemptOutcome
    status_code: int | None = None
