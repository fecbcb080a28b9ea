from typing import Annotated, Any, Literal

from pydantic import AllowInfNan, BaseModel, ConfigDict, Discriminator, Field, Strict, StrictInt, StrictStr, Tag
from pydantic.alias_generators import to_camel

Number = StrictInt | Annotated[float, Strict(), AllowInfNan(False)]


class PlanModel(BaseModel):
    """Base for every node of a generated plan.

    Strict finite scalars, camelCase wire names only, unknown keys preserved so a plan
    round-trips to the exact document the provider produced.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        extra="allow",
        frozen=True,
    )


class PlanMetadata(PlanModel):
    name: StrictStr
    goal: StrictStr
    fitness_level: StrictStr
    duration_weeks: StrictInt = Field(..., gt=0)
    created_at: StrictStr


class PlanOverview(PlanModel):
    description: StrictStr
    weekly_structure: StrictStr
    recommended_equipment: list[StrictStr]
    estimated_time_per_session: StrictStr | Number


class Exercise(PlanModel):
    name: StrictStr
    category: StrictStr
    target_muscles: list[StrictStr]
    sets: StrictInt
    reps: StrictInt | StrictStr  # "8-12" style ranges are common
    weight: StrictStr | Number
    rest_between_sets: Number
    notes: StrictStr | None = None
    alternatives: list[StrictStr] | None = None


class SessionSegment(PlanModel):
    duration: Number
    description: StrictStr


class TrainingDay(PlanModel):
    day_of_week: StrictStr
    workout_type: StrictStr
    focus: StrictStr
    duration: Number
    exercises: list[Exercise] = Field(..., min_length=1)
    warmup: SessionSegment
    cooldown: SessionSegment
    is_rest_day: Literal[False] = False


class RestDay(PlanModel):
    day_of_week: StrictStr
    is_rest_day: Literal[True]
    recommendations: StrictStr | None = None


def _day_variant(value: Any) -> str:
    """`isRestDay: true` selects the rest variant; anything else must be a training day."""
    if isinstance(value, RestDay):
        return "rest"
    if isinstance(value, dict) and value.get("isRestDay") is True:
        return "rest"
    return "training"


PlanDay = Annotated[
    Annotated[TrainingDay, Tag("training")] | Annotated[RestDay, Tag("rest")],
    Discriminator(_day_variant),
]
DAY_VARIANT_TAGS = frozenset({"training", "rest"})


class PlanWeek(PlanModel):
    week: StrictInt = Field(..., gt=0)
    days: list[PlanDay] = Field(..., min_length=1)


class NutritionGuidance(PlanModel):
    general_guidelines: StrictStr
    daily_protein_goal: StrictStr
    meal_timing_recommendation: StrictStr


class WeeklyAdjustment(PlanModel):
    week: StrictInt = Field(..., gt=0)
    adjustments: StrictStr


class ProgressionPlan(PlanModel):
    weekly_adjustments: list[WeeklyAdjustment]


class WorkoutPlan(PlanModel):
    metadata: PlanMetadata
    overview: PlanOverview
    schedule: list[PlanWeek] = Field(..., min_length=1)
    nutrition: NutritionGuidance
    progression_plan: ProgressionPlan
    additional_notes: StrictStr | None = None


class WorkoutPlanDocument(PlanModel):
    """A structurally valid generated plan, `{"workoutPlan": {...}}` on the wire."""

    workout_plan: WorkoutPlan

    @property
    def schedule(self) -> list[PlanWeek]:
        return self.workout_plan.schedule

    def training_days(self) -> list[tuple[str, TrainingDay]]:
        """Training days with their document path, in schedule order."""
        days: list[tuple[str, TrainingDay]] = []
        for week_index, week in enumerate(self.schedule):
            for day_index, day in enumerate(week.days):
                if isinstance(day, TrainingDay):
                    days.append((f"schedule[{week_index}].days[{day_index}]", day))
        return days

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)
