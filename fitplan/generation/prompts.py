"""Workout plan prompts.

The system prompt is a fixed output contract. The user prompt renders the
validated preferences; both are pure functions of their input.
"""

from fitplan.generation.schemas import PlanRequest, PromptPair

SYSTEM_PROMPT = """You are a professional fitness trainer specialized in creating personalized workout plans.
Create a workout plan based on user preferences and return it in the following JSON format ONLY:

{
  "workoutPlan": {
    "metadata": {
      "name": "<plan name>",
      "goal": "<user's goal>",
      "fitnessLevel": "<user's experience level>",
      "durationWeeks": <number of weeks>,
      "createdAt": "<current date in ISO format>"
    },
    "overview": {
      "description": "<brief description of the program>",
      "weeklyStructure": "<overall structure>",
      "recommendedEquipment": ["<equipment item>", "..."],
      "estimatedTimePerSession": "<duration> minutes"
    },
    "schedule": [
      {
        "week": 1,
        "days": [
          {
            "dayOfWeek": "<day name>",
            "workoutType": "<type>",
            "focus": "<focus area>",
            "duration": <minutes>,
            "exercises": [
              {
                "name": "<exercise name>",
                "category": "<category>",
                "targetMuscles": ["<muscle>", "..."],
                "sets": <number>,
                "reps": <number>,
                "weight": "<description or empty string>",
                "restBetweenSets": <seconds>,
                "notes": "<optional notes>",
                "alternatives": ["<alternative exercise>", "..."]
              }
            ],
            "warmup": {"duration": <minutes>, "description": "<description>"},
            "cooldown": {"duration": <minutes>, "description": "<description>"}
          },
          {
            "dayOfWeek": "<day name>",
            "isRestDay": true,
            "recommendations": "<optional light activities>"
          }
        ]
      }
    ],
    "nutrition": {
      "generalGuidelines": "<brief nutrition advice>",
      "dailyProteinGoal": "<recommendation>",
      "mealTimingRecommendation": "<recommendation>"
    },
    "progressionPlan": {
      "weeklyAdjustments": [
        {"week": 2, "adjustments": "<description of changes>"}
      ]
    },
    "additionalNotes": "<any other important information>"
  }
}

Rules:
- Every day is EITHER a training day (all training fields present) OR a rest day ("isRestDay": true).
- Include at least 3-4 exercises per training day.
- Use the rest day format for rest days; do not add exercises to them.
- Match exercises to the user's equipment access and experience level.
- Adapt for any limitations or injuries mentioned.
- Include warmup and cooldown for every training day.
- Create a reasonable progression plan across weeks.
- Your response MUST be a single valid JSON object.
- Do NOT include any explanations, markdown or text outside the JSON structure."""

NO_LIMITATIONS_TEXT = "No specific limitations or injuries."
NO_NOTES_TEXT = "No additional notes."


def build_user_prompt(request: PlanRequest) -> str:
    """Build the user prompt for workout plan generation.

    Args:
        request: Validated preferences

    Returns:
        Formatted prompt string
    """
    days_str = ", ".join(day.value for day in request.available_days)
    types_str = ", ".join(request.preferred_workout_types)

    prompt_parts = [
        "Please create a personalized workout plan with the following preferences:",
        "",
        f"Fitness Goal: {request.fitness_goal.value}",
        f"Experience Level: {request.experience_level.value}",
        f"Workout Days Per Week: {request.workout_days_per_week}",
        f"Workout Duration: {request.workout_duration} minutes per session",
        f"Available Days: {days_str}",
        f"Preferred Workout Types: {types_str}",
        f"Equipment Access: {request.equipment_access.value}",
    ]

    if request.limitations:
        prompt_parts.append(f"Limitations/Injuries: {request.limitations}")
    else:
        prompt_parts.append(NO_LIMITATIONS_TEXT)

    if request.additional_notes:
        prompt_parts.append(f"Additional Notes: {request.additional_notes}")
    else:
        prompt_parts.append(NO_NOTES_TEXT)

    prompt_parts.append("")
    prompt_parts.append(
        "Please provide a detailed workout plan following the JSON format specified in your "
        "instructions, with specific exercises, sets, reps, and a weekly schedule."
    )

    return "\n".join(prompt_parts)


def compose_prompt(request: PlanRequest) -> PromptPair:
    return PromptPair(system_instruction=SYSTEM_PROMPT, user_instruction=build_user_prompt(request))
