"""Backends that turn two schedules into a conflict verdict with suggestions.

A backend receives a ``GenerationRequest`` and returns the raw payload
``{"conflictsDetected", "conflictSummary", "suggestedTimeChanges"}``. Checking
that payload is the caller's job (see ``services.suggestions``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from wattshare.config import Settings
from wattshare.domain.models import (
    ApplianceUsageInterval,
    GenerationInterval,
    GenerationRequest,
    HouseholdId,
)
from wattshare.exceptions import GenerationError
from wattshare.services.conflicts import detect, suggest_alternatives, summarize

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are an assistant that detects and resolves scheduling conflicts for \
high-voltage appliances in a building shared by two households with a shared \
electrical capacity.

Rules for identifying conflicts:
1. Car charger limit: at most one car charger may be active at any moment \
across both households. Two car chargers running at the same time on the same \
day is a conflict.
2. Appliance limit while charging: while a car charger is active in either \
household, at most two other high-voltage appliances (oven, washing machine, \
dryer, dishwasher) may be active across both households in total. A car \
charger plus three or more other appliances is a conflict.
3. Any other overlapping usage of appliances from different households on the \
same day should also be reported as a conflict.

Use the usage history and user preferences, when given, to suggest alternative \
times that resolve the conflicts. Prioritise violations of rules 1 and 2. Keep \
each suggested window the same length as the original usage.

Respond with ONLY a JSON object of this form:
{
  "conflictsDetected": <true or false>,
  "conflictSummary": "<detailed summary of conflicts, or confirmation none were found>",
  "suggestedTimeChanges": [
    {
      "applianceType": "<appliance type exactly as given>",
      "suggestedStartTime": "HH:MM",
      "suggestedEndTime": "HH:MM",
      "reason": "<why this change resolves a conflict>"
    }
  ]
}

If no conflicts are detected, set "conflictsDetected" to false and return an \
empty "suggestedTimeChanges" array.
"""


class ResolutionGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> dict[str, Any]:
        ...


def _format_schedule(schedule: list[GenerationInterval]) -> str:
    if not schedule:
        return "(no scheduled usage)"
    return "\n".join(
        f"- {item.day_of_week}: {item.appliance_type} from {item.start_time} to {item.end_time}"
        for item in schedule
    )


def render_prompt(request: GenerationRequest) -> str:
    """Render the user message sent alongside the system prompt."""
    return (
        f"Household A schedule:\n{_format_schedule(request.household_a_schedule)}\n\n"
        f"Household B schedule:\n{_format_schedule(request.household_b_schedule)}\n\n"
        f"Usage history: {request.usage_history or 'Not provided'}\n"
        f"User preferences: {request.user_preferences or 'Not provided'}"
    )


class OpenAIResolutionGenerator:
    """Ask an OpenAI chat model for the verdict, in JSON mode."""

    def __init__(self, model: str = "gpt-4o-mini", api_key: str | None = None) -> None:
        self.model = model
        self.api_key = api_key

    async def generate(self, request: GenerationRequest) -> dict[str, Any]:
        from openai import AsyncOpenAI

        async with AsyncOpenAI(api_key=self.api_key) as client:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": render_prompt(request)},
                ],
                temperature=0,
                response_format={"type": "json_object"},
            )
        content = response.choices[0].message.content
        if not content:
            raise GenerationError("Generation service returned an empty response")
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise GenerationError("Generation service returned invalid JSON") from exc


def _to_intervals(
    schedule: list[GenerationInterval], household_id: HouseholdId
) -> list[ApplianceUsageInterval]:
    return [
        ApplianceUsageInterval(
            appliance_type=item.appliance_type,
            start_time=item.start_time,
            end_time=item.end_time,
            day_of_week=item.day_of_week,
            household_id=household_id,
            owner_id=item.household,
        )
        for item in schedule
    ]


class HeuristicResolutionGenerator:
    """Deterministic backend: mechanical overlap check plus earliest-fit repacking.

    Household B's colliding intervals are the ones moved.
    """

    def __init__(
        self,
        day_start: str = "06:00",
        day_end: str = "23:59",
        step_minutes: int = 15,
    ) -> None:
        self.day_start = day_start
        self.day_end = day_end
        self.step_minutes = step_minutes

    async def generate(self, request: GenerationRequest) -> dict[str, Any]:
        schedule_a = _to_intervals(request.household_a_schedule, HouseholdId.A)
        schedule_b = _to_intervals(request.household_b_schedule, HouseholdId.B)

        result = detect(schedule_a, schedule_b)
        changes = suggest_alternatives(
            schedule_a,
            schedule_b,
            day_start=self.day_start,
            day_end=self.day_end,
            step_minutes=self.step_minutes,
        )
        return {
            "conflictsDetected": result.conflicts_detected,
            "conflictSummary": summarize(result),
            "suggestedTimeChanges": [c.model_dump(by_alias=True) for c in changes],
        }


def build_generator(settings: Settings) -> ResolutionGenerator:
    """Return the backend named by ``settings.generator``."""
    logger.info("Using %s resolution generator", settings.generator)
    if settings.generator == "openai":
        return OpenAIResolutionGenerator(
            model=settings.openai_model, api_key=settings.openai_api_key
        )
    return HeuristicResolutionGenerator(
        day_start=settings.suggestion_day_start,
        day_end=settings.suggestion_day_end,
        step_minutes=settings.suggestion_step_minutes,
    )
