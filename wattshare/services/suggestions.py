"""Service that asks a generation backend how to resolve schedule conflicts."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from pydantic import ValidationError

from wattshare.domain.models import (
    HOUSEHOLD_LABELS,
    ApplianceUsageInterval,
    ConflictReport,
    GenerationInterval,
    GenerationRequest,
)
from wattshare.exceptions import ResolutionError
from wattshare.services.conflicts import detect
from wattshare.services.generation import ResolutionGenerator

logger = logging.getLogger(__name__)


def to_generation_interval(interval: ApplianceUsageInterval) -> GenerationInterval:
    """Reduce an interval to what the generation service needs to see."""
    return GenerationInterval(
        appliance_type=str(interval.appliance_type),
        start_time=interval.start_time,
        end_time=interval.end_time,
        day_of_week=str(interval.day_of_week),
        household=HOUSEHOLD_LABELS[interval.household_id],
    )


def build_request(
    schedule_a: Sequence[ApplianceUsageInterval],
    schedule_b: Sequence[ApplianceUsageInterval],
    usage_history: str | None = None,
    user_preferences: str | None = None,
) -> GenerationRequest:
    return GenerationRequest(
        household_a_schedule=[to_generation_interval(i) for i in schedule_a],
        household_b_schedule=[to_generation_interval(i) for i in schedule_b],
        usage_history=usage_history,
        user_preferences=user_preferences,
    )


class SuggestionEngine:
    """Round-trips two schedules through a generation backend.

    Holds no state between calls; concurrent calls are independent and the
    caller decides which result to keep.
    """

    def __init__(self, generator: ResolutionGenerator) -> None:
        self.generator = generator

    async def resolve(
        self,
        schedule_a: Sequence[ApplianceUsageInterval],
        schedule_b: Sequence[ApplianceUsageInterval],
        usage_history: str | None = None,
        user_preferences: str | None = None,
    ) -> ConflictReport:
        """Return the backend's verdict, validated but otherwise untouched.

        Raises ``ResolutionError`` when the backend fails or its payload does
        not have the ConflictReport shape. Raises ``InvalidIntervalError``
        before contacting the backend if an interval ends before it starts.
        """
        mechanical = detect(schedule_a, schedule_b)
        request = build_request(schedule_a, schedule_b, usage_history, user_preferences)
        logger.info(
            "Requesting conflict resolution for %d + %d intervals",
            len(request.household_a_schedule),
            len(request.household_b_schedule),
        )

        try:
            payload = await self.generator.generate(request)
        except Exception as exc:
            logger.warning("Generation backend failed: %s", exc)
            raise ResolutionError("Conflict resolution service failed") from exc

        if not isinstance(payload, Mapping):
            raise ResolutionError(
                f"Conflict resolution service returned {type(payload).__name__}, expected an object"
            )
        try:
            report = ConflictReport.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Generation payload rejected: %s", exc)
            raise ResolutionError(
                "Conflict resolution service returned a malformed response"
            ) from exc

        if report.conflicts_detected != mechanical.conflicts_detected:
            # The backend's verdict is returned as-is; the mismatch is only reported.
            logger.warning(
                "Resolution verdict conflictsDetected=%s disagrees with %d mechanical overlap(s)",
                report.conflicts_detected,
                len(mechanical.overlapping_pairs),
            )
        return report
