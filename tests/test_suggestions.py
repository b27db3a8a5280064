"""Tests for the SuggestionEngine round trip."""

from __future__ import annotations

import asyncio
import logging

import pytest

from wattshare.domain.models import (
    ApplianceType,
    ApplianceUsageInterval,
    ConflictReport,
    DayOfWeek,
    GenerationRequest,
    HouseholdId,
)
from wattshare.exceptions import InvalidIntervalError, ResolutionError
from wattshare.services.suggestions import SuggestionEngine, build_request

_CONFLICT_PAYLOAD = {
    "conflictsDetected": True,
    "conflictSummary": "The car charger and the oven overlap on Monday evening.",
    "suggestedTimeChanges": [
        {
            "applianceType": "oven",
            "suggestedStartTime": "18:00",
            "suggestedEndTime": "19:00",
            "reason": "Cook before the car starts charging.",
        }
    ],
}


class StubGenerator:
    """Returns a canned payload and remembers every request it saw."""

    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.payload


def _make_interval(start: str, end: str, household: HouseholdId, appliance: ApplianceType):
    return ApplianceUsageInterval(
        appliance_type=appliance,
        start_time=start,
        end_time=end,
        day_of_week=DayOfWeek.MONDAY,
        household_id=household,
        owner_id="owner-1",
        description="evening",
    )


@pytest.fixture()
def schedules():
    return (
        [_make_interval("22:00", "23:00", HouseholdId.A, ApplianceType.CAR_CHARGER)],
        [_make_interval("22:30", "23:30", HouseholdId.B, ApplianceType.OVEN)],
    )


def _resolve(generator, schedule_a, schedule_b, **kwargs) -> ConflictReport:
    return asyncio.run(SuggestionEngine(generator).resolve(schedule_a, schedule_b, **kwargs))


def test_well_formed_payload_is_passed_through(schedules):
    report = _resolve(StubGenerator(_CONFLICT_PAYLOAD), *schedules)

    assert report.conflicts_detected is True
    assert report.summary == _CONFLICT_PAYLOAD["conflictSummary"]
    assert len(report.suggested_time_changes) == 1
    assert report.model_dump(by_alias=True) == _CONFLICT_PAYLOAD


def test_missing_conflicts_detected_fails(schedules):
    payload = {k: v for k, v in _CONFLICT_PAYLOAD.items() if k != "conflictsDetected"}
    with pytest.raises(ResolutionError, match="malformed"):
        _resolve(StubGenerator(payload), *schedules)


def test_missing_suggestion_field_fails(schedules):
    payload = dict(_CONFLICT_PAYLOAD)
    payload["suggestedTimeChanges"] = [{"applianceType": "oven", "reason": "later"}]
    with pytest.raises(ResolutionError):
        _resolve(StubGenerator(payload), *schedules)


def test_non_boolean_verdict_is_not_coerced(schedules):
    payload = dict(_CONFLICT_PAYLOAD, conflictsDetected="yes")
    with pytest.raises(ResolutionError):
        _resolve(StubGenerator(payload), *schedules)


def test_non_object_payload_fails(schedules):
    with pytest.raises(ResolutionError, match="expected an object"):
        _resolve(StubGenerator(["not", "a", "report"]), *schedules)


def test_backend_failure_is_wrapped(schedules):
    error = TimeoutError("upstream timed out")
    with pytest.raises(ResolutionError) as excinfo:
        _resolve(StubGenerator(error=error), *schedules)
    assert excinfo.value.__cause__ is error


def test_request_contains_reduced_schedules_and_context(schedules):
    generator = StubGenerator(_CONFLICT_PAYLOAD)
    _resolve(
        generator,
        *schedules,
        usage_history="Oven mostly used on weekends",
        user_preferences="Charge the car after 21:00",
    )

    [request] = generator.requests
    dumped = request.model_dump(by_alias=True)
    assert dumped["householdASchedule"] == [
        {
            "applianceType": "car-charger",
            "startTime": "22:00",
            "endTime": "23:00",
            "dayOfWeek": "Monday",
            "household": "Household A",
        }
    ]
    assert dumped["householdBSchedule"][0]["household"] == "Household B"
    assert dumped["usageHistory"] == "Oven mostly used on weekends"
    assert dumped["userPreferences"] == "Charge the car after 21:00"


def test_empty_schedules_are_not_an_error():
    payload = {"conflictsDetected": False, "conflictSummary": "Nothing overlaps.", "suggestedTimeChanges": []}
    report = _resolve(StubGenerator(payload), [], [])
    assert report.conflicts_detected is False
    assert report.suggested_time_changes == []


def test_disagreement_is_logged_but_verdict_kept(schedules, caplog):
    payload = {"conflictsDetected": False, "conflictSummary": "All clear.", "suggestedTimeChanges": []}
    caplog.set_level(logging.WARNING, logger="wattshare.services.suggestions")

    report = _resolve(StubGenerator(payload), *schedules)

    assert report.conflicts_detected is False
    assert "disagrees" in caplog.text


def test_invalid_interval_fails_before_calling_backend():
    broken = ApplianceUsageInterval.model_construct(
        id="broken",
        appliance_type=ApplianceType.DRYER,
        start_time="12:00",
        end_time="11:00",
        day_of_week=DayOfWeek.MONDAY,
        household_id=HouseholdId.A,
        owner_id="owner-1",
    )
    generator = StubGenerator(_CONFLICT_PAYLOAD)
    with pytest.raises(InvalidIntervalError):
        _resolve(generator, [broken], [])
    assert generator.requests == []


def test_build_request_omits_ids_and_owners(schedules):
    request = build_request(*schedules)
    dumped = request.model_dump(by_alias=True)
    assert "id" not in dumped["householdASchedule"][0]
    assert "ownerId" not in dumped["householdASchedule"][0]
    assert dumped["usageHistory"] is None
