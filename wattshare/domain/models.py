"""Domain models for the shared appliance schedule."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator
from pydantic.alias_generators import to_camel

TIME_OF_DAY_PATTERN = re.compile(r"([01]\d|2[0-3]):[0-5]\d")

# Zero-padded 24h "HH:MM"; plain string comparison orders these correctly.
TimeOfDay = Annotated[str, Field(pattern=f"^{TIME_OF_DAY_PATTERN.pattern}$")]


class ApplianceType(StrEnum):
    CAR_CHARGER = "car-charger"
    OVEN = "oven"
    WASHING_MACHINE = "washing-machine"
    DRYER = "dryer"
    DISHWASHER = "dishwasher"


class DayOfWeek(StrEnum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class HouseholdId(StrEnum):
    A = "household-a"
    B = "household-b"


class UnplannedRequestStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


HOUSEHOLD_LABELS: dict[HouseholdId, str] = {
    HouseholdId.A: "Household A",
    HouseholdId.B: "Household B",
}

# Monday == 0, matching ``datetime.weekday()``.
DAY_INDEX: dict[DayOfWeek, int] = {day: i for i, day in enumerate(DayOfWeek)}


def other_household(household_id: HouseholdId) -> HouseholdId:
    return HouseholdId.B if household_id == HouseholdId.A else HouseholdId.A


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_bounds(start_time: str | None, end_time: str | None) -> None:
    if start_time is not None and end_time is not None and end_time <= start_time:
        raise ValueError("end_time must be after start_time")


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class ApplianceUsageInterval(CamelModel):
    id: str = Field(default_factory=_new_id)
    appliance_type: ApplianceType
    start_time: TimeOfDay
    end_time: TimeOfDay
    day_of_week: DayOfWeek
    household_id: HouseholdId
    owner_id: str
    description: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ApplianceUsageInterval:
        _check_bounds(self.start_time, self.end_time)
        return self


class SuggestedChange(CamelModel):
    """A proposed new window for an appliance; refers to a type, not an interval."""

    appliance_type: str
    suggested_start_time: str
    suggested_end_time: str
    reason: str


class ConflictReport(CamelModel):
    conflicts_detected: StrictBool
    summary: str = Field(alias="conflictSummary")
    suggested_time_changes: list[SuggestedChange]


class OverlappingPair(CamelModel):
    a: ApplianceUsageInterval
    b: ApplianceUsageInterval


class DetectionResult(CamelModel):
    overlapping_pairs: list[OverlappingPair] = Field(default_factory=list)

    @property
    def conflicts_detected(self) -> bool:
        return bool(self.overlapping_pairs)


class UnplannedRequest(CamelModel):
    """A one-off request to run an appliance outside the planned schedule."""

    id: str = Field(default_factory=_new_id)
    requester_user_id: str
    requester_household_id: HouseholdId
    target_household_id: HouseholdId
    appliance_type: ApplianceType
    day_of_week: DayOfWeek
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: str | None = None
    status: UnplannedRequestStatus = UnplannedRequestStatus.PENDING
    requested_at: datetime = Field(default_factory=_utcnow)
    responded_at: datetime | None = None
    responder_user_id: str | None = None

    @model_validator(mode="after")
    def _check_request(self) -> UnplannedRequest:
        _check_bounds(self.start_time, self.end_time)
        if self.target_household_id == self.requester_household_id:
            raise ValueError("target_household_id must be the other household")
        return self


# ---------------------------------------------------------------------------
# Generation service contract
# ---------------------------------------------------------------------------


class GenerationInterval(CamelModel):
    """An interval as the generation service sees it: no ids, no owners."""

    appliance_type: str
    start_time: str
    end_time: str
    day_of_week: str
    household: str


class GenerationRequest(CamelModel):
    household_a_schedule: list[GenerationInterval]
    household_b_schedule: list[GenerationInterval]
    usage_history: str | None = None
    user_preferences: str | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class IntervalCreate(CamelModel):
    appliance_type: ApplianceType
    start_time: TimeOfDay
    end_time: TimeOfDay
    day_of_week: DayOfWeek
    household_id: HouseholdId
    owner_id: str
    description: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> IntervalCreate:
        _check_bounds(self.start_time, self.end_time)
        return self


class IntervalUpdate(CamelModel):
    appliance_type: ApplianceType | None = None
    start_time: TimeOfDay | None = None
    end_time: TimeOfDay | None = None
    day_of_week: DayOfWeek | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> IntervalUpdate:
        _check_bounds(self.start_time, self.end_time)
        return self


class ConflictCheckResponse(CamelModel):
    conflicts_detected: bool
    summary: str
    overlapping_pairs: list[OverlappingPair]


class ResolveRequest(CamelModel):
    usage_history: str | None = None
    user_preferences: str | None = None


class ApplySuggestionRequest(CamelModel):
    household_id: HouseholdId
    change: SuggestedChange


class UnplannedRequestCreate(CamelModel):
    requester_user_id: str
    requester_household_id: HouseholdId
    target_household_id: HouseholdId
    appliance_type: ApplianceType
    day_of_week: DayOfWeek
    start_time: TimeOfDay
    end_time: TimeOfDay
    reason: str | None = None

    @model_validator(mode="after")
    def _check_request(self) -> UnplannedRequestCreate:
        _check_bounds(self.start_time, self.end_time)
        if self.target_household_id == self.requester_household_id:
            raise ValueError("target_household_id must be the other household")
        return self


class RespondRequest(CamelModel):
    status: UnplannedRequestStatus
    responder_user_id: str


class CancelRequest(CamelModel):
    user_id: str
