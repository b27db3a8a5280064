"""Service for editing household schedules and applying accepted suggestions."""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil import tz
from pydantic import ValidationError

from wattshare.domain.models import (
    DAY_INDEX,
    ApplianceUsageInterval,
    DayOfWeek,
    HouseholdId,
    IntervalCreate,
    IntervalUpdate,
    SuggestedChange,
    other_household,
)
from wattshare.exceptions import (
    IntervalNotFoundError,
    InvalidIntervalError,
    SchedulingPolicyError,
)
from wattshare.repos.memory import IntervalRepository
from wattshare.services.conflicts import detect, to_minutes


def current_day(now: datetime, timezone_name: str) -> DayOfWeek:
    """Return the weekday of *now* in the caller's time zone."""
    zone = tz.gettz(timezone_name)
    if zone is None:
        raise ValueError(f"Unknown time zone: {timezone_name!r}")
    if now.tzinfo is None:
        # Naive values are UTC.
        now = now.replace(tzinfo=timezone.utc)
    return list(DayOfWeek)[now.astimezone(zone).weekday()]


def create_interval(
    repo: IntervalRepository,
    data: IntervalCreate,
    now: datetime,
    timezone_name: str,
) -> ApplianceUsageInterval:
    """Store a new interval. New intervals may not be added for today."""
    today = current_day(now, timezone_name)
    if data.day_of_week == today:
        raise SchedulingPolicyError(
            f"Schedules cannot be created for the current day ({today}). "
            "Please select a different day.",
            details={"day_of_week": str(today)},
        )
    interval = ApplianceUsageInterval(**data.model_dump())
    repo.add(interval)
    return interval


def update_interval(
    repo: IntervalRepository,
    interval_id: str,
    changes: IntervalUpdate,
) -> ApplianceUsageInterval:
    """Apply *changes* to a stored interval. Edits are allowed on any day."""
    existing = repo.get(interval_id)
    if existing is None:
        raise IntervalNotFoundError(interval_id)

    merged = existing.model_dump() | changes.model_dump(exclude_unset=True)
    try:
        updated = ApplianceUsageInterval.model_validate(merged)
    except ValidationError as exc:
        raise InvalidIntervalError(
            f"Invalid change to interval {interval_id}",
            details={"errors": [error["msg"] for error in exc.errors()]},
        ) from exc
    repo.replace(updated)
    return updated


def match_suggestion(
    repo: IntervalRepository,
    household_id: HouseholdId,
    change: SuggestedChange,
) -> ApplianceUsageInterval:
    """Pick the interval of *household_id* that *change* most likely refers to.

    Suggestions name an appliance type only. Among the household's intervals of
    that type, those currently overlapping the other household win; then those
    on a day where the suggested window is free of the other household; then
    the one starting closest to the suggested start; then the earliest in the
    week.
    """
    candidates = [
        i for i in repo.list_for_household(household_id)
        if i.appliance_type == change.appliance_type
    ]
    if not candidates:
        raise IntervalNotFoundError(
            f"of type {change.appliance_type} in {household_id}"
        )

    others = repo.list_for_household(other_household(household_id))
    result = detect(candidates, others)
    conflicted = {pair.a.id for pair in result.overlapping_pairs}
    pool = [i for i in candidates if i.id in conflicted] or candidates

    start, end = change.suggested_start_time, change.suggested_end_time
    blocked_days = {
        other.day_of_week
        for other in others
        if start < other.end_time and other.start_time < end
    }

    target = to_minutes(start)
    return min(
        pool,
        key=lambda i: (
            i.day_of_week in blocked_days,
            abs(to_minutes(i.start_time) - target),
            DAY_INDEX[i.day_of_week],
            i.start_time,
        ),
    )


def apply_suggestion(
    repo: IntervalRepository,
    household_id: HouseholdId,
    change: SuggestedChange,
) -> ApplianceUsageInterval:
    """Move the matching interval to the suggested window after a human accepts it."""
    try:
        bounds = IntervalUpdate(
            start_time=change.suggested_start_time,
            end_time=change.suggested_end_time,
        )
    except ValidationError as exc:
        raise InvalidIntervalError(
            f"Suggested window {change.suggested_start_time}-{change.suggested_end_time} is invalid",
            details={"errors": [error["msg"] for error in exc.errors()]},
        ) from exc

    interval = match_suggestion(repo, household_id, change)
    return update_interval(repo, interval.id, bounds)
