"""Service for detecting overlapping appliance usage between the two households.

Overlap rule: conflict if a.start_time < b.end_time AND b.start_time < a.end_time,
on the same weekday, for intervals owned by different households. Exact boundary
touches (end == start) are NOT considered conflicts. Appliance type plays no
part: any two appliances running at once draw on the same shared capacity.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from wattshare.domain.models import (
    HOUSEHOLD_LABELS,
    ApplianceUsageInterval,
    DayOfWeek,
    DetectionResult,
    OverlappingPair,
    SuggestedChange,
)
from wattshare.exceptions import InvalidIntervalError

NO_CONFLICTS_SUMMARY = "No overlapping appliance usage was found between the two households."


def to_minutes(hhmm: str) -> int:
    """Convert 'HH:MM' to minutes since midnight."""
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def intervals_overlap(a: ApplianceUsageInterval, b: ApplianceUsageInterval) -> bool:
    return a.start_time < b.end_time and b.start_time < a.end_time


def _by_day(
    schedule: Iterable[ApplianceUsageInterval],
) -> dict[DayOfWeek, list[ApplianceUsageInterval]]:
    buckets: dict[DayOfWeek, list[ApplianceUsageInterval]] = defaultdict(list)
    for interval in schedule:
        if interval.start_time >= interval.end_time:
            raise InvalidIntervalError(
                f"Interval {interval.id} ends at {interval.end_time}, "
                f"not after its start at {interval.start_time}",
                details={"interval_id": interval.id},
            )
        buckets[interval.day_of_week].append(interval)
    for intervals in buckets.values():
        intervals.sort(key=lambda i: (i.start_time, i.end_time))
    return buckets


def detect(
    schedule_a: Iterable[ApplianceUsageInterval],
    schedule_b: Iterable[ApplianceUsageInterval],
) -> DetectionResult:
    """Return every overlapping (a, b) pair, a from *schedule_a* and b from *schedule_b*.

    Pairs are ordered by weekday, then by the start times of a and b. Swapping
    the arguments yields the same pairs with a and b swapped.
    """
    days_a = _by_day(schedule_a)
    days_b = _by_day(schedule_b)

    pairs: list[OverlappingPair] = []
    for day in DayOfWeek:
        for a in days_a.get(day, []):
            for b in days_b.get(day, []):
                # A household coordinates its own appliances.
                if a.household_id == b.household_id:
                    continue
                if intervals_overlap(a, b):
                    pairs.append(OverlappingPair(a=a, b=b))
    return DetectionResult(overlapping_pairs=pairs)


def describe_interval(interval: ApplianceUsageInterval) -> str:
    return (
        f"{interval.appliance_type} {interval.start_time}-{interval.end_time} "
        f"({HOUSEHOLD_LABELS[interval.household_id]})"
    )


def summarize(result: DetectionResult) -> str:
    """Render a detection result as one line per colliding pair."""
    if not result.overlapping_pairs:
        return NO_CONFLICTS_SUMMARY
    count = len(result.overlapping_pairs)
    lines = [f"Found {count} overlapping appliance usage{'s' if count != 1 else ''}:"]
    for pair in result.overlapping_pairs:
        lines.append(
            f"{pair.a.day_of_week}: {describe_interval(pair.a)} overlaps "
            f"{describe_interval(pair.b)}"
        )
    return "\n".join(lines)


def _earliest_fit(
    duration: int,
    busy: Iterable[tuple[int, int]],
    first: int,
    last: int,
    step: int,
) -> tuple[int, int] | None:
    busy = list(busy)
    start = first
    while start + duration <= last:
        end = start + duration
        if all(not (start < b_end and b_start < end) for b_start, b_end in busy):
            return start, end
        start += step
    return None


def suggest_alternatives(
    schedule_a: Iterable[ApplianceUsageInterval],
    schedule_b: Iterable[ApplianceUsageInterval],
    *,
    day_start: str = "06:00",
    day_end: str = "23:59",
    step_minutes: int = 15,
) -> list[SuggestedChange]:
    """Propose new windows for the colliding intervals of *schedule_b*.

    Each colliding interval is moved, at most once, to the earliest window of
    the same length on the same day that is free in both households'
    schedules, counting windows already proposed in this run. Intervals with
    no free window are left out of the result.
    """
    schedule_a = list(schedule_a)
    schedule_b = list(schedule_b)
    result = detect(schedule_a, schedule_b)

    blockers: dict[str, list[ApplianceUsageInterval]] = defaultdict(list)
    for pair in result.overlapping_pairs:
        blockers[pair.b.id].append(pair.a)
    moving = list(dict.fromkeys(pair.b.id for pair in result.overlapping_pairs))

    # Occupied slots per day, keyed by interval id so a moved interval replaces
    # its own old slot.
    occupied: dict[DayOfWeek, dict[str, tuple[int, int]]] = defaultdict(dict)
    by_id: dict[str, ApplianceUsageInterval] = {}
    for interval in schedule_a + schedule_b:
        occupied[interval.day_of_week][interval.id] = (
            to_minutes(interval.start_time),
            to_minutes(interval.end_time),
        )
        by_id[interval.id] = interval

    first, last = to_minutes(day_start), to_minutes(day_end)
    suggestions: list[SuggestedChange] = []
    for interval_id in moving:
        interval = by_id[interval_id]
        slots = occupied[interval.day_of_week]
        start, end = slots[interval_id]
        busy = [slot for other_id, slot in slots.items() if other_id != interval_id]
        window = _earliest_fit(end - start, busy, first, last, step_minutes)
        if window is None:
            continue
        slots[interval_id] = window

        new_start, new_end = from_minutes(window[0]), from_minutes(window[1])
        others = ", ".join(describe_interval(i) for i in blockers[interval_id])
        suggestions.append(
            SuggestedChange(
                appliance_type=str(interval.appliance_type),
                suggested_start_time=new_start,
                suggested_end_time=new_end,
                reason=(
                    f"Move {interval.appliance_type} on {interval.day_of_week} from "
                    f"{interval.start_time}-{interval.end_time} to {new_start}-{new_end} "
                    f"to avoid overlapping {others}."
                ),
            )
        )
    return suggestions
