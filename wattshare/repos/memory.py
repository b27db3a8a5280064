"""In-memory repositories for schedule intervals and unplanned requests."""

from __future__ import annotations

from wattshare.domain.models import (
    DAY_INDEX,
    ApplianceUsageInterval,
    HouseholdId,
    UnplannedRequest,
    UnplannedRequestStatus,
)


def _schedule_order(interval: ApplianceUsageInterval) -> tuple[int, str]:
    return DAY_INDEX[interval.day_of_week], interval.start_time


class IntervalRepository:
    """Dict-backed store for ApplianceUsageInterval instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, ApplianceUsageInterval] = {}

    def add(self, interval: ApplianceUsageInterval) -> None:
        self._store[interval.id] = interval

    def get(self, interval_id: str) -> ApplianceUsageInterval | None:
        return self._store.get(interval_id)

    def list_all(self) -> list[ApplianceUsageInterval]:
        return sorted(self._store.values(), key=_schedule_order)

    def list_for_household(self, household_id: HouseholdId) -> list[ApplianceUsageInterval]:
        """Return one household's schedule ordered by weekday, then start time."""
        return [i for i in self.list_all() if i.household_id == household_id]

    def replace(self, interval: ApplianceUsageInterval) -> None:
        """Swap in a new version of an existing interval (same id)."""
        if interval.id not in self._store:
            raise KeyError(interval.id)
        self._store[interval.id] = interval

    def delete(self, interval_id: str) -> bool:
        return self._store.pop(interval_id, None) is not None


class UnplannedRequestRepository:
    """Dict-backed store for UnplannedRequest instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, UnplannedRequest] = {}

    def add(self, request: UnplannedRequest) -> None:
        self._store[request.id] = request

    def get(self, request_id: str) -> UnplannedRequest | None:
        return self._store.get(request_id)

    def list_all(
        self,
        target_household_id: HouseholdId | None = None,
        status: UnplannedRequestStatus | None = None,
    ) -> list[UnplannedRequest]:
        requests = sorted(self._store.values(), key=lambda r: r.requested_at)
        if target_household_id is not None:
            requests = [r for r in requests if r.target_household_id == target_household_id]
        if status is not None:
            requests = [r for r in requests if r.status == status]
        return requests
