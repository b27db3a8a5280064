"""FastAPI application — entry point for the shared appliance scheduler."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from wattshare.config import get_settings
from wattshare.domain.models import (
    ApplianceUsageInterval,
    ApplySuggestionRequest,
    CancelRequest,
    ConflictCheckResponse,
    ConflictReport,
    HouseholdId,
    IntervalCreate,
    IntervalUpdate,
    ResolveRequest,
    RespondRequest,
    UnplannedRequest,
    UnplannedRequestCreate,
    UnplannedRequestStatus,
)
from wattshare.exceptions import AppError
from wattshare.repos.memory import IntervalRepository, UnplannedRequestRepository
from wattshare.services import schedules, unplanned
from wattshare.services.conflicts import detect, summarize
from wattshare.services.generation import build_generator
from wattshare.services.suggestions import SuggestionEngine

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.project_name)

# ── Singletons (created at import time for simplicity) ────────────────
interval_repo = IntervalRepository()
unplanned_repo = UnplannedRequestRepository()
suggestion_engine = SuggestionEngine(build_generator(settings))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "details": exc.details},
    )


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


# ── Intervals ─────────────────────────────────────────────────────────


@app.get("/intervals", response_model=list[ApplianceUsageInterval])
def list_intervals(household_id: HouseholdId | None = None) -> list[ApplianceUsageInterval]:
    """Return all intervals, or one household's schedule."""
    if household_id is None:
        return interval_repo.list_all()
    return interval_repo.list_for_household(household_id)


@app.post("/intervals", response_model=ApplianceUsageInterval, status_code=201)
def create_interval(payload: IntervalCreate, now: datetime | None = None) -> ApplianceUsageInterval:
    """Create an interval. Pass *now* to control the clock used for the today rule."""
    return schedules.create_interval(interval_repo, payload, _now(now), settings.timezone)


@app.get("/intervals/{interval_id}", response_model=ApplianceUsageInterval)
def get_interval(interval_id: str) -> ApplianceUsageInterval:
    interval = interval_repo.get(interval_id)
    if interval is None:
        raise HTTPException(status_code=404, detail="Interval not found")
    return interval


@app.put("/intervals/{interval_id}", response_model=ApplianceUsageInterval)
def update_interval(interval_id: str, payload: IntervalUpdate) -> ApplianceUsageInterval:
    return schedules.update_interval(interval_repo, interval_id, payload)


@app.delete("/intervals/{interval_id}", status_code=204)
def delete_interval(interval_id: str) -> Response:
    if not interval_repo.delete(interval_id):
        raise HTTPException(status_code=404, detail="Interval not found")
    return Response(status_code=204)


# ── Conflicts ─────────────────────────────────────────────────────────


@app.get("/conflicts", response_model=ConflictCheckResponse)
def check_conflicts() -> ConflictCheckResponse:
    """Mechanical overlap check between the two stored schedules."""
    result = detect(
        interval_repo.list_for_household(HouseholdId.A),
        interval_repo.list_for_household(HouseholdId.B),
    )
    return ConflictCheckResponse(
        conflicts_detected=result.conflicts_detected,
        summary=summarize(result),
        overlapping_pairs=result.overlapping_pairs,
    )


@app.post("/conflicts/resolve", response_model=ConflictReport)
async def resolve_conflicts(payload: ResolveRequest) -> ConflictReport:
    """Ask the configured generation backend for a verdict and suggestions."""
    return await suggestion_engine.resolve(
        interval_repo.list_for_household(HouseholdId.A),
        interval_repo.list_for_household(HouseholdId.B),
        usage_history=payload.usage_history,
        user_preferences=payload.user_preferences,
    )


@app.post("/conflicts/apply", response_model=ApplianceUsageInterval)
def apply_suggestion(payload: ApplySuggestionRequest) -> ApplianceUsageInterval:
    """Apply a suggestion a household member has accepted."""
    interval = schedules.apply_suggestion(interval_repo, payload.household_id, payload.change)
    logger.info("Applied suggestion to interval %s", interval.id)
    return interval


# ── Unplanned requests ────────────────────────────────────────────────


@app.get("/unplanned-requests", response_model=list[UnplannedRequest])
def list_unplanned_requests(
    target_household_id: HouseholdId | None = None,
    status: UnplannedRequestStatus | None = None,
) -> list[UnplannedRequest]:
    return unplanned_repo.list_all(target_household_id=target_household_id, status=status)


@app.post("/unplanned-requests", response_model=UnplannedRequest, status_code=201)
def create_unplanned_request(
    payload: UnplannedRequestCreate, now: datetime | None = None
) -> UnplannedRequest:
    return unplanned.create_request(unplanned_repo, payload, _now(now))


@app.post("/unplanned-requests/{request_id}/respond", response_model=UnplannedRequest)
def respond_to_unplanned_request(
    request_id: str, payload: RespondRequest, now: datetime | None = None
) -> UnplannedRequest:
    return unplanned.respond(
        unplanned_repo, request_id, payload.status, payload.responder_user_id, _now(now)
    )


@app.post("/unplanned-requests/{request_id}/cancel", response_model=UnplannedRequest)
def cancel_unplanned_request(request_id: str, payload: CancelRequest) -> UnplannedRequest:
    return unplanned.cancel(unplanned_repo, request_id, payload.user_id)
