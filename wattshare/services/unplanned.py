"""Service for unplanned usage requests between the two households."""

from __future__ import annotations

import logging
from datetime import datetime

from wattshare.domain.models import (
    UnplannedRequest,
    UnplannedRequestCreate,
    UnplannedRequestStatus,
)
from wattshare.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    UnplannedRequestNotFoundError,
)
from wattshare.repos.memory import UnplannedRequestRepository

logger = logging.getLogger(__name__)

_RESPONSES = (UnplannedRequestStatus.APPROVED, UnplannedRequestStatus.REJECTED)


def create_request(
    repo: UnplannedRequestRepository,
    data: UnplannedRequestCreate,
    now: datetime,
) -> UnplannedRequest:
    request = UnplannedRequest(**data.model_dump(), requested_at=now)
    repo.add(request)
    logger.info(
        "Unplanned %s request %s from %s to %s",
        request.appliance_type,
        request.id,
        request.requester_household_id,
        request.target_household_id,
    )
    return request


def _get_pending(repo: UnplannedRequestRepository, request_id: str) -> UnplannedRequest:
    request = repo.get(request_id)
    if request is None:
        raise UnplannedRequestNotFoundError(request_id)
    if request.status != UnplannedRequestStatus.PENDING:
        raise InvalidTransitionError(f"Unplanned request is already {request.status}")
    return request


def respond(
    repo: UnplannedRequestRepository,
    request_id: str,
    status: UnplannedRequestStatus,
    responder_user_id: str,
    now: datetime,
) -> UnplannedRequest:
    """Approve or reject a pending request on behalf of the target household."""
    if status not in _RESPONSES:
        raise InvalidTransitionError(
            f"A response must be {' or '.join(_RESPONSES)}, not {status}"
        )
    request = _get_pending(repo, request_id)
    request.status = status
    request.responded_at = now
    request.responder_user_id = responder_user_id
    return request


def cancel(
    repo: UnplannedRequestRepository,
    request_id: str,
    user_id: str,
) -> UnplannedRequest:
    """Withdraw a pending request. Only the requester may cancel."""
    request = _get_pending(repo, request_id)
    if request.requester_user_id != user_id:
        raise PermissionDeniedError("Only the requester can cancel an unplanned request")
    request.status = UnplannedRequestStatus.CANCELLED
    return request
