"""Application errors.

Every error carries the HTTP status code the API layer answers with, so
services can raise them without knowing about FastAPI.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for all application exceptions."""

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidIntervalError(AppError):
    """Raised when an interval breaks the start-before-end invariant."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class SchedulingPolicyError(AppError):
    """Raised when a schedule change is refused by household policy."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} {resource_id} not found", status_code=404)


class IntervalNotFoundError(ResourceNotFoundError):
    def __init__(self, interval_id: str):
        super().__init__("Interval", interval_id)


class UnplannedRequestNotFoundError(ResourceNotFoundError):
    def __init__(self, request_id: str):
        super().__init__("Unplanned request", request_id)


class InvalidTransitionError(AppError):
    """Raised when an unplanned request is moved to a status it cannot reach."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class PermissionDeniedError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=403)


class GenerationError(AppError):
    """Raised by a generation backend that could not produce a usable answer."""

    def __init__(self, message: str):
        super().__init__(message, status_code=502)


class ResolutionError(AppError):
    """The single failure signal of ``SuggestionEngine.resolve``.

    Callers must not reuse an earlier report after catching this; they may
    simply call ``resolve`` again.
    """

    def __init__(self, message: str):
        super().__init__(message, status_code=502)
