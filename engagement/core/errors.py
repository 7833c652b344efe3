"""
Custom exception hierarchy for the engagement task engine.

Rule: every error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class EngagementException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(EngagementException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            message=f"{kind.capitalize()} {identifier!r} not found.",
            details={"kind": kind, "id": identifier},
        )


class TaskAlreadyClosedError(EngagementException):
    """The task already reached a terminal status; nothing was written."""
    http_status = status.HTTP_409_CONFLICT
    code = "TASK_ALREADY_CLOSED"
    closed_status = ""

    def __init__(self, task_id: str):
        super().__init__(
            message=f"Task {task_id!r} is already {self.closed_status}.",
            details={"task_id": task_id, "status": self.closed_status},
        )


class AlreadyCompletedError(TaskAlreadyClosedError):
    code = "TASK_ALREADY_COMPLETED"
    closed_status = "completed"


class AlreadyExcludedError(TaskAlreadyClosedError):
    code = "TASK_ALREADY_EXCLUDED"
    closed_status = "excluded"


class InvalidTransitionError(EngagementException):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(
            message=f"Task {task_id!r} cannot move from {current} to {target}.",
            details={"task_id": task_id, "current": current, "target": target},
        )


class CadenceError(EngagementException):
    """
    Refresh requested before `next_refresh`. Carries the unchanged current
    snapshot so the caller is never left without state.
    """
    http_status = status.HTTP_429_TOO_MANY_REQUESTS
    code = "REFRESH_NOT_DUE"

    def __init__(
        self,
        next_refresh: datetime,
        snapshot: Any = None,
        snapshot_payload: dict[str, Any] | None = None,
    ):
        self.next_refresh = next_refresh
        self.snapshot = snapshot
        details: dict[str, Any] = {"next_refresh": next_refresh.isoformat()}
        if snapshot_payload is not None:
            details["snapshot"] = snapshot_payload
        super().__init__(
            message=f"Tasks were already generated; next refresh at {next_refresh.isoformat()}.",
            details=details,
        )


class ConflictError(EngagementException):
    http_status = status.HTTP_409_CONFLICT
    code = "CONCURRENT_UPDATE"

    def __init__(self, location_id: str, attempts: int | None = None):
        details: dict[str, Any] = {"location_id": location_id, "retryable": True}
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(
            message=f"Location {location_id!r} was modified concurrently. Retry the request.",
            details=details,
        )


class CollaboratorError(EngagementException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "COLLABORATOR_ERROR"

    def __init__(self, collaborator: str, message: str, task_id: str | None = None):
        details: dict[str, Any] = {"collaborator": collaborator}
        if task_id:
            details["task_id"] = task_id
        super().__init__(message=message, details=details)


class CatalogUnavailableError(EngagementException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CATALOG_UNAVAILABLE"

    def __init__(self, reason: str):
        super().__init__(message=f"Task catalog could not be loaded: {reason}")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def engagement_exception_handler(
    request: Request, exc: EngagementException
) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
