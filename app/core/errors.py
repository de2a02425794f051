"""
Custom exception hierarchy for the wellness engine.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages. Error bodies follow
the `{success: false, code, message, data?}` envelope.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class WellnessException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.data:
            payload["data"] = self.data
        return payload


class ValidationFailedError(WellnessException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class UnauthorizedError(WellnessException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required."):
        super().__init__(message)


class ForbiddenError(WellnessException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this resource."):
        super().__init__(message)


class NotFoundError(WellnessException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            message=f"{entity} {entity_id} not found.",
            data={"entity": entity, "id": str(entity_id)},
        )


class AlreadyCheckedInError(WellnessException):
    http_status = status.HTTP_409_CONFLICT
    code = "ALREADY_CHECKED_IN"

    def __init__(self, existing: dict[str, Any]):
        super().__init__(
            message="You have already checked in today.",
            data={"check_in": existing},
        )


class AggregateConflictError(WellnessException):
    http_status = status.HTTP_409_CONFLICT
    code = "AGGREGATE_CONFLICT"

    def __init__(self, user_id: str, attempts: int):
        super().__init__(
            message=f"Wellness record for user {user_id} changed concurrently; "
                    f"gave up after {attempts} attempts.",
            data={"user_id": user_id, "attempts": attempts},
        )


class InvalidTransitionError(WellnessException):
    http_status = status.HTTP_409_CONFLICT
    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            message=f"{entity} cannot move from {current} to {target}.",
            data={"current": current, "target": target},
        )


class RewardUnavailableError(WellnessException):
    http_status = status.HTTP_409_CONFLICT
    code = "REWARD_UNAVAILABLE"

    def __init__(self, reward_id: int, reason: str):
        super().__init__(
            message=f"Reward {reward_id} is not available: {reason}.",
            data={"reward_id": reward_id, "reason": reason},
        )


class InsufficientCoinsError(WellnessException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "INSUFFICIENT_COINS"

    def __init__(self, balance: int, required: int):
        super().__init__(
            message=f"Insufficient happy coins: have {balance}, need {required}.",
            data={"balance": balance, "required": required},
        )


class InvariantViolationError(WellnessException):
    """A state transition would break a wellness invariant. Programmer error."""
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INVARIANT_VIOLATION"

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        super().__init__(message, data)
        logger.critical("Invariant violation: %s %s", message, self.data)


class ExternalDependencyError(WellnessException):
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "EXTERNAL_DEPENDENCY_FAILURE"

    def __init__(self, dependency: str, message: str):
        super().__init__(
            message=f"{dependency} failed: {message}",
            data={"dependency": dependency},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def wellness_exception_handler(request: Request, exc: WellnessException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 400 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query")),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "errors": field_errors,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
