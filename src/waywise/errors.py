"""Typed application errors.

Every failure that reaches a client is an ``AppError`` subclass carrying the
HTTP status and the stable error code of the public contract. Adapters map
transport failures onto this taxonomy before they leave their boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional


class AppError(Exception):
    """Base error rendered as ``{"error": {"code", "message", "details"}}``."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid input data"


class InvalidRequest(AppError):
    status_code = 400
    code = "INVALID_REQUEST"
    default_message = "Invalid request"


class ParseFailure(AppError):
    """The schedule text (or the parser's answer) yielded no usable destinations."""

    status_code = 400
    code = "INVALID_SCHEDULE"
    default_message = "Could not parse schedule text"


@dataclass(frozen=True, slots=True)
class ConstraintViolation:
    """The first hard time constraint an ordering could not meet."""

    destination_id: str
    destination_name: str
    constraint: str
    required_time: str
    projected_time: str
    lateness_minutes: float

    def describe(self) -> str:
        return (
            f"'{self.destination_name}' must {self.constraint} but the earliest "
            f"projected arrival is {self.projected_time} "
            f"({self.lateness_minutes:.0f} min late)"
        )


class InfeasibleSchedule(AppError):
    status_code = 400
    code = "INFEASIBLE_SCHEDULE"
    default_message = "Cannot satisfy all time constraints"

    def __init__(self, violation: ConstraintViolation) -> None:
        self.violation = violation
        super().__init__(
            f"Cannot satisfy all time constraints: {violation.describe()}",
            details=asdict(violation),
        )


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Missing authentication token"


class TokenExpired(Unauthorized):
    code = "TOKEN_EXPIRED"
    default_message = "Authentication token has expired"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, details="Please refresh your token")


class InvalidToken(Unauthorized):
    code = "INVALID_TOKEN"
    default_message = "Invalid authentication token"


class InvalidCredentials(Unauthorized):
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ScheduleNotFound(NotFound):
    code = "SCHEDULE_NOT_FOUND"
    default_message = "Schedule ID does not exist or has expired"


class RouteNotFound(NotFound):
    code = "ROUTE_NOT_FOUND"
    default_message = "Route ID does not exist or has expired"


class EmailExists(AppError):
    status_code = 409
    code = "EMAIL_EXISTS"
    default_message = "Email already registered"


class UpstreamUnavailable(AppError):
    """An external collaborator (parser, traffic, geocoder) failed or timed out.

    Always retryable by the caller.
    """

    status_code = 502
    code = "UPSTREAM_UNAVAILABLE"
    default_message = "Upstream service unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        service: str = "",
        timed_out: bool = False,
    ) -> None:
        self.service = service
        self.timed_out = timed_out
        if timed_out:
            self.status_code = 504
            self.code = "UPSTREAM_TIMEOUT"
        super().__init__(message, details={"service": service, "retryable": True})


class StorageUnavailable(AppError):
    status_code = 503
    code = "STORAGE_UNAVAILABLE"
    default_message = "Storage backend unavailable"


class InternalError(AppError):
    pass
