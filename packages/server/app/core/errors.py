"""
Service-layer error taxonomy.

Services raise these instead of transport errors; the HTTP boundary in
``app.main`` maps each ``ErrorKind`` to a status code.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    INVALID_STATE = "invalid_state"
    CONFLICT = "conflict"


class ServiceError(Exception):
    """Base class for recoverable service failures."""

    kind: ErrorKind

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(ServiceError):
    kind = ErrorKind.FORBIDDEN


class BadRequestError(ServiceError):
    kind = ErrorKind.BAD_REQUEST


class InvalidStateError(ServiceError):
    kind = ErrorKind.INVALID_STATE


class ConflictError(ServiceError):
    kind = ErrorKind.CONFLICT


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.CONFLICT: 409,
}
