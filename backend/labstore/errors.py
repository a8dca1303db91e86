"""
Service-level failures.

Every ledger and account service raises one of these instead of a bare
HTTPException so callers (routers, scripts, tests) can branch on `kind`
rather than string-matching messages. `labstore.main` renders them as the
tagged failure envelope:

    {"success": false, "error": {"kind": "InsufficientStock", "message": "..."}}
"""

from __future__ import annotations

import enum

from fastapi import status


class ErrorKind(str, enum.Enum):
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    EMPTY_REQUEST = "EmptyRequest"
    INSUFFICIENT_STOCK = "InsufficientStock"
    INVALID_REDUCTION = "InvalidReduction"
    OVER_RETURN = "OverReturn"
    HAS_ACTIVE_ISSUES = "HasActiveIssues"
    UNAUTHORIZED = "Unauthorized"
    CONFLICT = "Conflict"
    STORAGE_ERROR = "StorageError"


class ServiceError(Exception):
    """Base class for expected, recoverable service failures."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class InvalidInput(ServiceError):
    kind = ErrorKind.INVALID_INPUT
    status_code = status.HTTP_400_BAD_REQUEST


class EmptyRequest(ServiceError):
    kind = ErrorKind.EMPTY_REQUEST
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStock(ServiceError):
    kind = ErrorKind.INSUFFICIENT_STOCK
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, component_id: int | None = None):
        super().__init__(message)
        self.component_id = component_id


class InvalidReduction(ServiceError):
    kind = ErrorKind.INVALID_REDUCTION
    status_code = status.HTTP_409_CONFLICT


class OverReturn(ServiceError):
    kind = ErrorKind.OVER_RETURN
    status_code = status.HTTP_409_CONFLICT


class HasActiveIssues(ServiceError):
    kind = ErrorKind.HAS_ACTIVE_ISSUES
    status_code = status.HTTP_409_CONFLICT


class Conflict(ServiceError):
    kind = ErrorKind.CONFLICT
    status_code = status.HTTP_409_CONFLICT


class Unauthorized(ServiceError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED


class StorageError(ServiceError):
    """Unexpected database failure. Logged by the raiser, never swallowed."""

    kind = ErrorKind.STORAGE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
