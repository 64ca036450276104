"""
Error taxonomy for plan storage, sharing and collaboration.

Every domain failure derives from IdeaPlanError and carries the HTTP status
and stable error code the API layer reports for it.
"""

from __future__ import annotations

from typing import Dict

_STATUS_TO_CODE: Dict[int, str] = {
    400: "INVALID_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
}


def error_code_for_status(status_code: int) -> str:
    return _STATUS_TO_CODE.get(status_code, "UNKNOWN_ERROR")


class IdeaPlanError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    @property
    def code(self) -> str:
        return error_code_for_status(self.status_code)


class NotFoundError(IdeaPlanError):
    """Plan, version or share link does not exist or is not visible."""

    status_code = 404


class ConflictError(IdeaPlanError):
    """Concurrent write lost a race; refetch and retry."""

    status_code = 409


class AuthorizationError(IdeaPlanError):
    """Caller lacks the permission or authentication the operation needs."""

    status_code = 403


class UpstreamError(IdeaPlanError):
    """External text service failed; the action can be retried."""

    status_code = 502


class StoreError(IdeaPlanError):
    """Unexpected failure inside the document store."""

    status_code = 500
