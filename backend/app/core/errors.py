"""
Centralized error handling for notification and push failures.
Exception types carry their HTTP status so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_NOT_FOUND = 404
STATUS_BAD_GATEWAY = 502  # push gateway non-success, timeout, transport error
STATUS_INTERNAL_ERROR = 500

MSG_NOTIFICATION_ID_REQUIRED = "notification_id required"
MSG_NOTIFICATION_NOT_FOUND = "Notification not found"
MSG_PUSH_FAILED = "Expo push failed"
MSG_NOT_AUTHENTICATED = "Not authenticated"


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class NotificationError(Exception):
    """Base for errors that map to a fixed HTTP status and a JSON error body."""

    status_code = STATUS_INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}


class InvalidRequestError(NotificationError):
    status_code = STATUS_BAD_REQUEST


class AuthenticationRequiredError(NotificationError):
    status_code = STATUS_UNAUTHORIZED

    def __init__(self, message: str = MSG_NOT_AUTHENTICATED) -> None:
        super().__init__(message)


class NotificationNotFoundError(NotificationError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, message: str = MSG_NOTIFICATION_NOT_FOUND) -> None:
        super().__init__(message)


class PushGatewayError(NotificationError):
    """A push batch was rejected or never answered. Earlier batches stay sent."""

    status_code = STATUS_BAD_GATEWAY

    def __init__(self, details: str, *, gateway_status: int | None = None) -> None:
        super().__init__(MSG_PUSH_FAILED)
        self.details = details
        self.gateway_status = gateway_status

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "details": self.details}


class NotificationMutationError(NotificationError):
    """A client-side mark-read / mark-all / delete failed; the user has already been told."""


def notification_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a notification service call into an HTTPException.
    Known NotificationError types keep their status; anything else becomes 500 with the message.
    """
    if isinstance(exc, NotificationError):
        return HTTPException(status_code=exc.status_code, detail=exc.message)
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))


def error_response(exc: Exception, headers: dict[str, str] | None = None) -> JSONResponse:
    """Same mapping as notification_error_to_http, but with the flat {"error": ...} body of the push function."""
    if isinstance(exc, NotificationError):
        return JSONResponse(exc.to_body(), status_code=exc.status_code, headers=headers)
    return JSONResponse({"error": str(exc)}, status_code=STATUS_INTERNAL_ERROR, headers=headers)
