"""
Base exception classes for application-wide error handling.

This module provides the exception hierarchy shared by the REST API and the
realtime gateway:
- Consistent error payloads ({"error": ..., "error_code": ...})
- Machine-readable error codes for client handling
- An HTTP status per error class for the DRF exception handler

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed input or event payloads
    ├── AuthenticationError - Missing/invalid/expired credential (HTTP 401)
    ├── PermissionDeniedError - Acting user may not touch the target (HTTP 403)
    ├── NotFoundError - Referenced resource absent (HTTP 404)
    ├── ConflictError - State conflicts, e.g. invitation already answered
    ├── ExpiredError - Target existed but has lapsed (HTTP 410)
    └── PersistenceError - Storage failure (HTTP 500)

Usage:
    from core.exceptions import AuthenticationError, NotFoundError

    raise AuthenticationError("Token expired", error_code="TOKEN_EXPIRED")

    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    On the realtime channel these errors are logged and the event is dropped.
    The only error a socket client ever sees is message_failed, sent to the
    sender when persisting a message fails or times out. See chat.consumers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, etc.)
        http_status: Status code used when the error reaches the REST layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Conversation not found",
                "error_code": "CONVERSATION_NOT_FOUND",
                "details": {"conversation_id": 12}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Missing conversation_id/content on a realtime event
    - Room identifiers that cannot be mapped to a channel-layer group
    - Service-layer business rule violations
    """

    default_error_code: str = "VALIDATION_ERROR"


class AuthenticationError(BaseApplicationError):
    """
    Raised when a presented credential cannot be verified.

    Covers missing, malformed and expired tokens as well as tokens that
    point at unknown or inactive users. The WebSocket handshake is refused
    and protected REST calls answer 401.

    Example:
        user = AuthService.verify_token(token)  # raises AuthenticationError
    """

    default_error_code: str = "AUTHENTICATION_FAILED"
    http_status: int = 401


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user lacks permission for an operation.

    Use for:
    - Acting on a conversation the user is not a member of
    - Responding to an invitation addressed to someone else

    Note:
        For authentication failures (missing/invalid token), use
        AuthenticationError. This class is for authorization failures.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Example:
        raise NotFoundError(
            f"Invitation {invitation_id} not found",
            error_code="INVITATION_NOT_FOUND",
            details={"invitation_id": invitation_id},
        )
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Sending on a client session that is not connected
    - Answering an invitation that is no longer pending
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class ExpiredError(BaseApplicationError):
    """
    Raised when the target exists but is no longer usable.

    Use for:
    - Responding to an invitation past its expires_at
    """

    default_error_code: str = "EXPIRED"
    http_status: int = 410


class PersistenceError(BaseApplicationError):
    """
    Raised when the storage layer fails or stalls.

    The realtime gateway logs and drops the event (reporting a
    message_failed frame to the sender only); REST callers receive 500.
    """

    default_error_code: str = "PERSISTENCE_ERROR"
    http_status: int = 500
