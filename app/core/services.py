"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and consumers.
    Views and consumers handle transport concerns, models handle data,
    services handle logic. The same service call backs both the REST
    endpoint and the realtime event for an operation.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, business rules)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class InvitationService(BaseService):
        @classmethod
        def respond(cls, invitation, user, accept) -> ServiceResult[Invitation]:
            if invitation.invitee_id != user.id:
                return ServiceResult.failure(
                    "Not authorized to respond to this invitation",
                    error_code="NOT_INVITEE",
                )

            with cls.atomic():
                ...

            cls.get_logger().info(f"Invitation {invitation.id} answered")
            return ServiceResult.success(invitation)

    # In view
    result = InvitationService.respond(invitation, request.user, accept=True)
    if not result.success:
        raise result.to_exception({"NOT_INVITEE": PermissionDeniedError})
    return Response({"status": result.data.status})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        result = AuthService.signup(name, email, password)
        if result.success:
            user = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Example:
            return ServiceResult.failure(
                "Conversation not found",
                error_code="CONVERSATION_NOT_FOUND",
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def to_exception(
        self,
        error_classes: dict[str, type[BaseApplicationError]] | None = None,
    ) -> BaseApplicationError:
        """
        Convert a failure into the application exception views raise.

        The DRF exception handler renders it, so REST errors share one
        body shape. Unmapped error codes become ValidationError (400).

        Args:
            error_classes: error_code -> exception class

        Example:
            if not result.success:
                raise result.to_exception({"NOT_FOUND": NotFoundError})
        """
        error_class = (error_classes or {}).get(self.error_code, ValidationError)
        details = {"errors": self.errors} if self.errors else None
        return error_class(self.error or "", error_code=self.error_code, details=details)

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @classmethod (no instance state)
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        Example:
            with cls.atomic():
                invitation.save(update_fields=["status"])
                Participant.objects.get_or_create(...)
                # If the participant insert fails, the status change rolls back
        """
        with transaction.atomic():
            yield
