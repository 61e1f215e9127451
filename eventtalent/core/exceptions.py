# eventtalent/core/exceptions.py
"""
Domain-specific exceptions for the EventTalent booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised on concurrent modification or when a resource already exists."""

    status_code = status.HTTP_409_CONFLICT


class InvalidStateException(DomainException):
    """Raised when an operation is illegal for the entity's current state."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        *,
        current_state: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        if current_state is not None:
            merged.setdefault("current_state", current_state)
        super().__init__(message, code=code or "INVALID_STATE", details=merged)
        self.current_state = current_state


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class SecurityException(DomainException):
    """
    Raised on signature or amount mismatches.

    Fatal for the request: callers must not have mutated any state
    before raising it.
    """

    status_code = status.HTTP_400_BAD_REQUEST


class GatewayException(DomainException):
    """
    Raised when an external gateway call fails.

    Carries the idempotency reference and amount so the caller can retry
    with the same key. ``retryable`` is False for definitive rejections.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        reference: Optional[str] = None,
        amount: Optional[Decimal] = None,
        retryable: bool = True,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = dict(details or {})
        merged.setdefault("reference", reference)
        merged.setdefault("amount", str(amount) if amount is not None else None)
        merged.setdefault("retryable", retryable)
        super().__init__(message, code=code or "GATEWAY_ERROR", details=merged)
        self.reference = reference
        self.amount = amount
        self.retryable = retryable


class IntegrityViolationException(DomainException):
    """Raised when a runtime invariant check fails. Always aborts the transaction."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class DuplicateRecordException(RepositoryException):
    """Raised by repositories when an insert violates a unique constraint."""
