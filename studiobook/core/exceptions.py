# studiobook/core/exceptions.py
"""
Domain-specific exceptions for the studio booking engine.

These exceptions carry business-focused messages plus a machine-readable
code and details, and can be converted to HTTP errors by whichever API
layer sits in front of the engine.
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status

from .constants import ERROR_SLOT_TAKEN

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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
    """Raised when input or business validation fails, before any write."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps existing reservations of the same studio."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        conflicting_ids: Iterable[str] = (),
        details: Optional[Dict[str, Any]] = None,
    ):
        self.conflicting_ids = tuple(conflicting_ids)
        merged = dict(details or {})
        merged.setdefault("conflicting_booking_ids", list(self.conflicting_ids))
        super().__init__(
            message=message or ERROR_SLOT_TAKEN,
            code="BOOKING_CONFLICT",
            details=merged,
        )


class StateTransitionException(ConflictException):
    """Raised when a status change is not allowed from the booking's current status."""

    def __init__(
        self,
        from_status: str,
        to_status: str,
        *,
        booking_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message=message or f"Cannot move booking from {from_status} to {to_status}",
            code="INVALID_STATUS_TRANSITION",
            details={
                "booking_id": booking_id,
                "from_status": from_status,
                "to_status": to_status,
            },
        )


class GatewayException(ServiceException):
    """
    Raised when the payment gateway call fails or answers unexpectedly.

    Recoverable: the booking is left in its pre-call status and the
    operation can be retried.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if status_code is not None:
            merged["gateway_status_code"] = status_code
        super().__init__(message=message, code="PAYMENT_GATEWAY_ERROR", details=merged)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
