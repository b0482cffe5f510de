"""
Custom exceptions for the booking engine.

Every error raised by the engine carries a stable ``ErrorCode`` and a
human-readable message. The HTTP layer maps codes to status codes; nothing
in here knows about HTTP.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Stable error kinds surfaced to callers."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    ACCESS_DENIED = "ACCESS_DENIED"

    # Booking rule violations
    DUPLICATE_BOOKING = "DUPLICATE_BOOKING"
    ALREADY_CANCELED = "ALREADY_CANCELED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    IMMUTABLE_FIELD_VIOLATION = "IMMUTABLE_FIELD_VIOLATION"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    PAST_EVENT = "PAST_EVENT"
    TENANT_MISMATCH = "TENANT_MISMATCH"

    # Transient store / lock failures
    UNAVAILABLE = "UNAVAILABLE"


class EngineError(Exception):
    """Base exception class for the booking engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(EngineError):
    """Exception raised for malformed caller input."""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"field_errors": field_errors} if field_errors else None,
            **kwargs
        )
        self.field_errors = field_errors or {}


class AuthenticationError(EngineError):
    """Exception raised when no valid principal accompanies a request."""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAUTHORIZED,
            suggestions=["Include a valid bearer token"],
            **kwargs
        )


class NotFoundError(EngineError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class EventNotFoundError(NotFoundError):
    """Exception raised when an event is not found."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            f"Event {event_id} not found",
            resource_type="event",
            resource_id=str(event_id),
            suggestions=["Check the event ID"],
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            f"Booking {booking_id} not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your bookings"],
            **kwargs
        )


class NotificationNotFoundError(NotFoundError):
    """Exception raised when a notification is not found."""

    def __init__(self, notification_id: str, **kwargs):
        super().__init__(
            f"Notification {notification_id} not found",
            resource_type="notification",
            resource_id=str(notification_id),
            **kwargs
        )


class AccessDeniedError(EngineError):
    """Exception raised for ownership, role or tenant mismatches."""

    def __init__(self, message: str = "Access denied", required_role: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.ACCESS_DENIED,
            details={"required_role": required_role} if required_role else None,
            **kwargs
        )


class BusinessRuleError(EngineError):
    """Base exception for booking rule violations. Never retried."""
    pass


class DuplicateBookingError(BusinessRuleError):
    """Exception raised when the user already holds an active booking for the event."""

    def __init__(self, event_id: str, existing_status: str, existing_booking_id: Optional[str] = None, **kwargs):
        super().__init__(
            f"You already have an active booking for this event (Status: {existing_status})",
            error_code=ErrorCode.DUPLICATE_BOOKING,
            details={
                "event_id": str(event_id),
                "existing_status": existing_status,
                "existing_booking_id": existing_booking_id,
            },
            suggestions=["Cancel the existing booking first"],
            **kwargs
        )
        self.existing_status = existing_status


class AlreadyCanceledError(BusinessRuleError):
    """Exception raised when canceling a booking that is already canceled."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            "Booking is already canceled",
            error_code=ErrorCode.ALREADY_CANCELED,
            details={"booking_id": str(booking_id)},
            **kwargs
        )


class InvalidTransitionError(BusinessRuleError):
    """Exception raised for a status change the state machine does not allow."""

    def __init__(self, source: str, target: str, **kwargs):
        super().__init__(
            f"Invalid status transition from {source} to {target}",
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"source": source, "target": target},
            **kwargs
        )
        self.source = source
        self.target = target


class ImmutableFieldViolationError(BusinessRuleError):
    """Exception raised when a patch tries to change event, user or tenant."""

    def __init__(self, field: str, **kwargs):
        super().__init__(
            f"Cannot change {field} for existing booking",
            error_code=ErrorCode.IMMUTABLE_FIELD_VIOLATION,
            details={"field": field},
            **kwargs
        )
        self.field = field


class CapacityExceededError(BusinessRuleError):
    """Exception raised when a manual confirmation would exceed capacity."""

    def __init__(self, event_id: str, confirmed: int, capacity: int, **kwargs):
        super().__init__(
            "Event is at full capacity",
            error_code=ErrorCode.CAPACITY_EXCEEDED,
            details={"event_id": str(event_id), "confirmed": confirmed, "capacity": capacity},
            suggestions=["Increase the event capacity", "Wait for a cancellation"],
            **kwargs
        )


class PastEventError(BusinessRuleError):
    """Exception raised when booking an event that has already started."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "Cannot book past events",
            error_code=ErrorCode.PAST_EVENT,
            details={"event_id": str(event_id)},
            **kwargs
        )


class TenantMismatchError(BusinessRuleError):
    """Exception raised when the event belongs to another tenant."""

    def __init__(self, event_id: str, **kwargs):
        super().__init__(
            "Access denied: Event not in your organization",
            error_code=ErrorCode.TENANT_MISMATCH,
            details={"event_id": str(event_id)},
            **kwargs
        )


class UnavailableError(EngineError):
    """
    Exception raised for transient store, lock or timeout failures.

    The message is always generic; the underlying driver error is kept on
    ``__cause__`` for logging only.
    """

    def __init__(self, message: str = "Booking service temporarily unavailable", retry_after: int = 1, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.UNAVAILABLE,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class CapacityUnavailableError(UnavailableError):
    """Raised when capacity counts cannot be read; carries zero fallback counts."""

    def __init__(self, event_id: str, fallback_counts: Any = None, **kwargs):
        super().__init__(
            "Booking counts are temporarily unavailable",
            details={"event_id": str(event_id)},
            **kwargs
        )
        self.fallback_counts = fallback_counts
