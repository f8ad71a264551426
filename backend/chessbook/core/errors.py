"""
Domain errors for the booking and payment core.

Services raise these instead of HTTPException so the same operations can be
driven from the API, admin tooling or tests. Each error carries a stable
ErrorCode and a user-safe message; the API layer maps the error category to
an HTTP status in one place (see chessbook.api.error_handlers).

Categories:
  ValidationError        caller sent something we can't act on
  NotFoundError          referenced entity does not exist (or isn't yours)
  PermissionDenied       caller may not perform the operation
  CapacityError          expected business outcome, caller may retry later
  StateConflictError     stale client state, nothing was mutated
  AuthenticityError      payment evidence failed verification
  ExternalServiceError   gateway unreachable/timeout, retryable
  InvariantViolation     a bug in our own atomicity, never expected at runtime
"""

from enum import Enum


class ErrorCode(Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    CATEGORY_NOT_AVAILABLE = "CATEGORY_NOT_AVAILABLE"
    CATEGORY_AGE_LIMIT = "CATEGORY_AGE_LIMIT"

    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"

    FORBIDDEN = "FORBIDDEN"
    FEATURE_DISABLED = "FEATURE_DISABLED"

    INSUFFICIENT_SLOTS = "INSUFFICIENT_SLOTS"
    EVENT_NOT_BOOKABLE = "EVENT_NOT_BOOKABLE"

    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    ALREADY_PAID = "ALREADY_PAID"
    CANNOT_CANCEL_COMPLETED = "CANNOT_CANCEL_COMPLETED"
    REQUEST_ALREADY_PROCESSED = "REQUEST_ALREADY_PROCESSED"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    PAYMENT_NOT_REFUNDABLE = "PAYMENT_NOT_REFUNDABLE"
    REFUND_REQUIRES_CANCELLATION = "REFUND_REQUIRES_CANCELLATION"

    INVALID_SIGNATURE = "INVALID_SIGNATURE"

    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    GATEWAY_REJECTED = "GATEWAY_REJECTED"

    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    REFERENCE_GENERATION_FAILED = "REFERENCE_GENERATION_FAILED"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# Validation --------------------------------------------------------------

class ValidationError(DomainError):
    code = ErrorCode.VALIDATION_FAILED


class ParticipantNotFound(ValidationError):
    code = ErrorCode.PARTICIPANT_NOT_FOUND

    def __init__(self, participant_id: int) -> None:
        super().__init__(f"Participant with ID {participant_id} not found")
        self.participant_id = participant_id


class CategoryNotAvailable(ValidationError):
    code = ErrorCode.CATEGORY_NOT_AVAILABLE

    def __init__(self, category_code: str) -> None:
        super().__init__(f"Category {category_code} not available for this event")
        self.category_code = category_code


class CategoryAgeLimitExceeded(ValidationError):
    code = ErrorCode.CATEGORY_AGE_LIMIT


# Not found ---------------------------------------------------------------

class NotFoundError(DomainError):
    pass


class BookingNotFound(NotFoundError):
    code = ErrorCode.BOOKING_NOT_FOUND

    def __init__(self, booking_id: int) -> None:
        super().__init__("Booking not found")
        self.booking_id = booking_id


class EventNotFound(NotFoundError):
    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, event_id: int) -> None:
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class PaymentNotFound(NotFoundError):
    code = ErrorCode.PAYMENT_NOT_FOUND

    def __init__(self, reference: int | str) -> None:
        super().__init__("Payment record not found")
        self.reference = reference


# Permission --------------------------------------------------------------

class PermissionDenied(DomainError):
    code = ErrorCode.FORBIDDEN


class FeatureDisabled(PermissionDenied):
    code = ErrorCode.FEATURE_DISABLED


# Capacity ----------------------------------------------------------------

class CapacityError(DomainError):
    pass


class InsufficientSlots(CapacityError):
    code = ErrorCode.INSUFFICIENT_SLOTS

    def __init__(self, event_id: int, requested: int) -> None:
        super().__init__("Insufficient slots available")
        self.event_id = event_id
        self.requested = requested


class EventNotBookable(CapacityError):
    code = ErrorCode.EVENT_NOT_BOOKABLE

    def __init__(self, event_id: int) -> None:
        super().__init__("Bookings are only available for upcoming events")
        self.event_id = event_id


# State conflict ----------------------------------------------------------

class StateConflictError(DomainError):
    pass


class AlreadyCancelled(StateConflictError):
    code = ErrorCode.ALREADY_CANCELLED

    def __init__(self, message: str = "Booking is already cancelled") -> None:
        super().__init__(message)


class AlreadyPaid(StateConflictError):
    code = ErrorCode.ALREADY_PAID

    def __init__(self, message: str = "Booking is already paid") -> None:
        super().__init__(message)


class CannotCancelCompleted(StateConflictError):
    code = ErrorCode.CANNOT_CANCEL_COMPLETED

    def __init__(self) -> None:
        super().__init__("Cannot cancel completed booking")


class RequestAlreadyProcessed(StateConflictError):
    code = ErrorCode.REQUEST_ALREADY_PROCESSED


class InvalidStateTransition(StateConflictError):
    code = ErrorCode.INVALID_STATE_TRANSITION


class PaymentNotRefundable(StateConflictError):
    code = ErrorCode.PAYMENT_NOT_REFUNDABLE


class RefundRequiresCancellation(StateConflictError):
    code = ErrorCode.REFUND_REQUIRES_CANCELLATION

    def __init__(self) -> None:
        super().__init__("Cancel the booking before refunding its payment")


# Authenticity ------------------------------------------------------------

class AuthenticityError(DomainError):
    pass


class InvalidSignature(AuthenticityError):
    code = ErrorCode.INVALID_SIGNATURE

    def __init__(self) -> None:
        super().__init__("Invalid payment signature")


# External ----------------------------------------------------------------

class ExternalServiceError(DomainError):
    retryable = True


class GatewayUnavailable(ExternalServiceError):
    code = ErrorCode.GATEWAY_UNAVAILABLE


class GatewayRejected(ExternalServiceError):
    """The gateway answered but refused the request (bad amount, already refunded, ...)."""

    code = ErrorCode.GATEWAY_REJECTED
    retryable = False


# Invariant ---------------------------------------------------------------

class InvariantViolation(DomainError):
    code = ErrorCode.INVARIANT_VIOLATION


class ReferenceGenerationFailed(InvariantViolation):
    code = ErrorCode.REFERENCE_GENERATION_FAILED

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Could not allocate a unique booking reference after {attempts} attempts")
        self.attempts = attempts
