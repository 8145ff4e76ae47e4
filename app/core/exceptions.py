# app/core/exceptions.py
"""
Domain errors raised by the booking engine.

Every error carries a stable ``ErrorCode`` so API clients can branch on it,
and each family maps to one HTTP status in ``app.main``.
"""
from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION = "validation_error"
    TICKET_NOT_FOUND = "ticket_not_found"
    TICKET_ALREADY_USED = "ticket_already_used"
    INVALID_TICKET_STATE = "invalid_ticket_state"
    RESERVATION_EXPIRED = "reservation_expired"
    RESERVATION_NOT_TODAY = "reservation_not_today"
    GIFT_CODE_NOT_FOUND = "gift_code_not_found"
    GIFT_CODE_ALREADY_USED = "gift_code_already_used"
    GIFT_CODE_EXPIRED = "gift_code_expired"
    GIFT_CODE_PURCHASE_NOT_FOUND = "gift_code_purchase_not_found"
    SCHEDULE_CONFLICT = "schedule_conflict"
    PAYMENT_ERROR = "payment_error"
    PAYMENT_SESSION_ERROR = "payment_session_error"
    CODE_GENERATION_EXHAUSTED = "code_generation_exhausted"


class BookingError(Exception):
    """Base class for all engine errors."""

    status_code = 400
    default_code = ErrorCode.VALIDATION

    def __init__(self, message: str, code: ErrorCode | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


# --- Families ---

class ValidationError(BookingError):
    """Input rejected before any state change."""
    status_code = 400


class NotFoundError(BookingError):
    status_code = 404


class ConflictError(BookingError):
    """The requested transition is not allowed from the current state."""
    status_code = 409


class ExternalServiceError(BookingError):
    """A collaborator (payment provider) failed."""
    status_code = 502
    default_code = ErrorCode.PAYMENT_ERROR


class ExhaustionError(BookingError):
    status_code = 503
    default_code = ErrorCode.CODE_GENERATION_EXHAUSTED


# --- Tickets ---

class TicketNotFound(NotFoundError):
    default_code = ErrorCode.TICKET_NOT_FOUND

    def __init__(self, message: str = "Ticket not found"):
        super().__init__(message)


class TicketAlreadyUsed(ConflictError):
    default_code = ErrorCode.TICKET_ALREADY_USED

    def __init__(self, message: str = "Ticket has already been used"):
        super().__init__(message)


class InvalidTicketState(ConflictError):
    default_code = ErrorCode.INVALID_TICKET_STATE


class ReservationExpired(ConflictError):
    default_code = ErrorCode.RESERVATION_EXPIRED

    def __init__(self, message: str = "Reservation date has passed"):
        super().__init__(message)


class ReservationNotToday(ConflictError):
    default_code = ErrorCode.RESERVATION_NOT_TODAY

    def __init__(self, message: str = "Reservation is for a later date"):
        super().__init__(message)


# --- Gift codes ---

class GiftCodeNotFound(NotFoundError):
    default_code = ErrorCode.GIFT_CODE_NOT_FOUND

    def __init__(self, message: str = "Gift code not found"):
        super().__init__(message)


class GiftCodeAlreadyUsed(ConflictError):
    default_code = ErrorCode.GIFT_CODE_ALREADY_USED

    def __init__(self, message: str = "Gift code has already been used"):
        super().__init__(message)


class GiftCodeExpired(ConflictError):
    default_code = ErrorCode.GIFT_CODE_EXPIRED

    def __init__(self, message: str = "Gift code has expired"):
        super().__init__(message)


class GiftCodePurchaseNotFound(NotFoundError):
    default_code = ErrorCode.GIFT_CODE_PURCHASE_NOT_FOUND

    def __init__(self, message: str = "Gift code purchase not found"):
        super().__init__(message)


# --- Schedules ---

class ScheduleConflict(ConflictError):
    default_code = ErrorCode.SCHEDULE_CONFLICT


# --- Payments ---

class PaymentError(ExternalServiceError):
    """Error reported by the payment provider."""

    default_code = ErrorCode.PAYMENT_ERROR

    def __init__(self, code: str, message: str, retryable: bool = False):
        super().__init__(message)
        self.provider_code = code
        self.retryable = retryable


class PaymentSessionError(ExternalServiceError):
    """The checkout session could not be opened; nothing was persisted."""

    default_code = ErrorCode.PAYMENT_SESSION_ERROR


# --- Codes ---

class CodeGenerationExhausted(ExhaustionError):
    def __init__(self, attempts: int):
        super().__init__(f"Could not generate a unique code after {attempts} attempts")
        self.attempts = attempts
