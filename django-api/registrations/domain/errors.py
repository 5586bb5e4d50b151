"""Domain error codes for the registrations module."""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class ErrorKind(Enum):
    """Broad error categories callers branch on."""

    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    ELIGIBILITY = "ELIGIBILITY"
    DUPLICATE = "DUPLICATE"
    CONFLICT = "CONFLICT"
    AUTHORIZATION = "AUTHORIZATION"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    PERSISTENCE = "PERSISTENCE"


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    ENROLLMENT_INACTIVE = "ENROLLMENT_INACTIVE"
    SESSION_EVENT_MISMATCH = "SESSION_EVENT_MISMATCH"
    PRICING_FAILED = "PRICING_FAILED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    ENROLLMENT_NOT_FOUND = "ENROLLMENT_NOT_FOUND"
    SESSION_ENROLLMENT_NOT_FOUND = "SESSION_ENROLLMENT_NOT_FOUND"
    WAITLIST_ENTRY_NOT_FOUND = "WAITLIST_ENTRY_NOT_FOUND"
    SCOPE_NOT_FOUND = "SCOPE_NOT_FOUND"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    ALREADY_WAITLISTED = "ALREADY_WAITLISTED"
    ALREADY_IN_SESSION = "ALREADY_IN_SESSION"
    SCHEDULE_CONFLICT = "SCHEDULE_CONFLICT"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    STORAGE_FAILURE = "STORAGE_FAILURE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    kind: ClassVar[ErrorKind]

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    kind = ErrorKind.VALIDATION


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class EligibilityError(DomainError):
    kind = ErrorKind.ELIGIBILITY


class DuplicateError(DomainError):
    kind = ErrorKind.DUPLICATE


class ConflictError(DomainError):
    kind = ErrorKind.CONFLICT


class AuthorizationError(DomainError):
    kind = ErrorKind.AUTHORIZATION


class AlreadyCancelledError(DomainError):
    """Raised when cancelling an enrollment that is already cancelled."""

    kind = ErrorKind.ALREADY_CANCELLED

    def __init__(self, enrollment_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_CANCELLED,
            message="Registration is already cancelled",
        )
        self.enrollment_id = enrollment_id


class PersistenceError(DomainError):
    """Generic storage failure; details stay in the logs."""

    kind = ErrorKind.PERSISTENCE

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.STORAGE_FAILURE,
            message="An error occurred. Please try again.",
        )


class InvalidInputError(ValidationError):
    """Raised when a request is missing a field or carries a malformed one."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(code=ErrorCode.INVALID_INPUT, message=message)
        self.field = field


class EnrollmentInactiveError(ValidationError):
    def __init__(self, enrollment_id: str) -> None:
        super().__init__(
            code=ErrorCode.ENROLLMENT_INACTIVE,
            message="Invalid or inactive event registration",
        )
        self.enrollment_id = enrollment_id


class SessionEventMismatchError(ValidationError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_EVENT_MISMATCH,
            message="Session does not belong to your registered event",
        )
        self.session_id = session_id


class PricingFailedError(ValidationError):
    def __init__(self, reason: str) -> None:
        super().__init__(code=ErrorCode.PRICING_FAILED, message=reason)


class EventNotFoundError(NotFoundError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )
        self.event_id = event_id


class SessionNotFoundError(NotFoundError):
    """Raised when a session is not found."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_NOT_FOUND,
            message="Session not found",
        )
        self.session_id = session_id


class EnrollmentNotFoundError(NotFoundError):
    def __init__(self, enrollment_id: str) -> None:
        super().__init__(
            code=ErrorCode.ENROLLMENT_NOT_FOUND,
            message="Registration not found",
        )
        self.enrollment_id = enrollment_id


class SessionEnrollmentNotFoundError(NotFoundError):
    def __init__(self, session_id: str, enrollment_id: str) -> None:
        super().__init__(
            code=ErrorCode.SESSION_ENROLLMENT_NOT_FOUND,
            message="Session registration not found",
        )
        self.session_id = session_id
        self.enrollment_id = enrollment_id


class WaitlistEntryNotFoundError(NotFoundError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(
            code=ErrorCode.WAITLIST_ENTRY_NOT_FOUND,
            message="Waitlist entry not found",
        )
        self.entry_id = entry_id


class ScopeNotFoundError(NotFoundError):
    """Raised when no capacity counter exists for a scope."""

    def __init__(self, scope_key: str) -> None:
        super().__init__(
            code=ErrorCode.SCOPE_NOT_FOUND,
            message="Capacity scope not found",
        )
        self.scope_key = scope_key


class RegistrationClosedError(EligibilityError):
    def __init__(self, reason: str) -> None:
        super().__init__(code=ErrorCode.REGISTRATION_CLOSED, message=reason)


class AlreadyEnrolledError(DuplicateError):
    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_ENROLLED,
            message="You are already registered for this event",
        )
        self.event_id = event_id


class AlreadyQueuedError(DuplicateError):
    """Raised when an identity already holds a waitlist entry for the scope."""

    def __init__(self, scope_key: str, position: int | None = None) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_WAITLISTED,
            message="You are already on the waitlist",
        )
        self.scope_key = scope_key
        self.position = position


class AlreadyInSessionError(DuplicateError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code=ErrorCode.ALREADY_IN_SESSION,
            message="Already registered for this session",
        )
        self.session_id = session_id


class ScheduleConflictError(ConflictError):
    """Raised when a session overlaps one the participant already holds."""

    def __init__(self, session_id: str, title: str) -> None:
        super().__init__(
            code=ErrorCode.SCHEDULE_CONFLICT,
            message=f"Time conflict with: {title}",
        )
        self.session_id = session_id
        self.title = title


class NotAuthorizedError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_AUTHORIZED,
            message="You do not have permission to cancel this registration",
        )
