"""Typed operation outcomes returned by the services.

Every public service operation returns a ``Result``: either a success payload
or exactly one ``DomainError``. Being at capacity is a success payload with
``waitlisted=True``, never an error.
"""

from dataclasses import dataclass, field
from typing import Generic, Self, TypeVar

from registrations.domain.errors import DomainError, ErrorCode, ErrorKind
from registrations.domain.models import Enrollment, SessionEnrollment, WaitlistEntry
from registrations.domain.value_objects import EnrollmentId, Money, SessionId

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: DomainError | None = None

    @classmethod
    def success(cls, value: T) -> Self:
        return cls(value=value)

    @classmethod
    def failure(cls, error: DomainError) -> Self:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the payload, raising the carried error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True)
class RegistrationRequest:
    """Input of RegistrationService.register."""

    event_id: str
    email: str
    first_name: str
    last_name: str
    ticket_type: str
    quantity: int = 1
    user_ref: str | None = None
    promo_code: str | None = None
    special_requirements: str | None = None


@dataclass(frozen=True)
class RegistrationOutcome:
    """Either an admitted enrollment or a waitlist position."""

    admitted: bool
    enrollment_id: EnrollmentId | None = None
    amount_due: Money | None = None
    waitlisted: bool = False
    position: int | None = None

    @property
    def success(self) -> bool:
        return self.admitted

    @property
    def payment_required(self) -> bool:
        return self.amount_due is not None and self.amount_due.amount > 0


@dataclass(frozen=True)
class CancellationOutcome:
    enrollment: Enrollment
    notified: tuple[WaitlistEntry, ...] = ()
    released_sessions: tuple[SessionId, ...] = ()


@dataclass(frozen=True)
class CancellationEligibility:
    allowed: bool
    reason: str = ""


@dataclass(frozen=True)
class SessionRegistrationOutcome:
    admitted: bool
    session_enrollment: SessionEnrollment | None = None
    waitlisted: bool = False
    position: int | None = None

    @property
    def success(self) -> bool:
        return self.admitted


@dataclass(frozen=True)
class SessionCancellationOutcome:
    session_id: SessionId
    enrollment_id: EnrollmentId
    notified: tuple[WaitlistEntry, ...] = ()


@dataclass(frozen=True)
class BulkSessionRegistration:
    """Per-session results of a bulk request; partial success is expected."""

    results: tuple[tuple[str, Result[SessionRegistrationOutcome]], ...] = field(default_factory=tuple)

    @property
    def registered(self) -> int:
        return sum(1 for _, result in self.results if result.ok and result.value.admitted)

    @property
    def waitlisted(self) -> int:
        return sum(1 for _, result in self.results if result.ok and result.value.waitlisted)

    @property
    def failed(self) -> int:
        return sum(1 for _, result in self.results if not result.ok)

    @property
    def success(self) -> bool:
        return self.registered > 0

    @property
    def message(self) -> str:
        return f"Registered for {self.registered} sessions. {self.failed} failed."


@dataclass(frozen=True)
class EnrollmentStatistics:
    total: int
    seats: int
    by_ticket_type: dict[str, int]
    total_revenue: Money
    payments_pending: int
    payments_completed: int


@dataclass(frozen=True)
class SessionStatistics:
    total: int
    capacity: int | None
    remaining: int | None
    by_attendance: dict[str, int]
