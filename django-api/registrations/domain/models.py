"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in registrations/models.py (persistence layer).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from registrations.domain.value_objects import (
    Capacity,
    EnrollmentId,
    EventId,
    Money,
    Participant,
    Scope,
    SessionId,
    TimeInterval,
    WaitlistEntryId,
)


class EventStatus(Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class EnrollmentStatus(Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class AttendanceStatus(Enum):
    REGISTERED = "registered"
    ATTENDED = "attended"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event (read from the catalog)."""

    id: EventId
    title: str
    status: EventStatus
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    capacity: Capacity | None = None
    registration_enabled: bool = True
    registration_opens_at: datetime | None = None
    registration_closes_at: datetime | None = None
    cancellation_deadline: datetime | None = None

    @property
    def scope(self) -> Scope:
        return Scope.for_event(self.id)


@dataclass(frozen=True)
class Session:
    """Domain representation of a Session (read from the catalog)."""

    id: SessionId
    event_id: EventId
    title: str
    starts_at: datetime | str | None = None
    ends_at: datetime | str | None = None
    capacity: Capacity | None = None

    @property
    def scope(self) -> Scope:
        return Scope.for_session(self.event_id, self.id)

    @property
    def interval(self) -> TimeInterval | None:
        return TimeInterval.parse(self.starts_at, self.ends_at)


@dataclass(frozen=True)
class TicketDetails:
    """What was requested; interpreted only by the Pricing collaborator."""

    ticket_type: str
    promo_code: str | None = None
    special_requirements: str | None = None


@dataclass(frozen=True)
class Cancellation:
    actor: str
    reason: str
    cancelled_at: datetime


@dataclass(frozen=True)
class Enrollment:
    """An event-level registration."""

    id: EnrollmentId
    event_id: EventId
    participant: Participant
    quantity: int
    ticket: TicketDetails
    amount_due: Money
    created_at: datetime
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_reference: str | None = None
    cancellation: Cancellation | None = None

    @property
    def scope(self) -> Scope:
        return Scope.for_event(self.event_id)

    @property
    def is_active(self) -> bool:
        return self.status is EnrollmentStatus.ACTIVE

    def cancelled(self, cancellation: Cancellation) -> "Enrollment":
        return replace(self, status=EnrollmentStatus.CANCELLED, cancellation=cancellation)


@dataclass(frozen=True)
class SessionEnrollment:
    session_id: SessionId
    enrollment_id: EnrollmentId
    created_at: datetime
    attendance_status: AttendanceStatus = AttendanceStatus.REGISTERED


@dataclass(frozen=True)
class WaitlistEntry:
    id: WaitlistEntryId
    scope: Scope
    participant: Participant
    position: int
    enqueued_at: datetime
    notified: bool = False
    notified_at: datetime | None = None


@dataclass(frozen=True)
class CapacitySnapshot:
    """Point-in-time view of a scope's counter.

    ``total`` and ``remaining`` are None when the scope is unbounded.
    """

    scope: Scope
    total: int | None
    used: int

    @property
    def is_unbounded(self) -> bool:
        return self.total is None

    @property
    def remaining(self) -> int | None:
        if self.total is None:
            return None
        return max(self.total - self.used, 0)

    def can_admit(self, quantity: int) -> bool:
        return self.total is None or self.used + quantity <= self.total


@dataclass(frozen=True)
class ScheduledSlot:
    """A session interval as seen by the conflict detector."""

    session_id: SessionId
    title: str
    starts_at: datetime | str | None
    ends_at: datetime | str | None

    @classmethod
    def from_session(cls, session: Session) -> "ScheduledSlot":
        return cls(
            session_id=session.id,
            title=session.title,
            starts_at=session.starts_at,
            ends_at=session.ends_at,
        )

    @property
    def interval(self) -> TimeInterval | None:
        return TimeInterval.parse(self.starts_at, self.ends_at)


@dataclass(frozen=True)
class ConflictCheck:
    has_conflict: bool
    conflicting: ScheduledSlot | None = None
    degraded: bool = False
    skipped: tuple[SessionId, ...] = field(default_factory=tuple)
