"""Typed domain events published on the EventBus after state changes."""

from dataclasses import dataclass

from registrations.domain.models import AttendanceStatus, Enrollment, SessionEnrollment, WaitlistEntry
from registrations.domain.value_objects import EnrollmentId, Money, SessionId


@dataclass(frozen=True)
class DomainEvent:
    """Base class; subscribing to it receives every event."""


@dataclass(frozen=True)
class EnrollmentAdmitted(DomainEvent):
    enrollment: Enrollment


@dataclass(frozen=True)
class EnrollmentCancelled(DomainEvent):
    enrollment: Enrollment


@dataclass(frozen=True)
class PaymentConfirmed(DomainEvent):
    enrollment: Enrollment
    amount: Money


@dataclass(frozen=True)
class EntrantWaitlisted(DomainEvent):
    entry: WaitlistEntry


@dataclass(frozen=True)
class WaitlistEntryNotified(DomainEvent):
    entry: WaitlistEntry


@dataclass(frozen=True)
class SessionEnrollmentAdmitted(DomainEvent):
    session_enrollment: SessionEnrollment


@dataclass(frozen=True)
class SessionEnrollmentCancelled(DomainEvent):
    session_id: SessionId
    enrollment_id: EnrollmentId


@dataclass(frozen=True)
class AttendanceMarked(DomainEvent):
    session_id: SessionId
    enrollment_id: EnrollmentId
    status: AttendanceStatus
