from registrations.domain.models import (
    AttendanceStatus,
    CapacitySnapshot,
    ConflictCheck,
    Enrollment,
    EnrollmentStatus,
    Event,
    EventStatus,
    PaymentStatus,
    ScheduledSlot,
    Session,
    SessionEnrollment,
    TicketDetails,
    WaitlistEntry,
)
from registrations.domain.results import Result
from registrations.domain.value_objects import (
    Actor,
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

__all__ = [
    "Actor",
    "AttendanceStatus",
    "Capacity",
    "CapacitySnapshot",
    "ConflictCheck",
    "Enrollment",
    "EnrollmentId",
    "EnrollmentStatus",
    "Event",
    "EventId",
    "EventStatus",
    "Money",
    "Participant",
    "PaymentStatus",
    "Result",
    "ScheduledSlot",
    "Scope",
    "Session",
    "SessionEnrollment",
    "SessionId",
    "TicketDetails",
    "TimeInterval",
    "WaitlistEntry",
    "WaitlistEntryId",
]
