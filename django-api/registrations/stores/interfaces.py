"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Operations documented as
atomic must be linearizable per scope: the capacity and waitlist stores are
where concurrent callers get serialized.
"""

from abc import ABC, abstractmethod

from registrations.domain import (
    AttendanceStatus,
    CapacitySnapshot,
    Enrollment,
    EnrollmentId,
    EnrollmentStatus,
    Event,
    EventId,
    Participant,
    PaymentStatus,
    Scope,
    Session,
    SessionEnrollment,
    SessionId,
    WaitlistEntry,
    WaitlistEntryId,
)
from registrations.domain.models import Cancellation


class StoreError(Exception):
    """Raised by stores when the backing storage fails."""


class EventStore(ABC):
    """Interface for the read-only event/session catalog."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def get_session(self, session_id: SessionId) -> Session | None:
        """Return a session by ID, or None if not found."""
        ...

    @abstractmethod
    def get_sessions_for_event(self, event_id: EventId) -> list[Session]:
        """Return all sessions for an event, ordered by starts_at ascending."""
        ...

    @abstractmethod
    def event_exists(self, event_id: EventId) -> bool:
        """Check if an event exists."""
        ...


class CapacityStore(ABC):
    """Interface for per-scope capacity counters."""

    @abstractmethod
    def get_counter(self, scope: Scope) -> CapacitySnapshot | None:
        """Return the counter for a scope, or None if it was never provisioned."""
        ...

    @abstractmethod
    def ensure_counter(self, scope: Scope, total: int | None) -> CapacitySnapshot:
        """Create the counter with ``total`` if missing; never changes an existing one."""
        ...

    @abstractmethod
    def set_total(self, scope: Scope, total: int | None) -> bool:
        """Create or update the total. Atomic; False if total would drop below used."""
        ...

    @abstractmethod
    def try_increment(self, scope: Scope, quantity: int) -> bool:
        """Add ``quantity`` to used if it fits. Atomic check-and-reserve.

        Raises:
            ScopeNotFoundError: If the scope has no counter.
        """
        ...

    @abstractmethod
    def decrement(self, scope: Scope, quantity: int) -> None:
        """Subtract ``quantity`` from used, floored at zero. Atomic."""
        ...


class WaitlistStore(ABC):
    """Interface for per-scope FIFO waitlists."""

    @abstractmethod
    def append(self, scope: Scope, participant: Participant) -> WaitlistEntry:
        """Append at position max+1 under the scope lock.

        Raises:
            AlreadyQueuedError: If the participant is already queued, matched by
                account reference or email.
            ScopeNotFoundError: If the scope has no counter.
        """
        ...

    @abstractmethod
    def delete_and_renumber(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        """Delete an entry and renumber its scope to 1..N by enqueue time.

        Returns the deleted entry, or None if it did not exist.
        """
        ...

    @abstractmethod
    def claim_unnotified(self, scope: Scope, limit: int) -> list[WaitlistEntry]:
        """Mark up to ``limit`` lowest-position un-notified entries notified."""
        ...

    @abstractmethod
    def get_entry(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        ...

    @abstractmethod
    def find(self, scope: Scope, email: str, user_ref: str | None = None) -> WaitlistEntry | None:
        """Return the entry queued under this account reference or email."""
        ...

    @abstractmethod
    def list_entries(self, scope: Scope) -> list[WaitlistEntry]:
        """Return entries ordered by position ascending."""
        ...

    @abstractmethod
    def count(self, scope: Scope) -> int:
        ...


class EnrollmentStore(ABC):
    """Interface for event-level enrollments."""

    @abstractmethod
    def create(self, enrollment: Enrollment) -> Enrollment:
        """Persist a new active enrollment.

        Raises:
            AlreadyEnrolledError: If an active enrollment exists for the identity.
        """
        ...

    @abstractmethod
    def get(self, enrollment_id: EnrollmentId) -> Enrollment | None:
        ...

    @abstractmethod
    def find_active(self, event_id: EventId, participant: Participant) -> Enrollment | None:
        """Return the active enrollment matching by account reference or email."""
        ...

    @abstractmethod
    def mark_cancelled(self, enrollment_id: EnrollmentId, cancellation: Cancellation) -> bool:
        """Transition active -> cancelled. False if it was not active."""
        ...

    @abstractmethod
    def set_payment(
        self, enrollment_id: EnrollmentId, status: PaymentStatus, reference: str | None
    ) -> bool:
        ...

    @abstractmethod
    def list_for_event(
        self,
        event_id: EventId,
        status: EnrollmentStatus | None = EnrollmentStatus.ACTIVE,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[Enrollment]:
        """Return enrollments newest first; a ``limit`` of None returns them all."""
        ...

    @abstractmethod
    def list_for_participant(self, user_ref: str | None, email: str | None) -> list[Enrollment]:
        """Return enrollments by account or email, newest first."""
        ...


class SessionEnrollmentStore(ABC):
    """Interface for session-level enrollments."""

    @abstractmethod
    def create(self, session_enrollment: SessionEnrollment) -> SessionEnrollment:
        """Persist a session enrollment.

        Raises:
            AlreadyInSessionError: If the (session, enrollment) pair exists.
        """
        ...

    @abstractmethod
    def get(self, session_id: SessionId, enrollment_id: EnrollmentId) -> SessionEnrollment | None:
        ...

    @abstractmethod
    def delete(self, session_id: SessionId, enrollment_id: EnrollmentId) -> bool:
        ...

    @abstractmethod
    def list_for_enrollment(self, enrollment_id: EnrollmentId) -> list[SessionEnrollment]:
        ...

    @abstractmethod
    def list_for_session(self, session_id: SessionId) -> list[SessionEnrollment]:
        """Return session enrollments ordered by created_at ascending."""
        ...

    @abstractmethod
    def set_attendance(
        self, session_id: SessionId, enrollment_id: EnrollmentId, status: AttendanceStatus
    ) -> bool:
        ...
