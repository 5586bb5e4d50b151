"""Thread-safe in-memory stores.

Used for embedding the engine without a database and by the unit tests.
Every scope gets its own lock so different scopes never contend.
"""

import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from django.utils import timezone

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
from registrations.domain.errors import (
    AlreadyEnrolledError,
    AlreadyInSessionError,
    AlreadyQueuedError,
    ScopeNotFoundError,
)
from registrations.domain.models import Cancellation
from registrations.stores.interfaces import (
    CapacityStore,
    EnrollmentStore,
    EventStore,
    SessionEnrollmentStore,
    WaitlistStore,
)


class ScopeLocks:
    """Lazily created re-entrant lock per scope key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def hold(self, scope: Scope) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(scope.key, threading.RLock())
        with lock:
            yield


class InMemoryEventStore(EventStore):
    """Catalog populated directly by the embedding application or tests."""

    def __init__(self) -> None:
        self._events: dict[EventId, Event] = {}
        self._sessions: dict[SessionId, Session] = {}

    def add_event(self, event: Event) -> Event:
        self._events[event.id] = event
        return event

    def add_session(self, session: Session) -> Session:
        self._sessions[session.id] = session
        return session

    def get_event(self, event_id: EventId) -> Event | None:
        return self._events.get(event_id)

    def get_session(self, session_id: SessionId) -> Session | None:
        return self._sessions.get(session_id)

    def get_sessions_for_event(self, event_id: EventId) -> list[Session]:
        sessions = [s for s in self._sessions.values() if s.event_id == event_id]
        return sorted(sessions, key=lambda s: (s.starts_at is None, str(s.starts_at or "")))

    def event_exists(self, event_id: EventId) -> bool:
        return event_id in self._events


class InMemoryCapacityStore(CapacityStore):
    def __init__(self, locks: ScopeLocks | None = None) -> None:
        self._locks = locks or ScopeLocks()
        self._counters: dict[str, CapacitySnapshot] = {}

    def get_counter(self, scope: Scope) -> CapacitySnapshot | None:
        return self._counters.get(scope.key)

    def ensure_counter(self, scope: Scope, total: int | None) -> CapacitySnapshot:
        with self._locks.hold(scope):
            counter = self._counters.get(scope.key)
            if counter is None:
                counter = CapacitySnapshot(scope=scope, total=total, used=0)
                self._counters[scope.key] = counter
            return counter

    def set_total(self, scope: Scope, total: int | None) -> bool:
        with self._locks.hold(scope):
            counter = self._counters.get(scope.key)
            used = counter.used if counter else 0
            if total is not None and total < used:
                return False
            self._counters[scope.key] = CapacitySnapshot(scope=scope, total=total, used=used)
            return True

    def try_increment(self, scope: Scope, quantity: int) -> bool:
        with self._locks.hold(scope):
            counter = self._counters.get(scope.key)
            if counter is None:
                raise ScopeNotFoundError(scope.key)
            if not counter.can_admit(quantity):
                return False
            self._counters[scope.key] = replace(counter, used=counter.used + quantity)
            return True

    def decrement(self, scope: Scope, quantity: int) -> None:
        with self._locks.hold(scope):
            counter = self._counters.get(scope.key)
            if counter is None:
                raise ScopeNotFoundError(scope.key)
            self._counters[scope.key] = replace(counter, used=max(counter.used - quantity, 0))


class InMemoryWaitlistStore(WaitlistStore):
    """Waitlists sharing the capacity store's locks and scope registry.

    Each scope owns an insertion-ordered queue that is only touched under
    that scope's lock, so work on different scopes runs in parallel.
    """

    def __init__(
        self,
        capacity: InMemoryCapacityStore,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self._capacity = capacity
        self._locks = capacity._locks
        self._clock = clock
        self._guard = threading.Lock()
        self._queues: dict[str, dict[WaitlistEntryId, WaitlistEntry]] = {}
        self._scope_of: dict[WaitlistEntryId, Scope] = {}

    def _queue(self, scope: Scope) -> dict[WaitlistEntryId, WaitlistEntry]:
        with self._guard:
            return self._queues.setdefault(scope.key, {})

    def _entry_scope(self, entry_id: WaitlistEntryId) -> Scope | None:
        with self._guard:
            return self._scope_of.get(entry_id)

    @staticmethod
    def _match(
        queue: dict[WaitlistEntryId, WaitlistEntry], email: str, user_ref: str | None
    ) -> WaitlistEntry | None:
        for entry in queue.values():
            if entry.participant.email == email or (
                user_ref and entry.participant.user_ref == user_ref
            ):
                return entry
        return None

    def append(self, scope: Scope, participant: Participant) -> WaitlistEntry:
        with self._locks.hold(scope):
            if self._capacity.get_counter(scope) is None:
                raise ScopeNotFoundError(scope.key)
            queue = self._queue(scope)
            existing = self._match(queue, participant.email, participant.user_ref)
            if existing is not None:
                raise AlreadyQueuedError(scope.key, existing.position)
            position = max((e.position for e in queue.values()), default=0) + 1
            entry = WaitlistEntry(
                id=WaitlistEntryId(uuid.uuid4()),
                scope=scope,
                participant=participant,
                position=position,
                enqueued_at=self._clock(),
            )
            queue[entry.id] = entry
            with self._guard:
                self._scope_of[entry.id] = scope
            return entry

    def delete_and_renumber(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        scope = self._entry_scope(entry_id)
        if scope is None:
            return None
        with self._locks.hold(scope):
            queue = self._queue(scope)
            removed = queue.pop(entry_id, None)
            if removed is None:
                return None
            with self._guard:
                self._scope_of.pop(entry_id, None)
            # Insertion order is enqueue order.
            for position, current in enumerate(list(queue.values()), start=1):
                if current.position != position:
                    queue[current.id] = replace(current, position=position)
            return removed

    def claim_unnotified(self, scope: Scope, limit: int) -> list[WaitlistEntry]:
        if limit <= 0:
            return []
        with self._locks.hold(scope):
            queue = self._queue(scope)
            pending = [e for e in queue.values() if not e.notified][:limit]
            now = self._clock()
            claimed = []
            for entry in pending:
                notified = replace(entry, notified=True, notified_at=now)
                queue[entry.id] = notified
                claimed.append(notified)
            return claimed

    def get_entry(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        scope = self._entry_scope(entry_id)
        if scope is None:
            return None
        with self._locks.hold(scope):
            return self._queue(scope).get(entry_id)

    def find(self, scope: Scope, email: str, user_ref: str | None = None) -> WaitlistEntry | None:
        with self._locks.hold(scope):
            return self._match(self._queue(scope), email.strip().lower(), user_ref)

    def list_entries(self, scope: Scope) -> list[WaitlistEntry]:
        with self._locks.hold(scope):
            return list(self._queue(scope).values())

    def count(self, scope: Scope) -> int:
        with self._locks.hold(scope):
            return len(self._queue(scope))


class InMemoryEnrollmentStore(EnrollmentStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._enrollments: dict[EnrollmentId, Enrollment] = {}

    def create(self, enrollment: Enrollment) -> Enrollment:
        with self._lock:
            if self.find_active(enrollment.event_id, enrollment.participant) is not None:
                raise AlreadyEnrolledError(str(enrollment.event_id))
            self._enrollments[enrollment.id] = enrollment
            return enrollment

    def get(self, enrollment_id: EnrollmentId) -> Enrollment | None:
        return self._enrollments.get(enrollment_id)

    def find_active(self, event_id: EventId, participant: Participant) -> Enrollment | None:
        with self._lock:
            for enrollment in self._enrollments.values():
                if (
                    enrollment.event_id == event_id
                    and enrollment.is_active
                    and enrollment.participant.matches(participant)
                ):
                    return enrollment
        return None

    def mark_cancelled(self, enrollment_id: EnrollmentId, cancellation: Cancellation) -> bool:
        with self._lock:
            enrollment = self._enrollments.get(enrollment_id)
            if enrollment is None or not enrollment.is_active:
                return False
            self._enrollments[enrollment_id] = enrollment.cancelled(cancellation)
            return True

    def set_payment(
        self, enrollment_id: EnrollmentId, status: PaymentStatus, reference: str | None
    ) -> bool:
        with self._lock:
            enrollment = self._enrollments.get(enrollment_id)
            if enrollment is None:
                return False
            self._enrollments[enrollment_id] = replace(
                enrollment, payment_status=status, payment_reference=reference
            )
            return True

    def list_for_event(
        self,
        event_id: EventId,
        status: EnrollmentStatus | None = EnrollmentStatus.ACTIVE,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[Enrollment]:
        with self._lock:
            matching = [
                e
                for e in self._enrollments.values()
                if e.event_id == event_id and (status is None or e.status is status)
            ]
        matching.sort(key=lambda e: e.created_at, reverse=True)
        if limit is None:
            return matching[offset:]
        return matching[offset : offset + limit]

    def list_for_participant(self, user_ref: str | None, email: str | None) -> list[Enrollment]:
        email = email.strip().lower() if email else None
        with self._lock:
            matching = [
                e
                for e in self._enrollments.values()
                if (user_ref and e.participant.user_ref == user_ref)
                or (email and e.participant.email == email)
            ]
        matching.sort(key=lambda e: e.created_at, reverse=True)
        return matching


class InMemorySessionEnrollmentStore(SessionEnrollmentStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[tuple[SessionId, EnrollmentId], SessionEnrollment] = {}

    def create(self, session_enrollment: SessionEnrollment) -> SessionEnrollment:
        key = (session_enrollment.session_id, session_enrollment.enrollment_id)
        with self._lock:
            if key in self._rows:
                raise AlreadyInSessionError(str(session_enrollment.session_id))
            self._rows[key] = session_enrollment
            return session_enrollment

    def get(self, session_id: SessionId, enrollment_id: EnrollmentId) -> SessionEnrollment | None:
        return self._rows.get((session_id, enrollment_id))

    def delete(self, session_id: SessionId, enrollment_id: EnrollmentId) -> bool:
        with self._lock:
            return self._rows.pop((session_id, enrollment_id), None) is not None

    def list_for_enrollment(self, enrollment_id: EnrollmentId) -> list[SessionEnrollment]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.enrollment_id == enrollment_id]
        return sorted(rows, key=lambda r: r.created_at)

    def list_for_session(self, session_id: SessionId) -> list[SessionEnrollment]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.session_id == session_id]
        return sorted(rows, key=lambda r: r.created_at)

    def set_attendance(
        self, session_id: SessionId, enrollment_id: EnrollmentId, status: AttendanceStatus
    ) -> bool:
        key = (session_id, enrollment_id)
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                return False
            self._rows[key] = replace(row, attendance_status=status)
            return True
