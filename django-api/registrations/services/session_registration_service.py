"""Session registration service - enrollment into individual sessions.

Built on the same ledger and queue as event registration, scoped per
(event, session), plus schedule conflict detection and attendance tracking.
"""

from collections import Counter
from collections.abc import Callable, Iterable
from datetime import datetime

import structlog
from django.utils import timezone

from registrations.bus import EventBus
from registrations.domain import (
    AttendanceStatus,
    CapacitySnapshot,
    Enrollment,
    EnrollmentId,
    Scope,
    ScheduledSlot,
    Session,
    SessionEnrollment,
    SessionId,
    WaitlistEntry,
)
from registrations.domain.errors import (
    AlreadyInSessionError,
    EnrollmentInactiveError,
    EnrollmentNotFoundError,
    InvalidInputError,
    ScheduleConflictError,
    SessionEnrollmentNotFoundError,
    SessionEventMismatchError,
    SessionNotFoundError,
    WaitlistEntryNotFoundError,
)
from registrations.domain.events import (
    AttendanceMarked,
    SessionEnrollmentAdmitted,
    SessionEnrollmentCancelled,
    WaitlistEntryNotified,
)
from registrations.domain.results import (
    BulkSessionRegistration,
    SessionCancellationOutcome,
    SessionRegistrationOutcome,
    SessionStatistics,
)
from registrations.services.base import LoggingService, enqueue_entrant, parse_id, returns_result
from registrations.services.capacity_ledger import CapacityLedger
from registrations.services.conflict_detector import has_conflict
from registrations.services.waitlist_queue import WaitlistQueue
from registrations.stores.interfaces import EnrollmentStore, EventStore, SessionEnrollmentStore


class SessionRegistrationService(LoggingService):
    """Service for session-level enrollment and attendance."""

    def __init__(
        self,
        *,
        events: EventStore,
        enrollments: EnrollmentStore,
        session_enrollments: SessionEnrollmentStore,
        ledger: CapacityLedger,
        waitlist: WaitlistQueue,
        bus: EventBus,
        clock: Callable[[], datetime] = timezone.now,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(logger)
        self._events = events
        self._enrollments = enrollments
        self._session_enrollments = session_enrollments
        self._ledger = ledger
        self._waitlist = waitlist
        self._bus = bus
        self._clock = clock

    def _get_session(self, session_id: SessionId | str) -> Session:
        session_id = parse_id(SessionId, session_id, "session_id")
        session = self._events.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return session

    def _get_enrollment(self, enrollment_id: EnrollmentId | str) -> Enrollment:
        enrollment_id = parse_id(EnrollmentId, enrollment_id, "enrollment_id")
        enrollment = self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(str(enrollment_id))
        return enrollment

    def _session_scope(self, session: Session) -> Scope:
        self._ledger.ensure(session.scope, session.capacity)
        return session.scope

    def _held_slots(self, enrollment: Enrollment, exclude: SessionId) -> Iterable[ScheduledSlot]:
        """Slots of the other sessions this enrollment holds in its event."""
        for session_enrollment in self._session_enrollments.list_for_enrollment(enrollment.id):
            if session_enrollment.session_id == exclude:
                continue
            session = self._events.get_session(session_enrollment.session_id)
            if session is None or session.event_id != enrollment.event_id:
                continue
            yield ScheduledSlot.from_session(session)

    def _check_conflicts(self, session: Session, enrollment: Enrollment) -> None:
        check = has_conflict(
            ScheduledSlot.from_session(session),
            self._held_slots(enrollment, exclude=session.id),
        )
        if check.degraded:
            self._logger.warning(
                "conflict_check_degraded",
                session_id=str(session.id),
                enrollment_id=str(enrollment.id),
                skipped=[str(s) for s in check.skipped],
            )
        if check.has_conflict:
            conflicting = check.conflicting
            self._logger.warning(
                "session_conflict",
                session_id=str(session.id),
                enrollment_id=str(enrollment.id),
                conflicting_session_id=str(conflicting.session_id),
            )
            raise ScheduleConflictError(str(conflicting.session_id), conflicting.title)

    def _register(self, session_id: SessionId | str, enrollment_id: EnrollmentId | str) -> SessionRegistrationOutcome:
        session = self._get_session(session_id)
        enrollment = self._get_enrollment(enrollment_id)
        if not enrollment.is_active:
            raise EnrollmentInactiveError(str(enrollment.id))
        if enrollment.event_id != session.event_id:
            raise SessionEventMismatchError(str(session.id))
        if self._session_enrollments.get(session.id, enrollment.id) is not None:
            raise AlreadyInSessionError(str(session.id))

        self._check_conflicts(session, enrollment)

        scope = self._session_scope(session)
        if not self._ledger.try_admit(scope, 1):
            self._logger.info("session_at_capacity", session_id=str(session.id))
            entry = enqueue_entrant(self._waitlist, self._bus, scope, enrollment.participant)
            return SessionRegistrationOutcome(admitted=False, waitlisted=True, position=entry.position)

        try:
            session_enrollment = self._session_enrollments.create(
                SessionEnrollment(
                    session_id=session.id,
                    enrollment_id=enrollment.id,
                    created_at=self._clock(),
                )
            )
        except Exception:
            self._ledger.release(scope, 1)
            raise

        self._waitlist.discard(scope, enrollment.participant)
        self._logger.info(
            "session_registration_admitted",
            session_id=str(session.id),
            enrollment_id=str(enrollment.id),
        )
        self._bus.publish(SessionEnrollmentAdmitted(session_enrollment=session_enrollment))
        return SessionRegistrationOutcome(admitted=True, session_enrollment=session_enrollment)

    @returns_result
    def register_for_session(
        self, session_id: SessionId | str, enrollment_id: EnrollmentId | str
    ) -> SessionRegistrationOutcome:
        """Admit an active enrollment into a session, or queue it when full."""
        return self._register(session_id, enrollment_id)

    @returns_result
    def cancel_session_registration(
        self, session_id: SessionId | str, enrollment_id: EnrollmentId | str
    ) -> SessionCancellationOutcome:
        session_id = parse_id(SessionId, session_id, "session_id")
        enrollment_id = parse_id(EnrollmentId, enrollment_id, "enrollment_id")
        enrollment = self._get_enrollment(enrollment_id)
        if not self._session_enrollments.delete(session_id, enrollment_id):
            raise SessionEnrollmentNotFoundError(str(session_id), str(enrollment_id))

        session = self._events.get_session(session_id)
        event_id = session.event_id if session else enrollment.event_id
        scope = Scope.for_session(event_id, session_id)
        self._ledger.release(scope, 1)
        notified = self._waitlist.process(scope, 1)

        self._logger.info(
            "session_registration_cancelled",
            session_id=str(session_id),
            enrollment_id=str(enrollment_id),
            notified=len(notified),
        )
        self._bus.publish(SessionEnrollmentCancelled(session_id=session_id, enrollment_id=enrollment_id))
        for entry in notified:
            self._bus.publish(WaitlistEntryNotified(entry=entry))
        return SessionCancellationOutcome(
            session_id=session_id,
            enrollment_id=enrollment_id,
            notified=tuple(notified),
        )

    def bulk_register_sessions(
        self, session_ids: Iterable[SessionId | str], enrollment_id: EnrollmentId | str
    ) -> BulkSessionRegistration:
        """Register for each session independently; partial success is allowed."""
        results = tuple(
            (str(session_id), self.register_for_session(session_id, enrollment_id))
            for session_id in session_ids
        )
        bulk = BulkSessionRegistration(results=results)
        self._logger.info(
            "bulk_session_registration",
            enrollment_id=str(enrollment_id),
            registered=bulk.registered,
            waitlisted=bulk.waitlisted,
            failed=bulk.failed,
        )
        return bulk

    @returns_result
    def mark_attendance(
        self,
        session_id: SessionId | str,
        enrollment_id: EnrollmentId | str,
        status: AttendanceStatus | str,
    ) -> AttendanceStatus:
        session_id = parse_id(SessionId, session_id, "session_id")
        enrollment_id = parse_id(EnrollmentId, enrollment_id, "enrollment_id")
        if not isinstance(status, AttendanceStatus):
            try:
                status = AttendanceStatus(status)
            except ValueError as exc:
                raise InvalidInputError("Invalid attendance status", "status") from exc
        if not self._session_enrollments.set_attendance(session_id, enrollment_id, status):
            raise SessionEnrollmentNotFoundError(str(session_id), str(enrollment_id))
        self._logger.info(
            "attendance_marked",
            session_id=str(session_id),
            enrollment_id=str(enrollment_id),
            status=status.value,
        )
        self._bus.publish(
            AttendanceMarked(session_id=session_id, enrollment_id=enrollment_id, status=status)
        )
        return status

    # Queries

    @returns_result
    def list_participant_sessions(self, enrollment_id: EnrollmentId | str) -> list[Session]:
        """Sessions held by an enrollment, earliest first."""
        enrollment = self._get_enrollment(enrollment_id)
        sessions = []
        for session_enrollment in self._session_enrollments.list_for_enrollment(enrollment.id):
            session = self._events.get_session(session_enrollment.session_id)
            if session is not None:
                sessions.append(session)
        dated = [s for s in sessions if s.interval is not None]
        undated = [s for s in sessions if s.interval is None]
        return sorted(dated, key=lambda s: s.interval.start) + undated

    @returns_result
    def list_session_registrants(
        self, session_id: SessionId | str
    ) -> list[tuple[SessionEnrollment, Enrollment]]:
        session = self._get_session(session_id)
        registrants = []
        for session_enrollment in self._session_enrollments.list_for_session(session.id):
            enrollment = self._enrollments.get(session_enrollment.enrollment_id)
            if enrollment is not None:
                registrants.append((session_enrollment, enrollment))
        return registrants

    @returns_result
    def statistics(self, session_id: SessionId | str) -> SessionStatistics:
        session = self._get_session(session_id)
        rows = self._session_enrollments.list_for_session(session.id)
        by_attendance = Counter(row.attendance_status.value for row in rows)
        capacity = session.capacity.value if session.capacity else None
        return SessionStatistics(
            total=len(rows),
            capacity=capacity,
            remaining=max(capacity - len(rows), 0) if capacity is not None else None,
            by_attendance=dict(by_attendance),
        )

    @returns_result
    def get_capacity(self, session_id: SessionId | str) -> CapacitySnapshot:
        session = self._get_session(session_id)
        return self._ledger.peek(session.scope, session.capacity)

    @returns_result
    def get_waitlist(self, session_id: SessionId | str) -> list[WaitlistEntry]:
        return self._waitlist.entries(self._get_session(session_id).scope)

    @returns_result
    def get_position(self, session_id: SessionId | str, email: str) -> int:
        position = self._waitlist.position_of(self._get_session(session_id).scope, email)
        if position is None:
            raise WaitlistEntryNotFoundError(email)
        return position
