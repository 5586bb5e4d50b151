"""Django ORM implementations of the stores.

Atomicity per scope comes from the database: admissions are a single
conditional UPDATE, and waitlist mutations run inside ``transaction.atomic``
holding a ``select_for_update`` lock on the scope's capacity counter row.
"""

import functools
from collections.abc import Callable
from decimal import Decimal
from typing import ParamSpec, TypeVar

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F, Max, Q, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from registrations import models
from registrations.domain import (
    AttendanceStatus,
    Capacity,
    CapacitySnapshot,
    Enrollment,
    EnrollmentId,
    EnrollmentStatus,
    Event,
    EventId,
    EventStatus,
    Money,
    Participant,
    PaymentStatus,
    Scope,
    Session,
    SessionEnrollment,
    SessionId,
    TicketDetails,
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
    StoreError,
    WaitlistStore,
)

P = ParamSpec("P")
R = TypeVar("R")


def translate_errors(method: Callable[P, R]) -> Callable[P, R]:
    """Re-raise database failures as StoreError so they never leak upward."""

    @functools.wraps(method)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return method(*args, **kwargs)
        except DatabaseError as exc:
            raise StoreError(f"{method.__qualname__} failed") from exc

    return wrapper


def _identity(email: str, user_ref: str | None) -> Q:
    """Rows belonging to the same person, by account reference or email."""
    match = Q(email=email)
    if user_ref:
        match |= Q(user_ref=user_ref)
    return match


def _capacity(value: int | None) -> Capacity | None:
    return Capacity(value) if value is not None else None


def _to_event(row: models.Event) -> Event:
    return Event(
        id=EventId(row.id),
        title=row.title,
        status=EventStatus(row.status),
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        capacity=_capacity(row.max_capacity),
        registration_enabled=row.registration_enabled,
        registration_opens_at=row.registration_opens_at,
        registration_closes_at=row.registration_closes_at,
        cancellation_deadline=row.cancellation_deadline,
    )


def _to_session(row: models.Session) -> Session:
    return Session(
        id=SessionId(row.id),
        event_id=EventId(row.event_id),
        title=row.title,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        # A session capacity of 0 means unlimited.
        capacity=_capacity(row.capacity or None),
    )


def _scope_of(event_id, session_id) -> Scope:
    if session_id is None:
        return Scope.for_event(EventId(event_id))
    return Scope.for_session(EventId(event_id), SessionId(session_id))


def _to_counter(row: models.CapacityCounter) -> CapacitySnapshot:
    return CapacitySnapshot(
        scope=_scope_of(row.event_id, row.session_id),
        total=row.total,
        used=row.used,
    )


def _to_entry(row: models.WaitlistEntry) -> WaitlistEntry:
    return WaitlistEntry(
        id=WaitlistEntryId(row.id),
        scope=_scope_of(row.event_id, row.session_id),
        participant=Participant(
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            user_ref=row.user_ref,
        ),
        position=row.position,
        enqueued_at=row.enqueued_at,
        notified=row.notified,
        notified_at=row.notified_at,
    )


def _to_enrollment(row: models.Enrollment) -> Enrollment:
    cancellation = None
    if row.status == models.Enrollment.Status.CANCELLED and row.cancelled_at is not None:
        cancellation = Cancellation(
            actor=row.cancelled_by or "",
            reason=row.cancellation_reason,
            cancelled_at=row.cancelled_at,
        )
    return Enrollment(
        id=EnrollmentId(row.id),
        event_id=EventId(row.event_id),
        participant=Participant(
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            user_ref=row.user_ref,
        ),
        quantity=row.quantity,
        ticket=TicketDetails(
            ticket_type=row.ticket_type,
            promo_code=row.promo_code,
            special_requirements=row.special_requirements,
        ),
        amount_due=Money(Decimal(row.amount_due)),
        created_at=row.created_at,
        status=EnrollmentStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        payment_reference=row.payment_reference,
        cancellation=cancellation,
    )


def _to_session_enrollment(row: models.SessionEnrollment) -> SessionEnrollment:
    return SessionEnrollment(
        session_id=SessionId(row.session_id),
        enrollment_id=EnrollmentId(row.enrollment_id),
        created_at=row.created_at,
        attendance_status=AttendanceStatus(row.attendance_status),
    )


class DjangoEventStore(EventStore):
    """PostgreSQL-backed event catalog using Django ORM."""

    @translate_errors
    def get_event(self, event_id: EventId) -> Event | None:
        row = models.Event.objects.filter(pk=event_id.value).first()
        return _to_event(row) if row else None

    @translate_errors
    def get_session(self, session_id: SessionId) -> Session | None:
        row = models.Session.objects.filter(pk=session_id.value).first()
        return _to_session(row) if row else None

    @translate_errors
    def get_sessions_for_event(self, event_id: EventId) -> list[Session]:
        rows = models.Session.objects.filter(event_id=event_id.value).order_by("starts_at")
        return [_to_session(row) for row in rows]

    @translate_errors
    def event_exists(self, event_id: EventId) -> bool:
        return models.Event.objects.filter(pk=event_id.value).exists()


class DjangoCapacityStore(CapacityStore):
    @translate_errors
    def get_counter(self, scope: Scope) -> CapacitySnapshot | None:
        row = models.CapacityCounter.objects.filter(scope_key=scope.key).first()
        return _to_counter(row) if row else None

    @translate_errors
    def ensure_counter(self, scope: Scope, total: int | None) -> CapacitySnapshot:
        row, _ = models.CapacityCounter.objects.get_or_create(
            scope_key=scope.key,
            defaults={
                "event_id": scope.event_id.value,
                "session_id": scope.session_id.value if scope.session_id else None,
                "total": total,
            },
        )
        return _to_counter(row)

    @translate_errors
    def set_total(self, scope: Scope, total: int | None) -> bool:
        with transaction.atomic():
            row, created = models.CapacityCounter.objects.select_for_update().get_or_create(
                scope_key=scope.key,
                defaults={
                    "event_id": scope.event_id.value,
                    "session_id": scope.session_id.value if scope.session_id else None,
                    "total": total,
                },
            )
            if created:
                return True
            if total is not None and total < row.used:
                return False
            row.total = total
            row.save(update_fields=["total", "updated_at"])
            return True

    @translate_errors
    def try_increment(self, scope: Scope, quantity: int) -> bool:
        # Check and reserve in one statement; concurrent callers cannot both fit.
        updated = (
            models.CapacityCounter.objects.filter(scope_key=scope.key)
            .filter(Q(total__isnull=True) | Q(used__lte=F("total") - quantity))
            .update(used=F("used") + quantity, updated_at=timezone.now())
        )
        if updated:
            return True
        if not models.CapacityCounter.objects.filter(scope_key=scope.key).exists():
            raise ScopeNotFoundError(scope.key)
        return False

    @translate_errors
    def decrement(self, scope: Scope, quantity: int) -> None:
        updated = models.CapacityCounter.objects.filter(scope_key=scope.key).update(
            used=Greatest(F("used") - quantity, Value(0)),
            updated_at=timezone.now(),
        )
        if not updated:
            raise ScopeNotFoundError(scope.key)


class DjangoWaitlistStore(WaitlistStore):
    @staticmethod
    def _lock_scope(scope: Scope) -> None:
        locked = (
            models.CapacityCounter.objects.select_for_update()
            .filter(scope_key=scope.key)
            .values_list("pk", flat=True)
        )
        if not list(locked):
            raise ScopeNotFoundError(scope.key)

    @translate_errors
    def append(self, scope: Scope, participant: Participant) -> WaitlistEntry:
        try:
            with transaction.atomic():
                self._lock_scope(scope)
                queue = models.WaitlistEntry.objects.filter(scope_key=scope.key)
                existing = queue.filter(_identity(participant.email, participant.user_ref)).first()
                if existing is not None:
                    raise AlreadyQueuedError(scope.key, existing.position)
                last = queue.aggregate(last=Max("position"))["last"] or 0
                row = models.WaitlistEntry.objects.create(
                    scope_key=scope.key,
                    event_id=scope.event_id.value,
                    session_id=scope.session_id.value if scope.session_id else None,
                    user_ref=participant.user_ref,
                    email=participant.email,
                    first_name=participant.first_name,
                    last_name=participant.last_name,
                    position=last + 1,
                    enqueued_at=timezone.now(),
                )
        except IntegrityError as exc:
            raise AlreadyQueuedError(scope.key) from exc
        return _to_entry(row)

    @translate_errors
    def delete_and_renumber(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        row = models.WaitlistEntry.objects.filter(pk=entry_id.value).first()
        if row is None:
            return None
        removed = _to_entry(row)
        with transaction.atomic():
            self._lock_scope(removed.scope)
            deleted, _ = models.WaitlistEntry.objects.filter(pk=entry_id.value).delete()
            if not deleted:
                return None
            remaining = models.WaitlistEntry.objects.filter(scope_key=row.scope_key).order_by(
                "enqueued_at", "position"
            )
            for position, current in enumerate(remaining, start=1):
                if current.position != position:
                    current.position = position
                    current.save(update_fields=["position"])
        return removed

    @translate_errors
    def claim_unnotified(self, scope: Scope, limit: int) -> list[WaitlistEntry]:
        if limit <= 0:
            return []
        now = timezone.now()
        with transaction.atomic():
            self._lock_scope(scope)
            rows = list(
                models.WaitlistEntry.objects.filter(scope_key=scope.key, notified=False).order_by(
                    "position"
                )[:limit]
            )
            models.WaitlistEntry.objects.filter(pk__in=[r.pk for r in rows]).update(
                notified=True, notified_at=now
            )
        for row in rows:
            row.notified = True
            row.notified_at = now
        return [_to_entry(row) for row in rows]

    @translate_errors
    def get_entry(self, entry_id: WaitlistEntryId) -> WaitlistEntry | None:
        row = models.WaitlistEntry.objects.filter(pk=entry_id.value).first()
        return _to_entry(row) if row else None

    @translate_errors
    def find(self, scope: Scope, email: str, user_ref: str | None = None) -> WaitlistEntry | None:
        row = (
            models.WaitlistEntry.objects.filter(scope_key=scope.key)
            .filter(_identity(email.strip().lower(), user_ref))
            .order_by("position")
            .first()
        )
        return _to_entry(row) if row else None

    @translate_errors
    def list_entries(self, scope: Scope) -> list[WaitlistEntry]:
        rows = models.WaitlistEntry.objects.filter(scope_key=scope.key).order_by("position")
        return [_to_entry(row) for row in rows]

    @translate_errors
    def count(self, scope: Scope) -> int:
        return models.WaitlistEntry.objects.filter(scope_key=scope.key).count()


class DjangoEnrollmentStore(EnrollmentStore):
    @translate_errors
    def create(self, enrollment: Enrollment) -> Enrollment:
        participant = enrollment.participant
        try:
            with transaction.atomic():
                models.Enrollment.objects.create(
                    id=enrollment.id.value,
                    event_id=enrollment.event_id.value,
                    user_ref=participant.user_ref,
                    email=participant.email,
                    first_name=participant.first_name,
                    last_name=participant.last_name,
                    quantity=enrollment.quantity,
                    ticket_type=enrollment.ticket.ticket_type,
                    promo_code=enrollment.ticket.promo_code,
                    special_requirements=enrollment.ticket.special_requirements,
                    amount_due=enrollment.amount_due.amount,
                    payment_status=enrollment.payment_status.value,
                    status=enrollment.status.value,
                    created_at=enrollment.created_at,
                )
        except IntegrityError as exc:
            raise AlreadyEnrolledError(str(enrollment.event_id)) from exc
        return enrollment

    @translate_errors
    def get(self, enrollment_id: EnrollmentId) -> Enrollment | None:
        row = models.Enrollment.objects.filter(pk=enrollment_id.value).first()
        return _to_enrollment(row) if row else None

    @translate_errors
    def find_active(self, event_id: EventId, participant: Participant) -> Enrollment | None:
        row = (
            models.Enrollment.objects.filter(
                event_id=event_id.value, status=models.Enrollment.Status.ACTIVE
            )
            .filter(_identity(participant.email, participant.user_ref))
            .first()
        )
        return _to_enrollment(row) if row else None

    @translate_errors
    def mark_cancelled(self, enrollment_id: EnrollmentId, cancellation: Cancellation) -> bool:
        updated = models.Enrollment.objects.filter(
            pk=enrollment_id.value, status=models.Enrollment.Status.ACTIVE
        ).update(
            status=models.Enrollment.Status.CANCELLED,
            cancelled_at=cancellation.cancelled_at,
            cancelled_by=cancellation.actor,
            cancellation_reason=cancellation.reason,
        )
        return updated == 1

    @translate_errors
    def set_payment(
        self, enrollment_id: EnrollmentId, status: PaymentStatus, reference: str | None
    ) -> bool:
        updated = models.Enrollment.objects.filter(pk=enrollment_id.value).update(
            payment_status=status.value,
            payment_reference=reference,
        )
        return updated == 1

    @translate_errors
    def list_for_event(
        self,
        event_id: EventId,
        status: EnrollmentStatus | None = EnrollmentStatus.ACTIVE,
        limit: int | None = 100,
        offset: int = 0,
    ) -> list[Enrollment]:
        rows = models.Enrollment.objects.filter(event_id=event_id.value)
        if status is not None:
            rows = rows.filter(status=status.value)
        rows = rows.order_by("-created_at")
        rows = rows[offset:] if limit is None else rows[offset : offset + limit]
        return [_to_enrollment(row) for row in rows]

    @translate_errors
    def list_for_participant(self, user_ref: str | None, email: str | None) -> list[Enrollment]:
        match = Q()
        if user_ref:
            match |= Q(user_ref=user_ref)
        if email:
            match |= Q(email=email.strip().lower())
        if not match:
            return []
        rows = models.Enrollment.objects.filter(match).order_by("-created_at")
        return [_to_enrollment(row) for row in rows]


class DjangoSessionEnrollmentStore(SessionEnrollmentStore):
    @translate_errors
    def create(self, session_enrollment: SessionEnrollment) -> SessionEnrollment:
        try:
            with transaction.atomic():
                models.SessionEnrollment.objects.create(
                    session_id=session_enrollment.session_id.value,
                    enrollment_id=session_enrollment.enrollment_id.value,
                    attendance_status=session_enrollment.attendance_status.value,
                    created_at=session_enrollment.created_at,
                )
        except IntegrityError as exc:
            raise AlreadyInSessionError(str(session_enrollment.session_id)) from exc
        return session_enrollment

    @translate_errors
    def get(self, session_id: SessionId, enrollment_id: EnrollmentId) -> SessionEnrollment | None:
        row = models.SessionEnrollment.objects.filter(
            session_id=session_id.value, enrollment_id=enrollment_id.value
        ).first()
        return _to_session_enrollment(row) if row else None

    @translate_errors
    def delete(self, session_id: SessionId, enrollment_id: EnrollmentId) -> bool:
        deleted, _ = models.SessionEnrollment.objects.filter(
            session_id=session_id.value, enrollment_id=enrollment_id.value
        ).delete()
        return deleted > 0

    @translate_errors
    def list_for_enrollment(self, enrollment_id: EnrollmentId) -> list[SessionEnrollment]:
        rows = models.SessionEnrollment.objects.filter(enrollment_id=enrollment_id.value)
        return [_to_session_enrollment(row) for row in rows.order_by("created_at")]

    @translate_errors
    def list_for_session(self, session_id: SessionId) -> list[SessionEnrollment]:
        rows = models.SessionEnrollment.objects.filter(session_id=session_id.value)
        return [_to_session_enrollment(row) for row in rows.order_by("created_at")]

    @translate_errors
    def set_attendance(
        self, session_id: SessionId, enrollment_id: EnrollmentId, status: AttendanceStatus
    ) -> bool:
        updated = models.SessionEnrollment.objects.filter(
            session_id=session_id.value, enrollment_id=enrollment_id.value
        ).update(attendance_status=status.value)
        return updated == 1
