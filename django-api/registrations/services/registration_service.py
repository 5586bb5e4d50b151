"""Event registration service - all event-level enrollment logic lives here.

Services:
- Depend only on interfaces (stores, collaborators)
- Validate domain invariants
- Perform orchestration and error mapping
- Return Results carrying domain models or domain errors
"""

import csv
import io
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

import structlog
from django.utils import timezone

from registrations.bus import EventBus
from registrations.collaborators import EventEligibility, Pricing, PricingError
from registrations.conf import RegistrationSettings
from registrations.domain import (
    Actor,
    CapacitySnapshot,
    Enrollment,
    EnrollmentId,
    EnrollmentStatus,
    Event,
    EventId,
    Money,
    Participant,
    PaymentStatus,
    Scope,
    SessionId,
    TicketDetails,
    WaitlistEntry,
    WaitlistEntryId,
)
from registrations.domain.errors import (
    AlreadyCancelledError,
    AlreadyEnrolledError,
    EnrollmentNotFoundError,
    EventNotFoundError,
    InvalidInputError,
    NotAuthorizedError,
    PricingFailedError,
    RegistrationClosedError,
    WaitlistEntryNotFoundError,
)
from registrations.domain.events import (
    EnrollmentAdmitted,
    EnrollmentCancelled,
    PaymentConfirmed,
    SessionEnrollmentCancelled,
    WaitlistEntryNotified,
)
from registrations.domain.models import Cancellation
from registrations.domain.results import (
    CancellationEligibility,
    CancellationOutcome,
    EnrollmentStatistics,
    RegistrationOutcome,
    RegistrationRequest,
)
from registrations.services.base import LoggingService, enqueue_entrant, parse_id, returns_result
from registrations.services.capacity_ledger import CapacityLedger
from registrations.services.waitlist_queue import WaitlistQueue
from registrations.stores.interfaces import EnrollmentStore, EventStore, SessionEnrollmentStore

REQUIRED_FIELDS = ("event_id", "email", "first_name", "last_name", "ticket_type")

CSV_HEADERS = (
    "Registration ID",
    "First Name",
    "Last Name",
    "Email",
    "Ticket Type",
    "Quantity",
    "Promo Code",
    "Amount Due",
    "Payment Status",
    "Payment Reference",
    "Registration Date",
    "Status",
    "Special Requirements",
)


class RegistrationService(LoggingService):
    """Service for event-level enrollment.

    Lifecycle of an enrollment is ``active -> cancelled`` and nothing else:
    a cancelled enrollment is never reactivated, the participant registers
    again instead.
    """

    def __init__(
        self,
        *,
        events: EventStore,
        enrollments: EnrollmentStore,
        session_enrollments: SessionEnrollmentStore,
        ledger: CapacityLedger,
        waitlist: WaitlistQueue,
        eligibility: EventEligibility,
        pricing: Pricing,
        bus: EventBus,
        settings: RegistrationSettings | None = None,
        clock: Callable[[], datetime] = timezone.now,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(logger)
        self._events = events
        self._enrollments = enrollments
        self._session_enrollments = session_enrollments
        self._ledger = ledger
        self._waitlist = waitlist
        self._eligibility = eligibility
        self._pricing = pricing
        self._bus = bus
        self._settings = settings or RegistrationSettings.from_django()
        self._clock = clock

    # Lookups

    def _get_event(self, event_id: EventId) -> Event:
        event = self._events.get_event(event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        return event

    def _get_enrollment(self, enrollment_id: EnrollmentId) -> Enrollment:
        enrollment = self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(str(enrollment_id))
        return enrollment

    def _lookup_event(self, event_id: EventId | str) -> Event:
        return self._get_event(parse_id(EventId, event_id, "event_id"))

    # Registration

    def _parse_request(
        self, request: RegistrationRequest
    ) -> tuple[EventId, Participant, TicketDetails, int]:
        for field in REQUIRED_FIELDS:
            if not getattr(request, field):
                raise InvalidInputError(f"Missing required field: {field}", field)
        event_id = parse_id(EventId, request.event_id, "event_id")
        try:
            participant = Participant(
                email=request.email,
                first_name=request.first_name.strip(),
                last_name=request.last_name.strip(),
                user_ref=request.user_ref or None,
            )
        except ValueError as exc:
            raise InvalidInputError("Invalid email address", "email") from exc
        quantity = request.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidInputError("Ticket quantity must be a positive integer", "quantity")
        if quantity > self._settings.max_group_size:
            raise InvalidInputError(
                f"No more than {self._settings.max_group_size} tickets per registration",
                "quantity",
            )
        ticket = TicketDetails(
            ticket_type=request.ticket_type,
            promo_code=request.promo_code or None,
            special_requirements=request.special_requirements or None,
        )
        return event_id, participant, ticket, quantity

    @returns_result
    def register(self, request: RegistrationRequest) -> RegistrationOutcome:
        """Admit a participant to an event, or queue them when it is full.

        Raises (as failed Results):
            InvalidInputError, EventNotFoundError, RegistrationClosedError,
            AlreadyEnrolledError, AlreadyQueuedError, PricingFailedError.
        """
        event_id, participant, ticket, quantity = self._parse_request(request)
        event = self._get_event(event_id)

        is_open, reason = self._eligibility.is_open(event)
        if not is_open:
            raise RegistrationClosedError(reason)

        if self._enrollments.find_active(event.id, participant) is not None:
            self._logger.info(
                "duplicate_registration",
                event_id=str(event.id),
                email=participant.email,
                user_ref=participant.user_ref,
            )
            raise AlreadyEnrolledError(str(event.id))

        scope = event.scope
        self._ledger.ensure(scope, event.capacity)
        if not self._ledger.try_admit(scope, quantity):
            self._logger.info("event_at_capacity", event_id=str(event.id), quantity=quantity)
            entry = enqueue_entrant(self._waitlist, self._bus, scope, participant)
            return RegistrationOutcome(admitted=False, waitlisted=True, position=entry.position)

        try:
            enrollment = self._create_enrollment(event, participant, ticket, quantity)
        except Exception:
            self._ledger.release(scope, quantity)
            raise

        self._waitlist.discard(scope, participant)
        self._logger.info(
            "registration_admitted",
            event_id=str(event.id),
            enrollment_id=str(enrollment.id),
            quantity=quantity,
        )
        self._bus.publish(EnrollmentAdmitted(enrollment=enrollment))
        return RegistrationOutcome(
            admitted=True,
            enrollment_id=enrollment.id,
            amount_due=enrollment.amount_due,
        )

    def _create_enrollment(
        self, event: Event, participant: Participant, ticket: TicketDetails, quantity: int
    ) -> Enrollment:
        try:
            amount = self._pricing.quote(event.id, ticket, quantity)
        except PricingError as exc:
            raise PricingFailedError(str(exc) or "Ticket could not be priced") from exc
        return self._enrollments.create(
            Enrollment(
                id=EnrollmentId(uuid.uuid4()),
                event_id=event.id,
                participant=participant,
                quantity=quantity,
                ticket=ticket,
                amount_due=amount,
                created_at=self._clock(),
            )
        )

    # Cancellation

    @returns_result
    def cancel(
        self, enrollment_id: EnrollmentId | str, actor: Actor, reason: str = ""
    ) -> CancellationOutcome:
        """Cancel an enrollment, free its capacity and notify waitlisted entrants."""
        enrollment = self._get_enrollment(parse_id(EnrollmentId, enrollment_id, "enrollment_id"))
        if not enrollment.is_active:
            raise AlreadyCancelledError(str(enrollment.id))
        if not (actor.is_admin or actor.owns(enrollment.participant)):
            self._logger.warning(
                "unauthorized_cancellation",
                enrollment_id=str(enrollment.id),
                actor=actor.label,
            )
            raise NotAuthorizedError()

        cancellation = Cancellation(
            actor=actor.label,
            reason=(reason or "").strip(),
            cancelled_at=self._clock(),
        )
        # Only the caller that wins the status transition releases capacity.
        if not self._enrollments.mark_cancelled(enrollment.id, cancellation):
            raise AlreadyCancelledError(str(enrollment.id))
        self._leave_waitlists(enrollment)
        self._ledger.release(enrollment.scope, enrollment.quantity)

        released_sessions = self._release_sessions(enrollment)
        notified = self._waitlist.process(enrollment.scope, enrollment.quantity)

        cancelled = enrollment.cancelled(cancellation)
        self._logger.info(
            "registration_cancelled",
            enrollment_id=str(enrollment.id),
            event_id=str(enrollment.event_id),
            actor=cancellation.actor,
            reason=cancellation.reason or "Not provided",
            notified=len(notified),
        )
        self._bus.publish(EnrollmentCancelled(enrollment=cancelled))
        for entry in notified:
            self._bus.publish(WaitlistEntryNotified(entry=entry))
        return CancellationOutcome(
            enrollment=cancelled,
            notified=tuple(notified),
            released_sessions=tuple(released_sessions),
        )

    def _leave_waitlists(self, enrollment: Enrollment) -> None:
        """Drop the participant from every queue of the event they no longer attend."""
        sessions = self._events.get_sessions_for_event(enrollment.event_id)
        for scope in [enrollment.scope, *(session.scope for session in sessions)]:
            self._waitlist.discard(scope, enrollment.participant)

    def _release_sessions(self, enrollment: Enrollment) -> list[SessionId]:
        released = []
        for session_enrollment in self._session_enrollments.list_for_enrollment(enrollment.id):
            session_id = session_enrollment.session_id
            if not self._session_enrollments.delete(session_id, enrollment.id):
                continue
            scope = Scope.for_session(enrollment.event_id, session_id)
            self._ledger.release(scope, 1)
            released.append(session_id)
            self._bus.publish(
                SessionEnrollmentCancelled(session_id=session_id, enrollment_id=enrollment.id)
            )
            for entry in self._waitlist.process(scope, 1):
                self._bus.publish(WaitlistEntryNotified(entry=entry))
        return released

    @returns_result
    def can_cancel(self, enrollment_id: EnrollmentId | str) -> CancellationEligibility:
        enrollment = self._get_enrollment(parse_id(EnrollmentId, enrollment_id, "enrollment_id"))
        if not enrollment.is_active:
            return CancellationEligibility(False, "Registration is already cancelled")

        event = self._events.get_event(enrollment.event_id)
        if event is None:
            return CancellationEligibility(True)
        now = self._clock()
        if event.starts_at and event.starts_at <= now:
            return CancellationEligibility(False, "Cannot cancel after the event has started")
        deadline = event.cancellation_deadline
        if deadline is None and event.starts_at and self._settings.cancellation_cutoff:
            deadline = event.starts_at - self._settings.cancellation_cutoff
        if deadline and deadline <= now:
            return CancellationEligibility(False, "Cancellation deadline has passed")
        return CancellationEligibility(True)

    # Payment pass-through

    @returns_result
    def confirm_payment(self, enrollment_id: EnrollmentId | str, reference: str = "") -> Enrollment:
        enrollment = self._get_enrollment(parse_id(EnrollmentId, enrollment_id, "enrollment_id"))
        if not enrollment.is_active:
            raise AlreadyCancelledError(str(enrollment.id))
        reference = reference.strip() or None
        if not self._enrollments.set_payment(enrollment.id, PaymentStatus.COMPLETED, reference):
            raise EnrollmentNotFoundError(str(enrollment.id))
        confirmed = self._get_enrollment(enrollment.id)
        self._logger.info(
            "payment_confirmed",
            enrollment_id=str(enrollment.id),
            reference=reference,
        )
        self._bus.publish(PaymentConfirmed(enrollment=confirmed, amount=confirmed.amount_due))
        return confirmed

    # Queries

    @returns_result
    def get_enrollment(self, enrollment_id: EnrollmentId | str) -> Enrollment:
        return self._get_enrollment(parse_id(EnrollmentId, enrollment_id, "enrollment_id"))

    @returns_result
    def list_event_enrollments(
        self,
        event_id: EventId | str,
        status: EnrollmentStatus | str | None = EnrollmentStatus.ACTIVE,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Enrollment]:
        event_id = parse_id(EventId, event_id, "event_id")
        if isinstance(status, str):
            try:
                status = EnrollmentStatus(status)
            except ValueError as exc:
                raise InvalidInputError("Invalid registration status", "status") from exc
        return self._enrollments.list_for_event(event_id, status, limit=limit, offset=offset)

    @returns_result
    def list_participant_enrollments(
        self, user_ref: str | None = None, email: str | None = None
    ) -> list[Enrollment]:
        if not user_ref and not email:
            raise InvalidInputError("An account reference or email is required")
        return self._enrollments.list_for_participant(user_ref, email)

    @returns_result
    def export_enrollments_csv(self, event_id: EventId | str) -> str:
        """Render the event's active enrollments as CSV with a header row."""
        event_id = parse_id(EventId, event_id, "event_id")
        enrollments = self._enrollments.list_for_event(event_id, limit=None)
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADERS)
        for enrollment in enrollments:
            participant = enrollment.participant
            writer.writerow(
                [
                    str(enrollment.id),
                    participant.first_name,
                    participant.last_name,
                    participant.email,
                    enrollment.ticket.ticket_type,
                    enrollment.quantity,
                    enrollment.ticket.promo_code or "",
                    str(enrollment.amount_due),
                    enrollment.payment_status.value,
                    enrollment.payment_reference or "",
                    enrollment.created_at.isoformat(),
                    enrollment.status.value,
                    enrollment.ticket.special_requirements or "",
                ]
            )
        self._logger.info("registrations_exported", event_id=str(event_id), count=len(enrollments))
        return output.getvalue()

    @returns_result
    def statistics(self, event_id: EventId | str) -> EnrollmentStatistics:
        event_id = parse_id(EventId, event_id, "event_id")
        enrollments = self._enrollments.list_for_event(event_id, limit=None)
        by_ticket_type: Counter[str] = Counter()
        revenue = Decimal("0.00")
        payments = Counter(e.payment_status for e in enrollments)
        for enrollment in enrollments:
            by_ticket_type[enrollment.ticket.ticket_type] += enrollment.quantity
            revenue += enrollment.amount_due.amount
        return EnrollmentStatistics(
            total=len(enrollments),
            seats=sum(e.quantity for e in enrollments),
            by_ticket_type=dict(by_ticket_type),
            total_revenue=Money(revenue),
            payments_pending=payments[PaymentStatus.PENDING],
            payments_completed=payments[PaymentStatus.COMPLETED],
        )

    # Capacity and waitlist

    @returns_result
    def get_capacity(self, event_id: EventId | str) -> CapacitySnapshot:
        event = self._lookup_event(event_id)
        return self._ledger.peek(event.scope, event.capacity)

    @returns_result
    def get_waitlist(self, event_id: EventId | str) -> list[WaitlistEntry]:
        return self._waitlist.entries(self._lookup_event(event_id).scope)

    @returns_result
    def get_position(self, event_id: EventId | str, email: str) -> int:
        position = self._waitlist.position_of(self._lookup_event(event_id).scope, email)
        if position is None:
            raise WaitlistEntryNotFoundError(email)
        return position

    @returns_result
    def waitlist_count(self, event_id: EventId | str) -> int:
        return self._waitlist.count(self._lookup_event(event_id).scope)

    @returns_result
    def remove_from_waitlist(self, entry_id: WaitlistEntryId | str) -> WaitlistEntry:
        return self._waitlist.remove(parse_id(WaitlistEntryId, entry_id, "entry_id"))
