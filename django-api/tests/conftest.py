"""Pytest configuration and shared fixtures."""

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from registrations.bus import EventBus
from registrations.collaborators import (
    CatalogEligibility,
    Notifier,
    Pricing,
    PricingError,
    UserDirectory,
)
from registrations.conf import RegistrationSettings
from registrations.domain import (
    Capacity,
    Event,
    EventId,
    EventStatus,
    Money,
    Session,
    SessionId,
)
from registrations.domain.events import DomainEvent
from registrations.domain.results import RegistrationRequest
from registrations.services.capacity_ledger import CapacityLedger
from registrations.services.registration_service import RegistrationService
from registrations.services.session_registration_service import SessionRegistrationService
from registrations.services.waitlist_queue import WaitlistQueue
from registrations.stores.memory_store import (
    InMemoryCapacityStore,
    InMemoryEnrollmentStore,
    InMemoryEventStore,
    InMemorySessionEnrollmentStore,
    InMemoryWaitlistStore,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


class FakePricing(Pricing):
    """Flat 25.00 per ticket; the "invalid" ticket type cannot be priced."""

    unit_price = Decimal("25.00")

    def quote(self, event_id, ticket, quantity):
        if ticket.ticket_type == "invalid":
            raise PricingError("Invalid ticket type")
        if ticket.ticket_type == "free":
            return Money.zero()
        return Money(self.unit_price * quantity)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    def notify_pending(self, enrollment):
        self.sent.append(("pending", enrollment.participant.email))

    def notify_confirmed(self, enrollment):
        self.sent.append(("confirmed", enrollment.participant.email))

    def notify_cancelled(self, enrollment):
        self.sent.append(("cancelled", enrollment.participant.email))

    def notify_waitlisted(self, entry):
        self.sent.append(("waitlisted", entry.participant.email))

    def notify_spot_available(self, entry):
        self.sent.append(("spot_available", entry.participant.email))


class FakeUserDirectory(UserDirectory):
    def __init__(self):
        self.accounts = {}
        self.links = []

    def ensure_account(self, participant):
        return self.accounts.setdefault(participant.email, f"user-{len(self.accounts) + 1}")

    def link_enrollment(self, enrollment_id, account_ref):
        self.links.append((enrollment_id, account_ref))


class Clock:
    """Settable clock shared by the services under test."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(bus) -> list[DomainEvent]:
    """Every domain event published on the bus, in order."""
    events: list[DomainEvent] = []
    bus.subscribe(DomainEvent, events.append)
    return events


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def capacity_store() -> InMemoryCapacityStore:
    return InMemoryCapacityStore()


@pytest.fixture
def waitlist_store(capacity_store, clock) -> InMemoryWaitlistStore:
    return InMemoryWaitlistStore(capacity_store, clock=clock)


@pytest.fixture
def enrollment_store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def session_enrollment_store() -> InMemorySessionEnrollmentStore:
    return InMemorySessionEnrollmentStore()


@pytest.fixture
def ledger(capacity_store) -> CapacityLedger:
    return CapacityLedger(capacity_store)


@pytest.fixture
def waitlist(waitlist_store) -> WaitlistQueue:
    return WaitlistQueue(waitlist_store)


@pytest.fixture
def pricing() -> FakePricing:
    return FakePricing()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def user_directory() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def registration_settings() -> RegistrationSettings:
    return RegistrationSettings(max_group_size=5, cancellation_cutoff=timedelta(hours=24))


@pytest.fixture
def registration_service(
    event_store,
    enrollment_store,
    session_enrollment_store,
    ledger,
    waitlist,
    pricing,
    bus,
    registration_settings,
    clock,
) -> RegistrationService:
    return RegistrationService(
        events=event_store,
        enrollments=enrollment_store,
        session_enrollments=session_enrollment_store,
        ledger=ledger,
        waitlist=waitlist,
        eligibility=CatalogEligibility(clock),
        pricing=pricing,
        bus=bus,
        settings=registration_settings,
        clock=clock,
    )


@pytest.fixture
def session_service(
    event_store, enrollment_store, session_enrollment_store, ledger, waitlist, bus, clock
) -> SessionRegistrationService:
    return SessionRegistrationService(
        events=event_store,
        enrollments=enrollment_store,
        session_enrollments=session_enrollment_store,
        ledger=ledger,
        waitlist=waitlist,
        bus=bus,
        clock=clock,
    )


@pytest.fixture
def make_event(event_store):
    """Add a published event starting a week from NOW."""

    def _make(capacity: int | None = 10, **overrides) -> Event:
        fields = {
            "id": EventId(uuid.uuid4()),
            "title": "PyCon Workshop Day",
            "status": EventStatus.PUBLISHED,
            "starts_at": NOW + timedelta(days=7),
            "ends_at": NOW + timedelta(days=7, hours=8),
            "capacity": Capacity(capacity) if capacity is not None else None,
        }
        fields.update(overrides)
        return event_store.add_event(Event(**fields))

    return _make


@pytest.fixture
def make_session(event_store):
    """Add a session to an event; times are hours after the event start."""

    def _make(event: Event, start_hour: float, end_hour: float, capacity: int | None = None, **overrides) -> Session:
        fields = {
            "id": SessionId(uuid.uuid4()),
            "event_id": event.id,
            "title": f"Session {start_hour:g}-{end_hour:g}",
            "starts_at": event.starts_at + timedelta(hours=start_hour),
            "ends_at": event.starts_at + timedelta(hours=end_hour),
            "capacity": Capacity(capacity) if capacity is not None else None,
        }
        fields.update(overrides)
        return event_store.add_session(Session(**fields))

    return _make


@pytest.fixture
def make_request():
    """Build a RegistrationRequest for an event with sensible defaults."""

    def _make(event: Event, email: str = "ada@example.com", **overrides) -> RegistrationRequest:
        fields = {
            "event_id": str(event.id),
            "email": email,
            "first_name": "Ada",
            "last_name": "Lovelace",
            "ticket_type": "standard",
        }
        fields.update(overrides)
        return RegistrationRequest(**fields)

    return _make
