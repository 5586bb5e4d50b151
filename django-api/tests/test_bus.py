"""Unit tests for the EventBus.

Run with: pytest tests/test_bus.py -v
"""

import uuid
from datetime import UTC, datetime

from registrations.bus import EventBus
from registrations.domain import EnrollmentId, SessionId
from registrations.domain.events import (
    DomainEvent,
    SessionEnrollmentAdmitted,
    SessionEnrollmentCancelled,
)
from registrations.domain.models import SessionEnrollment


def cancelled_event() -> SessionEnrollmentCancelled:
    return SessionEnrollmentCancelled(
        session_id=SessionId(uuid.uuid4()), enrollment_id=EnrollmentId(uuid.uuid4())
    )


class TestEventBus:
    def test_delivers_to_subscribers_of_the_type(self):
        bus = EventBus()
        received = []
        bus.subscribe(SessionEnrollmentCancelled, received.append)
        event = cancelled_event()

        bus.publish(event)
        bus.publish(
            SessionEnrollmentAdmitted(
                session_enrollment=SessionEnrollment(
                    session_id=event.session_id,
                    enrollment_id=event.enrollment_id,
                    created_at=datetime(2026, 5, 1, tzinfo=UTC),
                )
            )
        )

        assert received == [event]

    def test_base_class_subscribers_receive_everything(self):
        bus = EventBus()
        received = []
        bus.subscribe(DomainEvent, received.append)

        bus.publish(cancelled_event())
        bus.publish(cancelled_event())

        assert len(received) == 2

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(SessionEnrollmentCancelled, received.append)

        unsubscribe()
        bus.publish(cancelled_event())

        assert received == []

    def test_buses_are_isolated(self):
        first, second = EventBus(), EventBus()
        received = []
        first.subscribe(DomainEvent, received.append)

        second.publish(cancelled_event())

        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def explode(event):
            raise RuntimeError("boom")

        bus.subscribe(SessionEnrollmentCancelled, explode)
        bus.subscribe(SessionEnrollmentCancelled, received.append)

        bus.publish(cancelled_event())

        assert len(received) == 1
