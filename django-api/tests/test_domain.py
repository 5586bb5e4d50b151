"""Unit tests for domain primitives.

These test invariants that must hold at construction time.
Run with: pytest tests/test_domain.py -v
"""

import uuid
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from registrations.domain import (
    Actor,
    Capacity,
    CapacitySnapshot,
    EventId,
    Money,
    Participant,
    Result,
    Scope,
    SessionId,
    TimeInterval,
)
from registrations.domain.errors import (
    AlreadyQueuedError,
    ErrorCode,
    ErrorKind,
    EventNotFoundError,
    ScheduleConflictError,
)


class TestMoney:
    """Tests for Money value object."""

    def test_money_accepts_positive_amount(self):
        """Money can be created with positive amount."""
        assert Money(Decimal("19.99")).amount == Decimal("19.99")

    def test_money_accepts_zero(self):
        """Money can be created with zero."""
        assert Money.zero().amount == Decimal("0")

    def test_money_rejects_negative_amount(self):
        """Money raises ValueError for negative amount."""
        with pytest.raises(ValueError):
            Money(Decimal("-1"))

    def test_money_str_format(self):
        """Money string representation is formatted to 2 decimal places."""
        assert str(Money(Decimal("5"))) == "5.00"


class TestCapacity:
    """Tests for Capacity value object."""

    def test_capacity_accepts_positive_value(self):
        assert Capacity(50).value == 50

    def test_capacity_accepts_zero(self):
        assert Capacity(0).value == 0

    def test_capacity_rejects_negative_value(self):
        """Capacity raises ValueError for negative value."""
        with pytest.raises(ValueError):
            Capacity(-1)


class TestEventId:
    """Tests for EventId value object."""

    def test_from_string_valid_uuid(self):
        """EventId.from_string parses valid UUID."""
        raw = uuid.uuid4()
        assert EventId.from_string(str(raw)) == EventId(raw)

    def test_from_string_invalid_uuid(self):
        """EventId.from_string raises ValueError for invalid UUID."""
        with pytest.raises(ValueError):
            EventId.from_string("not-a-uuid")


class TestScope:
    def test_event_and_session_keys_differ(self):
        event_id = EventId(uuid.uuid4())
        session_id = SessionId(uuid.uuid4())
        event_scope = Scope.for_event(event_id)
        session_scope = Scope.for_session(event_id, session_id)

        assert event_scope.key == f"event:{event_id}"
        assert session_scope.key == f"event:{event_id}/session:{session_id}"
        assert not event_scope.is_session
        assert session_scope.is_session


class TestParticipant:
    """Tests for Participant identity."""

    def test_email_is_normalized(self):
        participant = Participant(email="  Ada@Example.COM ", first_name="Ada", last_name="Lovelace")
        assert participant.email == "ada@example.com"

    def test_rejects_email_without_at(self):
        with pytest.raises(ValueError):
            Participant(email="nobody", first_name="No", last_name="Body")

    def test_matches_by_email_or_user_ref(self):
        a = Participant(email="a@example.com", first_name="A", last_name="A", user_ref="u1")
        same_email = Participant(email="A@example.com", first_name="B", last_name="B")
        same_account = Participant(email="other@example.com", first_name="C", last_name="C", user_ref="u1")
        stranger = Participant(email="x@example.com", first_name="X", last_name="X", user_ref="u2")

        assert a.matches(same_email)
        assert a.matches(same_account)
        assert not a.matches(stranger)


class TestActor:
    def test_owner_by_email_is_case_insensitive(self):
        participant = Participant(email="ada@example.com", first_name="Ada", last_name="L")
        assert Actor(email="ADA@example.com").owns(participant)
        assert not Actor(email="grace@example.com").owns(participant)

    def test_admin_label(self):
        assert Actor(user_ref="u9", is_admin=True).label == "admin:u9"
        assert Actor().label == "anonymous"


class TestTimeInterval:
    """Half-open interval parsing and overlap."""

    def test_parse_accepts_iso_strings(self):
        interval = TimeInterval.parse("2026-05-01T10:00:00+00:00", "2026-05-01T11:00:00+00:00")
        assert interval == TimeInterval(
            datetime(2026, 5, 1, 10, tzinfo=UTC), datetime(2026, 5, 1, 11, tzinfo=UTC)
        )

    @pytest.mark.parametrize("start,end", [(None, "2026-05-01T11:00:00"), ("garbage", "2026-05-01T11:00:00"), ("", "")])
    def test_parse_returns_none_for_unusable_values(self, start, end):
        assert TimeInterval.parse(start, end) is None

    def test_touching_intervals_do_not_overlap(self):
        ten, eleven, noon = (datetime(2026, 5, 1, h, tzinfo=UTC) for h in (10, 11, 12))
        assert not TimeInterval(ten, eleven).overlaps(TimeInterval(eleven, noon))


class TestCapacitySnapshot:
    def test_remaining_is_floored_at_zero(self):
        scope = Scope.for_event(EventId(uuid.uuid4()))
        assert CapacitySnapshot(scope, total=3, used=5).remaining == 0

    def test_unbounded_admits_anything(self):
        snapshot = CapacitySnapshot(Scope.for_event(EventId(uuid.uuid4())), total=None, used=10_000)
        assert snapshot.is_unbounded
        assert snapshot.remaining is None
        assert snapshot.can_admit(1_000)


class TestErrorsAndResult:
    """Domain errors carry a kind, a code and a user-safe message."""

    def test_error_kind_and_code(self):
        error = EventNotFoundError("abc")
        assert error.kind is ErrorKind.NOT_FOUND
        assert error.code is ErrorCode.EVENT_NOT_FOUND
        assert error.event_id == "abc"

    def test_conflict_message_names_the_other_session(self):
        error = ScheduleConflictError("s1", "Keynote")
        assert error.message == "Time conflict with: Keynote"

    def test_already_queued_position_can_be_filled_in(self):
        error = AlreadyQueuedError("event:x")
        error.position = 3
        assert error.position == 3

    def test_result_unwrap(self):
        assert Result.success(5).unwrap() == 5
        failed = Result.failure(EventNotFoundError("abc"))
        assert not failed.ok
        assert failed.code is ErrorCode.EVENT_NOT_FOUND
        with pytest.raises(EventNotFoundError):
            failed.unwrap()
