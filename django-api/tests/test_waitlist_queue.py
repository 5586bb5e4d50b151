"""Unit tests for WaitlistQueue over the in-memory store.

Run with: pytest tests/test_waitlist_queue.py -v
"""

import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from registrations.domain import EventId, Participant, Scope, WaitlistEntryId
from registrations.domain.errors import (
    AlreadyQueuedError,
    ScopeNotFoundError,
    WaitlistEntryNotFoundError,
)


def person(n: int, user_ref: str | None = None) -> Participant:
    return Participant(email=f"p{n}@example.com", first_name=f"P{n}", last_name="Test", user_ref=user_ref)


@pytest.fixture
def scope(ledger) -> Scope:
    scope = Scope.for_event(EventId(uuid.uuid4()))
    ledger.ensure(scope, 0)
    return scope


def positions(waitlist, scope) -> list[tuple[str, int]]:
    return [(e.participant.email, e.position) for e in waitlist.entries(scope)]


class TestEnqueue:
    def test_positions_are_sequential(self, waitlist, scope):
        entries = [waitlist.enqueue(scope, person(n)) for n in range(1, 4)]
        assert [e.position for e in entries] == [1, 2, 3]

    def test_duplicate_is_rejected_and_count_unchanged(self, waitlist, scope):
        waitlist.enqueue(scope, person(1))
        waitlist.enqueue(scope, person(2))

        with pytest.raises(AlreadyQueuedError) as exc_info:
            waitlist.enqueue(scope, Participant(email="P2@example.com", first_name="x", last_name="y"))

        assert exc_info.value.position == 2
        assert waitlist.count(scope) == 2

    def test_same_account_under_another_email_is_rejected(self, waitlist, scope):
        waitlist.enqueue(scope, person(1, user_ref="u-1"))

        with pytest.raises(AlreadyQueuedError) as exc_info:
            waitlist.enqueue(scope, person(2, user_ref="u-1"))

        assert exc_info.value.position == 1
        assert waitlist.count(scope) == 1
        assert waitlist.position_of(scope, "p2@example.com", user_ref="u-1") == 1

    def test_same_person_may_queue_for_different_scopes(self, waitlist, ledger, scope):
        other = Scope.for_event(EventId(uuid.uuid4()))
        ledger.ensure(other, 0)

        waitlist.enqueue(scope, person(1))

        assert waitlist.enqueue(other, person(1)).position == 1

    def test_unknown_scope(self, waitlist):
        with pytest.raises(ScopeNotFoundError):
            waitlist.enqueue(Scope.for_event(EventId(uuid.uuid4())), person(1))


class TestRemove:
    """Removal closes the gap and keeps FIFO order."""

    def test_remove_from_middle_renumbers(self, waitlist, scope, clock):
        entries = []
        for n in range(1, 5):
            entries.append(waitlist.enqueue(scope, person(n)))
            clock.advance(minutes=1)

        waitlist.remove(entries[1].id)

        assert positions(waitlist, scope) == [
            ("p1@example.com", 1),
            ("p3@example.com", 2),
            ("p4@example.com", 3),
        ]

    def test_contiguity_after_mixed_operations(self, waitlist, scope, clock):
        entries = {}
        for n in range(1, 7):
            entries[n] = waitlist.enqueue(scope, person(n))
            clock.advance(seconds=1)
        waitlist.remove(entries[1].id)
        waitlist.remove(entries[4].id)
        waitlist.enqueue(scope, person(7))
        waitlist.remove(entries[6].id)

        listed = positions(waitlist, scope)

        assert [p for _, p in listed] == list(range(1, len(listed) + 1))
        assert [email for email, _ in listed] == [
            "p2@example.com",
            "p3@example.com",
            "p5@example.com",
            "p7@example.com",
        ]

    def test_remove_unknown_entry(self, waitlist):
        with pytest.raises(WaitlistEntryNotFoundError):
            waitlist.remove(WaitlistEntryId(uuid.uuid4()))

    def test_discard_is_quiet_when_absent(self, waitlist, scope):
        assert waitlist.discard(scope, person(1)) is None

    def test_discard_removes_every_entry_of_the_person(self, waitlist, scope):
        # One entry by email only, one by account; the admitted participant owns both.
        waitlist.enqueue(scope, person(1))
        waitlist.enqueue(scope, person(2, user_ref="u-2"))
        waitlist.enqueue(scope, person(3))

        removed = waitlist.discard(scope, person(1, user_ref="u-2"))

        assert removed.participant.email == "p1@example.com"
        assert positions(waitlist, scope) == [("p3@example.com", 1)]


class TestProcess:
    """Processing notifies, it never admits."""

    def test_notifies_lowest_positions_first(self, waitlist, scope):
        for n in range(1, 4):
            waitlist.enqueue(scope, person(n))

        first = waitlist.process(scope, 2)
        second = waitlist.process(scope, 2)

        assert [e.participant.email for e in first] == ["p1@example.com", "p2@example.com"]
        assert [e.participant.email for e in second] == ["p3@example.com"]
        assert all(e.notified for e in waitlist.entries(scope))
        assert waitlist.count(scope) == 3

    def test_zero_spots_notifies_nobody(self, waitlist, scope):
        waitlist.enqueue(scope, person(1))
        assert waitlist.process(scope, 0) == []


class TestConcurrency:
    def test_concurrent_enqueues_get_distinct_positions(self, waitlist, scope):
        with ThreadPoolExecutor(max_workers=8) as pool:
            entries = list(pool.map(lambda n: waitlist.enqueue(scope, person(n)), range(40)))

        assert sorted(e.position for e in entries) == list(range(1, 41))

    def test_concurrent_removes_and_enqueues_keep_fifo_positions(self, waitlist, scope):
        originals = [waitlist.enqueue(scope, person(n)) for n in range(40)]
        leaving = originals[::2]
        joining = range(100, 120)

        def work(task):
            kind, value = task
            if kind == "remove":
                waitlist.remove(value.id)
            else:
                waitlist.enqueue(scope, person(value))

        tasks = [("remove", e) for e in leaving] + [("enqueue", n) for n in joining]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, tasks))

        listed = positions(waitlist, scope)
        assert [p for _, p in listed] == list(range(1, 41))
        assert [email for email, _ in listed[:20]] == [e.participant.email for e in originals[1::2]]
        assert {email for email, _ in listed[20:]} == {f"p{n}@example.com" for n in joining}

    def test_scopes_are_mutated_in_parallel(self, waitlist, ledger):
        scopes = [Scope.for_event(EventId(uuid.uuid4())) for _ in range(8)]
        for scope in scopes:
            ledger.ensure(scope, 0)

        def fill_and_trim(scope):
            entries = [waitlist.enqueue(scope, person(n)) for n in range(300)]
            for entry in entries[:100]:
                waitlist.remove(entry.id)
            waitlist.process(scope, 10)
            return scope

        with ThreadPoolExecutor(max_workers=8) as pool:
            done = list(pool.map(fill_and_trim, scopes))

        assert done == scopes
        for scope in scopes:
            listed = positions(waitlist, scope)
            assert [p for _, p in listed] == list(range(1, 201))
            assert listed[0] == ("p100@example.com", 1)
