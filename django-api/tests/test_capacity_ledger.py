"""Unit tests for CapacityLedger over the in-memory store.

Run with: pytest tests/test_capacity_ledger.py -v
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from registrations.domain import Capacity, EventId, Scope
from registrations.domain.errors import InvalidInputError, ScopeNotFoundError


@pytest.fixture
def scope() -> Scope:
    return Scope.for_event(EventId(uuid.uuid4()))


class TestProvisioning:
    def test_ensure_creates_counter_once(self, ledger, scope):
        ledger.ensure(scope, Capacity(5))
        ledger.try_admit(scope, 2)

        snapshot = ledger.ensure(scope, Capacity(100))

        assert (snapshot.total, snapshot.used) == (5, 2)

    def test_get_capacity_unknown_scope(self, ledger, scope):
        with pytest.raises(ScopeNotFoundError):
            ledger.get_capacity(scope)

    def test_peek_does_not_create_counter(self, ledger, capacity_store, scope):
        snapshot = ledger.peek(scope, Capacity(5))

        assert (snapshot.total, snapshot.used, snapshot.remaining) == (5, 0, 5)
        assert capacity_store.get_counter(scope) is None

    def test_peek_reads_existing_counter(self, ledger, scope):
        ledger.ensure(scope, 5)
        ledger.try_admit(scope, 2)

        assert ledger.peek(scope, Capacity(100)).used == 2

    def test_provision_cannot_go_below_used(self, ledger, scope):
        ledger.ensure(scope, 4)
        ledger.try_admit(scope, 3)

        with pytest.raises(InvalidInputError):
            ledger.provision(scope, 2)

        assert ledger.provision(scope, 3).remaining == 0


class TestTryAdmit:
    """Admission never pushes used past total."""

    def test_admits_until_full(self, ledger, scope):
        ledger.ensure(scope, 3)

        assert ledger.try_admit(scope, 2)
        assert not ledger.try_admit(scope, 2)
        assert ledger.try_admit(scope, 1)
        assert ledger.get_capacity(scope).remaining == 0

    def test_rejection_leaves_counter_untouched(self, ledger, scope):
        ledger.ensure(scope, 1)

        assert not ledger.try_admit(scope, 2)

        assert ledger.get_capacity(scope).used == 0

    def test_zero_capacity_admits_nobody(self, ledger, scope):
        ledger.ensure(scope, 0)
        assert not ledger.try_admit(scope, 1)

    def test_unbounded_always_admits(self, ledger, scope):
        ledger.ensure(scope, None)

        assert all(ledger.try_admit(scope, 3) for _ in range(100))

        snapshot = ledger.get_capacity(scope)
        assert snapshot.is_unbounded
        assert snapshot.used == 300
        assert snapshot.remaining is None

    def test_rejects_non_positive_quantity(self, ledger, scope):
        ledger.ensure(scope, 3)
        with pytest.raises(InvalidInputError):
            ledger.try_admit(scope, 0)

    def test_unknown_scope(self, ledger, scope):
        with pytest.raises(ScopeNotFoundError):
            ledger.try_admit(scope, 1)


class TestRelease:
    def test_release_frees_units(self, ledger, scope):
        ledger.ensure(scope, 2)
        ledger.try_admit(scope, 2)

        ledger.release(scope, 1)

        assert ledger.try_admit(scope, 1)

    def test_release_floors_at_zero(self, ledger, scope):
        ledger.ensure(scope, 2)
        ledger.try_admit(scope, 1)

        ledger.release(scope, 5)

        assert ledger.get_capacity(scope).used == 0


class TestConcurrency:
    """Racing admits against the same scope."""

    def test_last_unit_goes_to_exactly_one_caller(self, ledger, scope):
        for _ in range(50):
            other = Scope.for_event(EventId(uuid.uuid4()))
            ledger.ensure(other, 1)
            barrier = threading.Barrier(2)

            def admit():
                barrier.wait()
                return ledger.try_admit(other, 1)

            with ThreadPoolExecutor(max_workers=2) as pool:
                outcomes = list(pool.map(lambda _: admit(), range(2)))

            assert sorted(outcomes) == [False, True]
            assert ledger.get_capacity(other).used == 1

    def test_interleaved_admit_and_release_respect_total(self, ledger, scope):
        ledger.ensure(scope, 10)

        def churn(_):
            admitted = 0
            for _ in range(200):
                if ledger.try_admit(scope, 1):
                    admitted += 1
                    assert ledger.get_capacity(scope).used <= 10
                    ledger.release(scope, 1)
            return admitted

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(churn, range(8)))

        assert ledger.get_capacity(scope).used == 0
