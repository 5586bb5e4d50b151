"""Capacity ledger - the sole authority on admitting units into a scope."""

import structlog

from registrations.domain import Capacity, CapacitySnapshot, Scope
from registrations.domain.errors import InvalidInputError, ScopeNotFoundError
from registrations.services.base import LoggingService
from registrations.stores.interfaces import CapacityStore


def _total(capacity: Capacity | int | None) -> int | None:
    if isinstance(capacity, Capacity):
        return capacity.value
    return capacity


class CapacityLedger(LoggingService):
    """Admit/release accounting for events and sessions.

    The check and the reservation happen inside one store operation, so two
    callers racing for the last unit can never both be admitted. Unbounded
    scopes (total None) always admit and track ``used`` for reporting only.
    """

    def __init__(
        self, store: CapacityStore, logger: structlog.stdlib.BoundLogger | None = None
    ) -> None:
        super().__init__(logger)
        self._store = store

    def ensure(self, scope: Scope, capacity: Capacity | int | None) -> CapacitySnapshot:
        """Create the counter on first use; an existing counter is left alone."""
        return self._store.ensure_counter(scope, _total(capacity))

    def provision(self, scope: Scope, capacity: Capacity | int | None) -> CapacitySnapshot:
        """Set a scope's total explicitly.

        Raises:
            InvalidInputError: If the new total is below the units already admitted.
        """
        total = _total(capacity)
        if not self._store.set_total(scope, total):
            raise InvalidInputError("Capacity cannot be lower than current registrations", "total")
        self._logger.info("capacity_provisioned", scope=scope.key, total=total)
        return self.get_capacity(scope)

    def get_capacity(self, scope: Scope) -> CapacitySnapshot:
        """Return (total, used, remaining) for a scope.

        Raises:
            ScopeNotFoundError: If the scope was never provisioned.
        """
        counter = self._store.get_counter(scope)
        if counter is None:
            raise ScopeNotFoundError(scope.key)
        return counter

    def peek(self, scope: Scope, capacity: Capacity | int | None) -> CapacitySnapshot:
        """Read a scope's counter without creating it.

        A scope nobody has touched yet reports ``capacity`` with nothing used.
        """
        counter = self._store.get_counter(scope)
        if counter is None:
            return CapacitySnapshot(scope=scope, total=_total(capacity), used=0)
        return counter

    def try_admit(self, scope: Scope, quantity: int) -> bool:
        if quantity < 1:
            raise InvalidInputError("Quantity must be at least 1", "quantity")
        admitted = self._store.try_increment(scope, quantity)
        self._logger.debug("capacity_admit", scope=scope.key, quantity=quantity, admitted=admitted)
        return admitted

    def release(self, scope: Scope, quantity: int) -> None:
        if quantity < 1:
            return
        self._store.decrement(scope, quantity)
        self._logger.debug("capacity_release", scope=scope.key, quantity=quantity)
