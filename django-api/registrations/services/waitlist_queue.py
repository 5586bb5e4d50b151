"""Waitlist queue - fair, gap-free FIFO ordering of entrants per scope."""

import structlog

from registrations.domain import Participant, Scope, WaitlistEntry, WaitlistEntryId
from registrations.domain.errors import NotFoundError, WaitlistEntryNotFoundError
from registrations.services.base import LoggingService
from registrations.stores.interfaces import WaitlistStore


class WaitlistQueue(LoggingService):
    """Positions are always exactly 1..N within a scope.

    Position assignment and renumbering are serialized per scope by the
    store. Processing the queue only marks entrants as notified: turning a
    notified entrant into an enrollment takes a fresh registration call.
    """

    def __init__(
        self, store: WaitlistStore, logger: structlog.stdlib.BoundLogger | None = None
    ) -> None:
        super().__init__(logger)
        self._store = store

    def enqueue(self, scope: Scope, participant: Participant) -> WaitlistEntry:
        """Append ``participant`` to the scope's queue.

        Raises:
            AlreadyQueuedError: If the participant is already queued for the scope.
            ScopeNotFoundError: If the scope has no capacity counter.
        """
        entry = self._store.append(scope, participant)
        self._logger.info(
            "waitlist_enqueued",
            scope=scope.key,
            entry_id=str(entry.id),
            position=entry.position,
        )
        return entry

    def remove(self, entry_id: WaitlistEntryId) -> WaitlistEntry:
        """Delete an entry and close the gap it leaves.

        Raises:
            WaitlistEntryNotFoundError: If no such entry exists.
        """
        removed = self._store.delete_and_renumber(entry_id)
        if removed is None:
            raise WaitlistEntryNotFoundError(str(entry_id))
        self._logger.info(
            "waitlist_removed",
            scope=removed.scope.key,
            entry_id=str(entry_id),
            position=removed.position,
        )
        return removed

    def discard(self, scope: Scope, participant: Participant) -> WaitlistEntry | None:
        """Remove every entry held by the participant (e.g. after admission).

        Returns the first entry removed, or None if they were not queued.
        """
        first = None
        while True:
            entry = self._store.find(scope, participant.email, participant.user_ref)
            if entry is None:
                return first
            try:
                removed = self.remove(entry.id)
            except NotFoundError:
                # Removed concurrently.
                continue
            first = first or removed

    def process(self, scope: Scope, spots_available: int) -> list[WaitlistEntry]:
        """Mark the next ``spots_available`` un-notified entrants as notified."""
        notified = self._store.claim_unnotified(scope, spots_available)
        if notified:
            self._logger.info(
                "waitlist_processed",
                scope=scope.key,
                spots_available=spots_available,
                notified=len(notified),
            )
        return notified

    def position_of(self, scope: Scope, email: str, user_ref: str | None = None) -> int | None:
        entry = self._store.find(scope, email, user_ref)
        return entry.position if entry else None

    def entries(self, scope: Scope) -> list[WaitlistEntry]:
        return self._store.list_entries(scope)

    def count(self, scope: Scope) -> int:
        return self._store.count(scope)
