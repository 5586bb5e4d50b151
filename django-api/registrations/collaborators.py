"""Interfaces of the external collaborators consulted by the services.

Implementations live outside this package, except ``CatalogEligibility``,
the default registration-window policy driven by catalog data.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

from django.utils import timezone

from registrations.domain import (
    Enrollment,
    EnrollmentId,
    Event,
    EventId,
    EventStatus,
    Money,
    Participant,
    TicketDetails,
    WaitlistEntry,
)


class PricingError(Exception):
    """Raised by a Pricing implementation when no quote can be produced."""


class EventEligibility(ABC):
    @abstractmethod
    def is_open(self, event: Event) -> tuple[bool, str]:
        """Return (open, reason_if_closed)."""
        ...


class Pricing(ABC):
    @abstractmethod
    def quote(self, event_id: EventId, ticket: TicketDetails, quantity: int) -> Money:
        """Return the amount due.

        Raises:
            PricingError: If the ticket details cannot be priced.
        """
        ...


class UserDirectory(ABC):
    @abstractmethod
    def ensure_account(self, participant: Participant) -> str:
        """Return the account reference for a participant, creating it if needed."""
        ...

    @abstractmethod
    def link_enrollment(self, enrollment_id: EnrollmentId, account_ref: str) -> None:
        ...


class Notifier(ABC):
    @abstractmethod
    def notify_pending(self, enrollment: Enrollment) -> None:
        ...

    @abstractmethod
    def notify_confirmed(self, enrollment: Enrollment) -> None:
        ...

    @abstractmethod
    def notify_cancelled(self, enrollment: Enrollment) -> None:
        ...

    @abstractmethod
    def notify_waitlisted(self, entry: WaitlistEntry) -> None:
        ...

    @abstractmethod
    def notify_spot_available(self, entry: WaitlistEntry) -> None:
        ...


class CatalogEligibility(EventEligibility):
    """Open when published, registration enabled and inside the window."""

    def __init__(self, clock: Callable[[], datetime] = timezone.now) -> None:
        self._clock = clock

    def is_open(self, event: Event) -> tuple[bool, str]:
        if event.status is not EventStatus.PUBLISHED:
            return False, "Event is not available for registration"
        if not event.registration_enabled:
            return False, "Registration is not available for this event"
        now = self._clock()
        if event.registration_opens_at and event.registration_opens_at > now:
            return False, f"Registration opens on {event.registration_opens_at:%Y-%m-%d %H:%M}"
        if event.registration_closes_at and event.registration_closes_at <= now:
            return False, "Registration has closed"
        return True, ""
