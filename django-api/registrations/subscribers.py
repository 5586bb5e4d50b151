"""Bus subscribers forwarding domain events to the external collaborators."""

from collections.abc import Callable

from registrations.bus import EventBus
from registrations.collaborators import Notifier, UserDirectory
from registrations.domain.events import (
    EnrollmentAdmitted,
    EnrollmentCancelled,
    EntrantWaitlisted,
    PaymentConfirmed,
    WaitlistEntryNotified,
)


def connect_notifier(bus: EventBus, notifier: Notifier) -> list[Callable[[], None]]:
    """Route enrollment and waitlist events to ``notifier``."""
    return [
        bus.subscribe(EnrollmentAdmitted, lambda e: notifier.notify_pending(e.enrollment)),
        bus.subscribe(PaymentConfirmed, lambda e: notifier.notify_confirmed(e.enrollment)),
        bus.subscribe(EnrollmentCancelled, lambda e: notifier.notify_cancelled(e.enrollment)),
        bus.subscribe(EntrantWaitlisted, lambda e: notifier.notify_waitlisted(e.entry)),
        bus.subscribe(WaitlistEntryNotified, lambda e: notifier.notify_spot_available(e.entry)),
    ]


def connect_user_directory(bus: EventBus, directory: UserDirectory) -> list[Callable[[], None]]:
    """Ensure an account exists for every admitted participant and link it."""

    def link_account(event: EnrollmentAdmitted) -> None:
        account_ref = directory.ensure_account(event.enrollment.participant)
        directory.link_enrollment(event.enrollment.id, account_ref)

    return [bus.subscribe(EnrollmentAdmitted, link_account)]
