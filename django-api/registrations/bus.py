"""Explicit event bus for domain events.

Each bus owns its own ``django.dispatch.Signal`` per event type, so there is
no module-level dispatch state: services publish on the bus they were given
and subscribers register on that same instance. Subscribers to a base class
receive every subclass event.
"""

import threading
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from django.dispatch import Signal

from registrations.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent)

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        self._lock = threading.Lock()
        self._signals: dict[type[DomainEvent], Signal] = {}

    def _signal_for(self, event_type: type[DomainEvent]) -> Signal:
        with self._lock:
            signal = self._signals.get(event_type)
            if signal is None:
                signal = self._signals[event_type] = Signal()
            return signal

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unsubscribes it."""

        def receiver(sender: type[DomainEvent], event: E, **kwargs: Any) -> None:
            handler(event)

        signal = self._signal_for(event_type)
        signal.connect(receiver, weak=False)

        def unsubscribe() -> None:
            signal.disconnect(receiver)

        return unsubscribe

    def publish(self, event: DomainEvent) -> None:
        """Deliver ``event`` to every subscriber; handler failures are logged only."""
        for event_type in type(event).__mro__:
            if not (isinstance(event_type, type) and issubclass(event_type, DomainEvent)):
                continue
            signal = self._signals.get(event_type)
            if signal is None:
                continue
            for receiver, response in signal.send_robust(sender=type(event), event=event):
                if isinstance(response, Exception):
                    self._logger.error(
                        "domain_event_handler_failed",
                        event_type=type(event).__name__,
                        handler=getattr(receiver, "__qualname__", repr(receiver)),
                        exc_info=response,
                    )
