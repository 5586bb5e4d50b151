"""Shared plumbing for the public service operations."""

import functools
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Concatenate, ParamSpec, TypeVar

import structlog

from registrations.bus import EventBus
from registrations.domain import Participant, Scope, WaitlistEntry
from registrations.domain.errors import (
    AlreadyQueuedError,
    DomainError,
    InvalidInputError,
    PersistenceError,
)
from registrations.domain.events import EntrantWaitlisted
from registrations.domain.results import Result
from registrations.stores.interfaces import StoreError

if TYPE_CHECKING:
    from registrations.services.waitlist_queue import WaitlistQueue

P = ParamSpec("P")
T = TypeVar("T")
I = TypeVar("I")
S = TypeVar("S", bound="LoggingService")


class LoggingService:
    """Base for services that receive their logger by injection."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(type(self).__module__)


def returns_result(
    method: Callable[Concatenate[S, P], T],
) -> Callable[Concatenate[S, P], Result[T]]:
    """Turn domain errors into failed Results and hide storage failures.

    Rejections are expected outcomes and logged at info. Storage failures
    are logged with the full traceback and surface as a generic
    PersistenceError.
    """

    @functools.wraps(method)
    def wrapper(self: S, *args: P.args, **kwargs: P.kwargs) -> Result[T]:
        try:
            return Result.success(method(self, *args, **kwargs))
        except DomainError as exc:
            self._logger.info(
                "operation_rejected",
                operation=method.__name__,
                code=exc.code.value,
                kind=exc.kind.value,
            )
            return Result.failure(exc)
        except StoreError:
            self._logger.exception("persistence_failure", operation=method.__name__)
            return Result.failure(PersistenceError())

    return wrapper


def parse_id(id_type: type[I], value: Any, field: str) -> I:
    """Accept an id object or its string form; malformed ids are input errors."""
    if isinstance(value, id_type):
        return value
    try:
        return id_type.from_string(str(value))  # type: ignore[attr-defined]
    except ValueError as exc:
        raise InvalidInputError(f"Invalid {field} format", field) from exc


def enqueue_entrant(
    queue: "WaitlistQueue", bus: EventBus, scope: Scope, participant: Participant
) -> WaitlistEntry:
    """Queue a participant who did not fit, reporting an existing position on repeat."""
    try:
        entry = queue.enqueue(scope, participant)
    except AlreadyQueuedError as exc:
        if exc.position is None:
            exc.position = queue.position_of(scope, participant.email, participant.user_ref)
        raise
    bus.publish(EntrantWaitlisted(entry=entry))
    return entry
