"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from django.utils.dateparse import parse_datetime


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class SessionId:
    """Unique identifier for a Session."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class EnrollmentId:
    """Unique identifier for an Enrollment."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class WaitlistEntryId:
    """Unique identifier for a WaitlistEntry."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Price representation with validation."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def zero(cls) -> Self:
        return cls(amount=Decimal("0.00"))

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class Scope:
    """The unit over which capacity and waitlisting are tracked.

    A scope is either a whole event (``session_id`` is None) or one session
    within it. ``key`` is the stable string used by stores to index counters
    and waitlist entries.
    """

    event_id: EventId
    session_id: SessionId | None = None

    @classmethod
    def for_event(cls, event_id: EventId) -> Self:
        return cls(event_id=event_id)

    @classmethod
    def for_session(cls, event_id: EventId, session_id: SessionId) -> Self:
        return cls(event_id=event_id, session_id=session_id)

    @property
    def is_session(self) -> bool:
        return self.session_id is not None

    @property
    def key(self) -> str:
        if self.session_id is None:
            return f"event:{self.event_id}"
        return f"event:{self.event_id}/session:{self.session_id}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Participant:
    """Identity of someone enrolling: an optional account plus contact details.

    Emails are compared case-insensitively, so they are normalized here.
    """

    email: str
    first_name: str
    last_name: str
    user_ref: str | None = None

    def __post_init__(self) -> None:
        email = (self.email or "").strip().lower()
        if "@" not in email:
            raise ValueError("Participant email is invalid")
        object.__setattr__(self, "email", email)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def matches(self, other: "Participant") -> bool:
        """Same person, by account reference or by email."""
        if self.user_ref and other.user_ref and self.user_ref == other.user_ref:
            return True
        return self.email == other.email


@dataclass(frozen=True)
class Actor:
    """Whoever performs an operation such as a cancellation."""

    user_ref: str | None = None
    email: str | None = None
    is_admin: bool = False

    @property
    def label(self) -> str:
        if self.is_admin:
            return f"admin:{self.user_ref or self.email or 'unknown'}"
        return self.user_ref or self.email or "anonymous"

    def owns(self, participant: Participant) -> bool:
        if self.user_ref and participant.user_ref and self.user_ref == participant.user_ref:
            return True
        return bool(self.email) and self.email.strip().lower() == participant.email


def coerce_datetime(value: object) -> datetime | None:
    """Best-effort conversion of a stored instant; None when unusable."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return parse_datetime(value)
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class TimeInterval:
    """Half-open time range [start, end)."""

    start: datetime
    end: datetime

    @classmethod
    def parse(cls, start: object, end: object) -> Self | None:
        """Build an interval from raw values, or None if either is unusable."""
        parsed_start = coerce_datetime(start)
        parsed_end = coerce_datetime(end)
        if parsed_start is None or parsed_end is None:
            return None
        return cls(start=parsed_start, end=parsed_end)

    def overlaps(self, other: "TimeInterval") -> bool:
        # Touching boundaries do not overlap.
        return self.start < other.end and self.end > other.start
