"""Engine settings read from ``settings.REGISTRATIONS``."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Self

from django.conf import settings


@dataclass(frozen=True)
class RegistrationSettings:
    max_group_size: int = 10
    cancellation_cutoff: timedelta = timedelta(0)

    def __post_init__(self) -> None:
        if self.max_group_size < 1:
            raise ValueError("max_group_size must be at least 1")

    @classmethod
    def from_django(cls) -> Self:
        conf = getattr(settings, "REGISTRATIONS", {})
        return cls(
            max_group_size=conf.get("MAX_GROUP_SIZE", cls.max_group_size),
            cancellation_cutoff=timedelta(hours=conf.get("CANCELLATION_CUTOFF_HOURS", 0)),
        )
