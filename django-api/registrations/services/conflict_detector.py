"""Stateless interval-overlap check for session schedules.

Intervals are half-open: a session ending at 11:00 does not conflict with
one starting at 11:00. Unusable intervals never block a registration; they
are reported through ``ConflictCheck.degraded`` for the caller to log.
"""

from collections.abc import Iterable

from registrations.domain import ConflictCheck, ScheduledSlot


def has_conflict(candidate: ScheduledSlot, existing: Iterable[ScheduledSlot]) -> ConflictCheck:
    """Return the first slot in ``existing`` that overlaps ``candidate``."""
    candidate_interval = candidate.interval
    if candidate_interval is None:
        return ConflictCheck(has_conflict=False, degraded=True, skipped=(candidate.session_id,))

    skipped = []
    for slot in existing:
        interval = slot.interval
        if interval is None:
            skipped.append(slot.session_id)
            continue
        try:
            overlaps = candidate_interval.overlaps(interval)
        except TypeError:
            # Naive and aware datetimes cannot be compared.
            skipped.append(slot.session_id)
            continue
        if overlaps:
            return ConflictCheck(
                has_conflict=True,
                conflicting=slot,
                degraded=bool(skipped),
                skipped=tuple(skipped),
            )
    return ConflictCheck(has_conflict=False, degraded=bool(skipped), skipped=tuple(skipped))
