"""
Slot allocation.

Finds the first free interval of a given duration inside an open interval,
scanning a fixed step grid first and then packing tightly after the last
booking.
"""

from typing import Iterable

from barberflow.core.errors import ValidationError
from barberflow.scheduling.records import Interval

DEFAULT_STEP_MINUTES = 15


class _NoSlotAvailable:
    """Expected outcome when the day has no room; falsy so callers can test it."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NO_SLOT_AVAILABLE'


NO_SLOT_AVAILABLE = _NoSlotAvailable()


def is_free(candidate: Interval, booked: Iterable[Interval]) -> bool:
    return not any(candidate.overlaps(existing) for existing in booked)


def find_next_slot(
    open_interval: Interval,
    booked: Iterable[Interval],
    duration: int,
    earliest_start: int,
    step: int = DEFAULT_STEP_MINUTES,
) -> Interval | _NoSlotAvailable:
    if duration <= 0:
        raise ValidationError('Service duration must be positive.')
    if step <= 0:
        raise ValidationError('Slot step must be positive.')

    booked_intervals = sorted(booked, key=lambda interval: (interval.start, interval.end))
    first_candidate = max(earliest_start, open_interval.start)

    candidate_start = first_candidate
    while candidate_start + duration <= open_interval.end:
        candidate = Interval(start=candidate_start, end=candidate_start + duration)
        if is_free(candidate, booked_intervals):
            return candidate
        candidate_start += step

    # Grid scan can step over a gap that ends off-grid; try right after the last booking.
    last_booked_end = max((interval.end for interval in booked_intervals), default=open_interval.start)
    packed_start = max(first_candidate, last_booked_end)
    if packed_start + duration <= open_interval.end:
        candidate = Interval(start=packed_start, end=packed_start + duration)
        if is_free(candidate, booked_intervals):
            return candidate

    return NO_SLOT_AVAILABLE
