import random

import pytest

from barberflow.core.errors import ValidationError
from barberflow.scheduling.records import Interval
from barberflow.scheduling.slots import NO_SLOT_AVAILABLE, find_next_slot

OPEN_DAY = Interval(start=9 * 60, end=17 * 60)


def test_find_next_slot_steps_past_overlapping_booking() -> None:
    booked = [Interval(start=600, end=630)]

    slot = find_next_slot(OPEN_DAY, booked, 30, earliest_start=620)

    assert slot == Interval(start=635, end=665)


def test_find_next_slot_starts_at_opening_time_when_floor_is_earlier() -> None:
    slot = find_next_slot(OPEN_DAY, [], 45, earliest_start=0)

    assert slot == Interval(start=540, end=585)


def test_find_next_slot_packs_after_last_booking_when_grid_misses_gap() -> None:
    open_interval = Interval(start=540, end=600)
    booked = [Interval(start=540, end=550)]

    slot = find_next_slot(open_interval, booked, 50, earliest_start=540)

    assert slot == Interval(start=550, end=600)


def test_find_next_slot_reports_no_slot_when_day_is_full() -> None:
    booked = [Interval(start=540, end=1020)]

    slot = find_next_slot(OPEN_DAY, booked, 15, earliest_start=540)

    assert slot is NO_SLOT_AVAILABLE
    assert not slot


def test_find_next_slot_reports_no_slot_when_floor_is_past_closing() -> None:
    assert find_next_slot(OPEN_DAY, [], 30, earliest_start=1000) is NO_SLOT_AVAILABLE


@pytest.mark.parametrize(('duration', 'step'), [(0, 15), (-5, 15), (30, 0)])
def test_find_next_slot_rejects_non_positive_sizes(duration: int, step: int) -> None:
    with pytest.raises(ValidationError):
        find_next_slot(OPEN_DAY, [], duration, earliest_start=540, step=step)


def test_find_next_slot_never_overlaps_bookings_and_stays_open() -> None:
    generator = random.Random(20260105)

    for _ in range(200):
        booked = []
        for _ in range(generator.randint(0, 8)):
            start = generator.randrange(OPEN_DAY.start, OPEN_DAY.end - 10, 5)
            booked.append(Interval(start=start, end=start + generator.choice([10, 15, 30, 45, 60])))
        duration = generator.choice([10, 15, 20, 30, 45, 60, 90])
        earliest = generator.randrange(8 * 60, 17 * 60)

        slot = find_next_slot(OPEN_DAY, booked, duration, earliest_start=earliest)

        if slot is NO_SLOT_AVAILABLE:
            continue
        assert slot.duration == duration
        assert OPEN_DAY.start <= slot.start and slot.end <= OPEN_DAY.end
        assert slot.start >= earliest
        assert not any(slot.overlaps(existing) for existing in booked)
