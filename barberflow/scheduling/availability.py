"""
Availability resolution.

Turns a provider's weekly template and date-level exceptions into the open
interval for a single calendar day.
"""

from datetime import date
from typing import Iterable

from barberflow.core.errors import InvalidScheduleError
from barberflow.scheduling.records import DAYS_OF_WEEK, DayTemplateRecord, Interval, UnavailableDateRecord


def validate_day_template(template: DayTemplateRecord) -> None:
    if template.is_open and template.end_minutes <= template.start_minutes:
        raise InvalidScheduleError(
            f'{template.day}: closing time must be after opening time.'
        )


def resolve_open_interval(
    provider_id: int,
    target_date: date,
    schedule: Iterable[DayTemplateRecord],
    unavailable_dates: Iterable[UnavailableDateRecord],
) -> Interval | None:
    """
    Return the open interval for ``target_date`` or ``None`` when closed.

    The day is closed when its weekday template is missing or not open, or
    when the date is explicitly blocked. Every open template is validated,
    not only the one for the target weekday, so a broken schedule is
    reported regardless of which day is asked for.
    """
    del provider_id

    templates = list(schedule)
    for template in templates:
        validate_day_template(template)

    if any(blocked.date == target_date for blocked in unavailable_dates):
        return None

    weekday_name = DAYS_OF_WEEK[target_date.weekday()]
    day_template = next((template for template in templates if template.day == weekday_name), None)

    if day_template is None or not day_template.is_open:
        return None

    return Interval(start=day_template.start_minutes, end=day_template.end_minutes)
