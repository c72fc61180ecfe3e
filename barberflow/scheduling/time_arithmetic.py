import re
from datetime import date, datetime, time, timedelta

from barberflow.core.errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_DISPLAY_TIME_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$')


def time_to_minutes(value: str) -> int:
    """Parse a 12-hour display time such as "09:30 AM" into minutes since midnight."""
    match = _DISPLAY_TIME_PATTERN.match(value or '')
    if not match:
        raise ValidationError(f"Invalid time '{value}'. Expected format 'hh:mm AM'.")

    hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hours <= 12 or minutes > 59:
        raise ValidationError(f"Invalid time '{value}'.")

    if hours == 12:
        hours = 0 if period == 'AM' else 12
    elif period == 'PM':
        hours += 12

    return hours * 60 + minutes


def minutes_to_time(total_minutes: int) -> str:
    """Format minutes since midnight as "hh:mm AM"; values past midnight wrap."""
    if total_minutes < 0:
        raise ValidationError('Minutes since midnight cannot be negative.')

    hours, minutes = divmod(total_minutes % MINUTES_PER_DAY, 60)
    display_hour = 12 if hours % 12 == 0 else hours % 12
    period = 'AM' if hours < 12 else 'PM'
    return f'{display_hour:02d}:{minutes:02d} {period}'


def minutes_of_day(instant: datetime) -> int:
    """Minutes since midnight, rounding a partial minute up."""
    partial = 1 if instant.second or instant.microsecond else 0
    return instant.hour * 60 + instant.minute + partial


def combine(day: date, total_minutes: int) -> datetime:
    return datetime.combine(day, time(0, 0)) + timedelta(minutes=total_minutes)
