"""Typed records exchanged between scheduling components.

ORM rows never leave the service layer; every component works on these
records, built by the ``*_record`` mapping functions at the store boundary.
"""

from datetime import date, datetime

from pydantic import BaseModel

from barberflow.models.appointment import Appointment
from barberflow.models.schedule import DayTemplate, UnavailableDate
from barberflow.models.service import Service
from barberflow.models.user import User
from barberflow.scheduling.time_arithmetic import minutes_to_time, time_to_minutes

DAYS_OF_WEEK = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')

UPCOMING = 'upcoming'
CUSTOMER_INITIATED_CHECK_IN = 'customer-initiated-check-in'
PROVIDER_INITIATED_CHECK_IN = 'barber-initiated-check-in'
IN_PROGRESS = 'in-progress'
CUSTOMER_INITIATED_COMPLETION = 'customer-initiated-completion'
PROVIDER_INITIATED_COMPLETION = 'barber-initiated-completion'
COMPLETED = 'completed'
CANCELLED = 'cancelled'
NO_SHOW = 'no-show'

ACTIVE_STATUSES = frozenset({UPCOMING, CUSTOMER_INITIATED_CHECK_IN, PROVIDER_INITIATED_CHECK_IN})
INACTIVE_STATUSES = frozenset({COMPLETED, NO_SHOW})
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED, NO_SHOW})


class Interval(BaseModel):
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: 'Interval') -> bool:
        return self.start < other.end and self.end > other.start


class DayTemplateRecord(BaseModel):
    day: str
    is_open: bool
    start_minutes: int
    end_minutes: int


class UnavailableDateRecord(BaseModel):
    date: date
    reason: str | None = None


class ProviderRecord(BaseModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    notification_token: str | None = None
    is_temporarily_unavailable: bool = False
    unavailable_since: datetime | None = None
    calendar_version: int = 0

    class Config:
        from_attributes = True

    @property
    def display_name(self) -> str:
        return ' '.join(part for part in (self.first_name, self.last_name) if part) or 'Provider'


class ServiceRecord(BaseModel):
    id: int
    provider_id: int
    name: str
    price: float = 0.0
    duration: int

    class Config:
        from_attributes = True


class AppointmentRecord(BaseModel):
    id: int | None = None
    provider_id: int
    provider_name: str | None = None
    customer_id: int | None = None
    customer_name: str | None = None
    service_id: int | None = None
    service_name: str | None = None
    price: float = 0.0
    date: date
    start_minutes: int
    end_minutes: int
    appointment_timestamp: datetime
    status: str = UPCOMING
    customer_checked_in_at: datetime | None = None
    provider_checked_in_at: datetime | None = None
    service_started_at: datetime | None = None
    customer_marked_done_at: datetime | None = None
    provider_marked_done_at: datetime | None = None
    service_completed_at: datetime | None = None
    reminder_sent: bool = False
    reminder_skipped_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True

    @property
    def is_walk_in(self) -> bool:
        return self.customer_id is None

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start_minutes, end=self.end_minutes)

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_minutes)


def default_weekly_schedule() -> list[DayTemplateRecord]:
    return [
        DayTemplateRecord(
            day=day,
            is_open=day not in ('Saturday', 'Sunday'),
            start_minutes=9 * 60,
            end_minutes=17 * 60,
        )
        for day in DAYS_OF_WEEK
    ]


def day_template_record(row: DayTemplate) -> DayTemplateRecord:
    return DayTemplateRecord(
        day=row.day,
        is_open=bool(row.is_open),
        start_minutes=time_to_minutes(row.start_time),
        end_minutes=time_to_minutes(row.end_time),
    )


def unavailable_date_record(row: UnavailableDate) -> UnavailableDateRecord:
    return UnavailableDateRecord(date=row.date, reason=row.reason)


def provider_record(row: User) -> ProviderRecord:
    return ProviderRecord.model_validate(row)


def service_record(row: Service) -> ServiceRecord:
    return ServiceRecord.model_validate(row)


def appointment_record(row: Appointment) -> AppointmentRecord:
    return AppointmentRecord.model_validate(row)
