"""Store-side loaders that turn a provider's rows into scheduling records."""

from datetime import date

from sqlalchemy.orm import Session

from barberflow.core.errors import ConflictError, NotFoundError
from barberflow.models.appointment import Appointment
from barberflow.models.schedule import DayTemplate, UnavailableDate
from barberflow.models.service import Service
from barberflow.models.user import User
from barberflow.scheduling.records import (
    CANCELLED,
    DayTemplateRecord,
    Interval,
    UnavailableDateRecord,
    day_template_record,
    default_weekly_schedule,
    unavailable_date_record,
)

PROVIDER_ROLE = 'provider'


def get_provider(db: Session, provider_id: int) -> User:
    provider = db.get(User, provider_id)
    if provider is None or provider.role != PROVIDER_ROLE:
        raise NotFoundError(f'Provider {provider_id} not found.')
    return provider


def claim_calendar_version(
    db: Session,
    provider_id: int,
    expected_version: int,
    conflict_message: str = 'The calendar changed while the slot was being reserved. Please retry.',
) -> None:
    """Bump the provider's calendar version only if nobody else has since."""
    updated = db.query(User).filter(
        User.id == provider_id,
        User.calendar_version == expected_version,
    ).update({User.calendar_version: expected_version + 1}, synchronize_session=False)

    if updated != 1:
        raise ConflictError(conflict_message)


def get_service(db: Session, provider_id: int, service_id: int) -> Service:
    service = db.get(Service, service_id)
    if service is None or service.provider_id != provider_id:
        raise NotFoundError(f'Service {service_id} not found.')
    return service


def load_weekly_schedule(db: Session, provider_id: int) -> list[DayTemplateRecord]:
    rows = db.query(DayTemplate).filter(DayTemplate.provider_id == provider_id).all()
    if not rows:
        return default_weekly_schedule()
    return [day_template_record(row) for row in rows]


def load_unavailable_dates(db: Session, provider_id: int) -> list[UnavailableDateRecord]:
    rows = db.query(UnavailableDate).filter(UnavailableDate.provider_id == provider_id).all()
    return [unavailable_date_record(row) for row in rows]


def load_booked_intervals(db: Session, provider_id: int, day: date) -> list[Interval]:
    rows = db.query(Appointment.start_minutes, Appointment.end_minutes).filter(
        Appointment.provider_id == provider_id,
        Appointment.date == day,
        Appointment.status != CANCELLED,
    ).order_by(Appointment.start_minutes.asc()).all()
    return [Interval(start=start, end=end) for start, end in rows]
