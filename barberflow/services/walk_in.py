"""
Walk-in allocation.

Books the next free slot of the day for a customer standing in the shop.
Reservations are guarded by a conditional write on the provider's
``calendar_version``: the version read before the slot search must still be
current when the appointment is inserted, otherwise a concurrent
reservation won and the caller gets a ConflictError instead of a
double-booking.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.core import config
from barberflow.core.errors import ConflictError, ValidationError
from barberflow.models.appointment import Appointment
from barberflow.scheduling.availability import resolve_open_interval
from barberflow.scheduling.records import (
    CANCELLED,
    UPCOMING,
    Interval,
    ServiceRecord,
    appointment_record,
    provider_record,
    service_record,
)
from barberflow.scheduling.slots import NO_SLOT_AVAILABLE, find_next_slot
from barberflow.scheduling.time_arithmetic import combine, minutes_of_day
from barberflow.services.calendar import (
    claim_calendar_version,
    get_provider,
    get_service,
    load_booked_intervals,
    load_unavailable_dates,
    load_weekly_schedule,
)

logger = logging.getLogger(__name__)

MAX_CUSTOMER_NAME_LENGTH = 100


def reserve_slot(db: Session, appointment: Appointment, expected_version: int) -> Appointment:
    try:
        claim_calendar_version(db, appointment.provider_id, expected_version)

        overlapping = db.query(Appointment.id).filter(
            Appointment.provider_id == appointment.provider_id,
            Appointment.date == appointment.date,
            Appointment.status != CANCELLED,
            Appointment.start_minutes < appointment.end_minutes,
            Appointment.end_minutes > appointment.start_minutes,
        ).first()
        if overlapping:
            raise ConflictError('This time is already booked.')

        db.add(appointment)
        db.commit()
    except (ConflictError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(appointment)
    return appointment


def create_walk_in(
    db: Session,
    provider_id: int,
    service_id: int,
    customer_name: str,
    now: datetime,
    step: int | None = None,
    buffer_minutes: int | None = None,
):
    """
    Allocate today's next free slot for a walk-in.

    Returns the created AppointmentRecord, or NO_SLOT_AVAILABLE when the day
    has no room for the service. Raises ValidationError when the provider is
    closed today and ConflictError when a concurrent reservation won.
    """
    normalized_name = (customer_name or '').strip()
    if not normalized_name:
        raise ValidationError('Customer name is required.')
    if len(normalized_name) > MAX_CUSTOMER_NAME_LENGTH:
        raise ValidationError(f'Customer name must be {MAX_CUSTOMER_NAME_LENGTH} characters or fewer.')

    provider = get_provider(db, provider_id)
    provider_snapshot = provider_record(provider)
    service = service_record(get_service(db, provider_id, service_id))
    today = now.date()

    unavailable_dates = load_unavailable_dates(db, provider_id)
    if any(blocked.date == today for blocked in unavailable_dates):
        raise ValidationError('Cannot add walk-in. The provider is marked as unavailable today.')

    open_interval = resolve_open_interval(provider_id, today, load_weekly_schedule(db, provider_id), unavailable_dates)
    if open_interval is None:
        raise ValidationError('Cannot add walk-in. The provider is closed today according to schedule.')

    booked = load_booked_intervals(db, provider_id, today)
    buffer_minutes = config.WALK_IN_BUFFER_MINUTES if buffer_minutes is None else buffer_minutes
    earliest_start = max(open_interval.start, minutes_of_day(now) + buffer_minutes)

    slot = find_next_slot(
        open_interval,
        booked,
        service.duration,
        earliest_start,
        step=step or config.SLOT_STEP_MINUTES,
    )
    if slot is NO_SLOT_AVAILABLE:
        logger.info('No walk-in slot for provider %s on %s (%s min).', provider_id, today, service.duration)
        return NO_SLOT_AVAILABLE

    appointment = reserve_slot(
        db,
        _build_walk_in(provider_snapshot.id, provider_snapshot.display_name, service, normalized_name, today, slot, now),
        provider_snapshot.calendar_version,
    )
    record = appointment_record(appointment)
    logger.info(
        'Walk-in %s booked for provider %s at %s-%s.',
        record.id, provider_id, record.start_time, record.end_time,
    )
    return record


def _build_walk_in(
    provider_id: int,
    provider_name: str,
    service: ServiceRecord,
    customer_name: str,
    day: date,
    slot: Interval,
    now: datetime,
) -> Appointment:
    return Appointment(
        provider_id=provider_id,
        provider_name=provider_name,
        customer_id=None,
        customer_name=customer_name,
        service_id=service.id,
        service_name=service.name,
        price=service.price,
        date=day,
        start_minutes=slot.start,
        end_minutes=slot.end,
        appointment_timestamp=combine(day, slot.start),
        status=UPCOMING,
        reminder_sent=False,
        created_at=now,
        updated_at=now,
    )
