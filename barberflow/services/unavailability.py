"""
Temporary unavailability and appointment shifting.

A provider can step away during the day. On return, every active
appointment of the day that was due after the busy period began is pushed
back by the busy duration. The provider state and all shifted appointments
are committed in one transaction: either the whole calendar moves or
nothing does.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.core.errors import ConflictError, ValidationError
from barberflow.models.appointment import Appointment
from barberflow.scheduling.records import ACTIVE_STATUSES, AppointmentRecord, appointment_record
from barberflow.services.calendar import claim_calendar_version, get_provider

logger = logging.getLogger(__name__)


@dataclass
class ShiftOutcome:
    success: bool
    message: str
    busy_minutes: int = 0
    # (before, after) for every appointment that moved.
    shifted: list[tuple[AppointmentRecord, AppointmentRecord]] = field(default_factory=list)


def busy_minutes_between(unavailable_since: datetime | None, now: datetime) -> int:
    if unavailable_since is None:
        return 0
    return round((now - unavailable_since).total_seconds() / 60)


def shift_record(appointment: AppointmentRecord, minutes: int, now: datetime) -> AppointmentRecord:
    return appointment.model_copy(
        update={
            'start_minutes': appointment.start_minutes + minutes,
            'end_minutes': appointment.end_minutes + minutes,
            'appointment_timestamp': appointment.appointment_timestamp + timedelta(minutes=minutes),
            'updated_at': now,
        }
    )


def select_appointments_to_shift(db: Session, provider_id: int, unavailable_since: datetime, now: datetime) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.date == now.date(),
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.appointment_timestamp >= unavailable_since,
    ).order_by(Appointment.appointment_timestamp.asc()).all()


def set_temporary_unavailability(
    db: Session,
    provider_id: int,
    becoming_unavailable: bool,
    now: datetime,
) -> ShiftOutcome:
    provider = get_provider(db, provider_id)

    if becoming_unavailable:
        if provider.is_temporarily_unavailable:
            raise ValidationError('You are already marked as temporarily unavailable.')

        provider.is_temporarily_unavailable = True
        provider.unavailable_since = now
        provider.updated_at = now
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info('Provider %s is temporarily unavailable since %s.', provider_id, now.isoformat())
        return ShiftOutcome(success=True, message='You are now marked as temporarily unavailable.')

    if not provider.is_temporarily_unavailable:
        raise ValidationError('You are not currently marked as unavailable.')

    unavailable_since = provider.unavailable_since
    expected_version = provider.calendar_version or 0
    busy_minutes = busy_minutes_between(unavailable_since, now)
    shifted: list[tuple[AppointmentRecord, AppointmentRecord]] = []

    try:
        if busy_minutes > 0:
            for appointment in select_appointments_to_shift(db, provider_id, unavailable_since, now):
                before = appointment_record(appointment)
                after = shift_record(before, busy_minutes, now)
                appointment.start_minutes = after.start_minutes
                appointment.end_minutes = after.end_minutes
                appointment.appointment_timestamp = after.appointment_timestamp
                appointment.updated_at = now
                shifted.append((before, after))

        provider.is_temporarily_unavailable = False
        provider.unavailable_since = None
        provider.updated_at = now
        if shifted:
            claim_calendar_version(
                db,
                provider_id,
                expected_version,
                conflict_message='The calendar changed while appointments were being shifted. Please retry.',
            )

        db.commit()
    except ConflictError:
        db.rollback()
        logger.warning('Shift for provider %s lost a race on the calendar; nothing was moved.', provider_id)
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Shift for provider %s failed; no appointment was moved.', provider_id)
        raise

    if shifted:
        logger.info(
            'Provider %s back after %s minutes; shifted %s appointments.',
            provider_id, busy_minutes, len(shifted),
        )
        message = f'Welcome back! {len(shifted)} appointment(s) were shifted by {busy_minutes} minutes.'
    else:
        message = 'Welcome back! No appointments needed to be shifted.'

    return ShiftOutcome(success=True, message=message, busy_minutes=busy_minutes, shifted=shifted)
