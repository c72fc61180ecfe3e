"""
Public booked slot index.

Mirrors the time span of every open appointment into ``booked_slots`` so
availability can be shown without exposing who booked. The index is
disposable: every write here is best-effort and it can be rebuilt from
appointments at any time.
"""

import logging
from datetime import date

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.models.appointment import Appointment
from barberflow.models.booked_slot import BookedSlot
from barberflow.scheduling.records import CANCELLED, INACTIVE_STATUSES, TERMINAL_STATUSES, AppointmentRecord
from barberflow.scheduling.time_arithmetic import minutes_to_time

logger = logging.getLogger(__name__)


class BookedSlotRecord(BaseModel):
    provider_id: int
    appointment_id: int
    date: date
    start_minutes: int
    end_minutes: int

    class Config:
        from_attributes = True

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_minutes)


def publish_booked_slot(db: Session, appointment: AppointmentRecord) -> bool:
    if appointment.id is None or appointment.status in TERMINAL_STATUSES:
        return False

    try:
        slot = db.get(BookedSlot, (appointment.provider_id, appointment.id))
        if slot is None:
            slot = BookedSlot(provider_id=appointment.provider_id, appointment_id=appointment.id)
            db.add(slot)
        slot.date = appointment.date
        slot.start_minutes = appointment.start_minutes
        slot.end_minutes = appointment.end_minutes
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to publish booked slot for appointment %s.', appointment.id)
        return False

    logger.info('Published booked slot for appointment %s.', appointment.id)
    return True


def remove_booked_slot(db: Session, provider_id: int, appointment_id: int) -> bool:
    """Delete the index entry; an entry that is already gone is not an error."""
    try:
        deleted = db.query(BookedSlot).filter(
            BookedSlot.provider_id == provider_id,
            BookedSlot.appointment_id == appointment_id,
        ).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning('Could not delete booked slot for appointment %s.', appointment_id, exc_info=True)
        return False

    if deleted:
        logger.info('Deleted booked slot for appointment %s.', appointment_id)
    return True


def sync_booked_slot(db: Session, before: AppointmentRecord, after: AppointmentRecord) -> None:
    became_cancelled = before.status != CANCELLED and after.status == CANCELLED
    became_inactive = before.status not in INACTIVE_STATUSES and after.status in INACTIVE_STATUSES

    if became_cancelled or became_inactive:
        remove_booked_slot(db, after.provider_id, after.id)
        return

    if after.status in TERMINAL_STATUSES:
        return

    if (before.date, before.start_minutes, before.end_minutes) != (after.date, after.start_minutes, after.end_minutes):
        publish_booked_slot(db, after)


def rebuild_booked_slots(db: Session, provider_id: int) -> int:
    appointments = db.query(Appointment).filter(
        Appointment.provider_id == provider_id,
        Appointment.status.not_in(TERMINAL_STATUSES),
    ).all()

    try:
        db.query(BookedSlot).filter(BookedSlot.provider_id == provider_id).delete(synchronize_session=False)
        for appointment in appointments:
            db.add(
                BookedSlot(
                    provider_id=provider_id,
                    appointment_id=appointment.id,
                    date=appointment.date,
                    start_minutes=appointment.start_minutes,
                    end_minutes=appointment.end_minutes,
                )
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Rebuilt %s booked slots for provider %s.', len(appointments), provider_id)
    return len(appointments)


def list_booked_slots(db: Session, provider_id: int, day: date | None = None) -> list[BookedSlotRecord]:
    query = db.query(BookedSlot).filter(BookedSlot.provider_id == provider_id)
    if day is not None:
        query = query.filter(BookedSlot.date == day)

    slots = query.order_by(BookedSlot.date.asc(), BookedSlot.start_minutes.asc()).all()
    return [BookedSlotRecord.model_validate(slot) for slot in slots]
