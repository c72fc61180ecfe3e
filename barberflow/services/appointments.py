import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.core.errors import ConflictError, NotFoundError
from barberflow.models.appointment import Appointment
from barberflow.scheduling.records import AppointmentRecord, appointment_record
from barberflow.scheduling.state_machine import AppointmentAction, StatusChanged, apply_action

logger = logging.getLogger(__name__)


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError(f'Appointment {appointment_id} not found.')
    return appointment


def transition_appointment(
    db: Session,
    appointment_id: int,
    action: AppointmentAction,
    now: datetime,
) -> tuple[AppointmentRecord, AppointmentRecord, StatusChanged]:
    """
    Apply a state-machine action and persist it.

    The write only lands if the stored status is still the one the
    transition was computed from; a concurrent transition raises
    ConflictError and leaves the row as the other writer left it.
    """
    before = appointment_record(get_appointment(db, appointment_id))
    after, event = apply_action(before, action, now)

    changes = {
        getattr(Appointment, field_name): value
        for field_name, value in after.model_dump().items()
        if getattr(before, field_name) != value
    }

    try:
        updated = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status == before.status,
        ).update(changes, synchronize_session=False)
        if updated != 1:
            raise ConflictError('The appointment was updated by someone else. Please refresh and retry.')
        db.commit()
    except (ConflictError, SQLAlchemyError):
        db.rollback()
        raise

    logger.info(
        'Appointment %s moved from %s to %s via %s.',
        appointment_id, event.previous_status, event.new_status, action.value,
    )
    return before, after, event


def delete_appointment(db: Session, appointment_id: int) -> AppointmentRecord:
    appointment = get_appointment(db, appointment_id)
    snapshot = appointment_record(appointment)

    try:
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Appointment %s deleted.', appointment_id)
    return snapshot
