"""
Mutation event handlers.

Routes schedule these as background tasks after an appointment or provider
write has committed. Request sessions are closed by the time background
tasks run, so every handler opens its own session from ``session_factory``.
Handlers never raise: a failed notification or index write is logged and
the mutation that triggered it stands.
"""

import logging

from sqlalchemy.orm import Session, sessionmaker

from barberflow.database import SessionLocal
from barberflow.models.appointment import Appointment
from barberflow.models.user import User
from barberflow.scheduling.records import CANCELLED, TERMINAL_STATUSES, AppointmentRecord, appointment_record
from barberflow.services.booked_slots import publish_booked_slot, remove_booked_slot, sync_booked_slot
from barberflow.services.notifications import (
    DeliveryErrorKind,
    NotificationSender,
    PushMessage,
    clear_notification_token,
    deliver_all,
    get_sender,
    notify_user,
)

logger = logging.getLogger(__name__)


def _describe(appointment: AppointmentRecord) -> str:
    return f'{appointment.service_name or "your appointment"} on {appointment.date.isoformat()} at {appointment.start_time}'


def on_appointment_created(
    appointment: AppointmentRecord,
    sender: NotificationSender | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> None:
    db: Session = session_factory()
    try:
        publish_booked_slot(db, appointment)

        if appointment.is_walk_in:
            return

        notify_user(
            db,
            sender or get_sender(),
            appointment.provider_id,
            'New Booking!',
            f'{appointment.customer_name or "A customer"} booked {_describe(appointment)}.',
            f'new booking notice for appointment {appointment.id}',
        )
    except Exception:
        logger.exception('Creation handler failed for appointment %s.', appointment.id)
    finally:
        db.close()


def on_appointment_updated(
    before: AppointmentRecord,
    after: AppointmentRecord,
    sender: NotificationSender | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> None:
    db: Session = session_factory()
    try:
        sync_booked_slot(db, before, after)

        if before.status != CANCELLED and after.status == CANCELLED:
            body = f'The appointment for {_describe(after)} has been cancelled.'
            for user_id in (after.provider_id, after.customer_id):
                notify_user(
                    db,
                    sender or get_sender(),
                    user_id,
                    'Appointment Cancelled',
                    body,
                    f'cancellation notice for appointment {after.id}',
                )
    except Exception:
        logger.exception('Update handler failed for appointment %s.', after.id)
    finally:
        db.close()


def on_appointment_deleted(
    appointment: AppointmentRecord,
    session_factory: sessionmaker = SessionLocal,
) -> None:
    db: Session = session_factory()
    try:
        remove_booked_slot(db, appointment.provider_id, appointment.id)
    except Exception:
        logger.exception('Delete handler failed for appointment %s.', appointment.id)
    finally:
        db.close()


def on_provider_returned(
    busy_minutes: int,
    shifted: list[tuple[AppointmentRecord, AppointmentRecord]],
    sender: NotificationSender | None = None,
    session_factory: sessionmaker = SessionLocal,
) -> None:
    """
    Resync the public index and tell every affected customer about the delay.

    Each appointment is re-read first: a row that was deleted or closed
    after the shift committed is left to its own handler.
    """
    if not shifted:
        return

    db: Session = session_factory()
    try:
        current: list[AppointmentRecord] = []
        for before, _ in shifted:
            row = db.get(Appointment, before.id)
            if row is None or row.status in TERMINAL_STATUSES:
                logger.info('Appointment %s changed after the shift, skipping its notice.', before.id)
                continue
            after = appointment_record(row)
            sync_booked_slot(db, before, after)
            current.append(after)

        messages = []
        for after in current:
            if after.customer_id is None:
                continue
            customer = db.get(User, after.customer_id)
            if customer is None or not customer.notification_token:
                continue
            messages.append(
                PushMessage(
                    key=(after.id, customer.id),
                    token=customer.notification_token,
                    title='Appointment Time Updated',
                    body=(
                        f'Your appointment with {after.provider_name or "your provider"} was moved by about '
                        f'{busy_minutes} minutes. New start time: {after.start_time}.'
                    ),
                )
            )

        cleared = False
        for outcome in deliver_all(sender or get_sender(), messages):
            appointment_id, customer_id = outcome.message.key
            if outcome.result.ok:
                logger.info('Sent shift notice for appointment %s to user %s.', appointment_id, customer_id)
            elif outcome.result.error_kind == DeliveryErrorKind.INVALID_TOKEN:
                clear_notification_token(db, customer_id)
                cleared = True
            else:
                logger.error(
                    'Failed to send shift notice for appointment %s: %s',
                    appointment_id, outcome.result.detail,
                )

        if cleared:
            db.commit()
    except Exception:
        db.rollback()
        logger.exception('Shift notification handler failed.')
    finally:
        db.close()
