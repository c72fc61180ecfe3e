"""
Appointment reminders.

Runs on a timer every ``REMINDER_WINDOW_MINUTES``. Each run snaps ``now`` to
the nearest window boundary since midnight, so a tick that fires a little
early or late still covers the same grid cell and consecutive ticks leave
no gaps. It then selects the upcoming appointments starting between
``anchor + lead`` and ``anchor + lead + window`` that have not been reminded
yet, claims them in the ``reminder_deliveries`` ledger, sends the pushes
concurrently and records each outcome in its own savepoint.

The ledger claim is committed before anything is sent, so a crash between
sending and marking can never produce a second reminder for the same
appointment start.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.core import config
from barberflow.core.errors import PermanentTokenError, TransientDeliveryError
from barberflow.models.appointment import Appointment
from barberflow.models.reminder_delivery import ReminderDelivery
from barberflow.models.user import User
from barberflow.scheduling.records import UPCOMING
from barberflow.scheduling.time_arithmetic import minutes_to_time
from barberflow.services.notifications import (
    NotificationSender,
    PushMessage,
    clear_notification_token,
    deliver_all,
)

logger = logging.getLogger(__name__)

REMINDER_TITLE = 'Appointment Reminder!'

SKIP_NO_CUSTOMER = 'No customer'
SKIP_USER_NOT_FOUND = 'User document not found'
SKIP_NO_TOKEN = 'No notification token'
SKIP_INVALID_TOKEN = 'Invalid notification token'


@dataclass
class ReminderRunSummary:
    considered: int = 0
    sent: int = 0
    skipped: int = 0
    already_claimed: int = 0
    retry_scheduled: int = 0
    failed: int = 0


def reminder_epoch(appointment: Appointment) -> str:
    return appointment.appointment_timestamp.isoformat()


def reminder_body(appointment: Appointment, customer: User, lead_minutes: int) -> str:
    first_name = customer.first_name or 'Customer'
    return (
        f'Hi {first_name}, your appointment for {appointment.service_name} '
        f'with {appointment.provider_name} is in about {lead_minutes} '
        f'minutes at {minutes_to_time(appointment.start_minutes)}.'
    )


def window_anchor(now: datetime, window_minutes: int) -> datetime:
    """Round ``now`` to the nearest multiple of ``window_minutes`` since midnight."""
    if window_minutes <= 0:
        return now

    midnight = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    window_seconds = window_minutes * 60
    elapsed = int((now - midnight).total_seconds())
    snapped = (elapsed + window_seconds // 2) // window_seconds * window_seconds
    return midnight + timedelta(seconds=snapped)


def select_due_appointments(db: Session, now: datetime, lead_minutes: int, window_minutes: int) -> list[Appointment]:
    window_start = window_anchor(now, window_minutes) + timedelta(minutes=lead_minutes)
    window_end = window_start + timedelta(minutes=window_minutes)
    return db.query(Appointment).filter(
        Appointment.status == UPCOMING,
        Appointment.reminder_sent.is_(False),
        Appointment.appointment_timestamp >= window_start,
        Appointment.appointment_timestamp <= window_end,
    ).order_by(Appointment.appointment_timestamp.asc()).all()


def _mark_reminded(appointment: Appointment, now: datetime, reason: str | None = None) -> None:
    appointment.reminder_sent = True
    appointment.reminder_skipped_reason = reason
    appointment.updated_at = now


def _skip(db: Session, appointment: Appointment, now: datetime, reason: str, summary: ReminderRunSummary) -> None:
    try:
        with db.begin_nested():
            _mark_reminded(appointment, now, reason)
    except SQLAlchemyError:
        logger.exception('Could not record reminder skip for appointment %s.', appointment.id)
        summary.failed += 1
        return

    logger.info('Skipped reminder for appointment %s: %s.', appointment.id, reason)
    summary.skipped += 1


def _claim(db: Session, appointment: Appointment, now: datetime) -> None:
    """Insert the ledger row; raises IntegrityError if this start was already claimed."""
    with db.begin_nested():
        db.add(ReminderDelivery(appointment_id=appointment.id, epoch=reminder_epoch(appointment), claimed_at=now))


def _release_claim(db: Session, appointment: Appointment) -> None:
    db.query(ReminderDelivery).filter(
        ReminderDelivery.appointment_id == appointment.id,
        ReminderDelivery.epoch == reminder_epoch(appointment),
    ).delete(synchronize_session=False)


def prune_reminder_ledger(db: Session, now: datetime) -> int:
    """Drop claims for appointment starts that are already in the past."""
    # Epochs are ISO timestamps, so string order is time order.
    return db.query(ReminderDelivery).filter(
        ReminderDelivery.epoch < now.isoformat(),
    ).delete(synchronize_session=False)


def dispatch_reminders(
    db: Session,
    sender: NotificationSender,
    now: datetime,
    lead_minutes: int | None = None,
    window_minutes: int | None = None,
    max_workers: int | None = None,
) -> ReminderRunSummary:
    lead_minutes = config.REMINDER_LEAD_MINUTES if lead_minutes is None else lead_minutes
    window_minutes = config.REMINDER_WINDOW_MINUTES if window_minutes is None else window_minutes

    try:
        pruned = prune_reminder_ledger(db, now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Could not prune the reminder ledger.')
        raise
    if pruned:
        logger.info('Pruned %s stale reminder claims.', pruned)

    summary = ReminderRunSummary()
    due = select_due_appointments(db, now, lead_minutes, window_minutes)
    summary.considered = len(due)
    if not due:
        logger.info('No appointments requiring a reminder.')
        return summary

    appointments: dict[int, Appointment] = {}
    recipients: dict[int, User] = {}
    messages: list[PushMessage] = []

    for appointment in due:
        if appointment.customer_id is None:
            _skip(db, appointment, now, SKIP_NO_CUSTOMER, summary)
            continue

        customer = db.get(User, appointment.customer_id)
        if customer is None:
            _skip(db, appointment, now, SKIP_USER_NOT_FOUND, summary)
            continue
        if not customer.notification_token:
            _skip(db, appointment, now, SKIP_NO_TOKEN, summary)
            continue

        try:
            _claim(db, appointment, now)
        except IntegrityError:
            logger.info('Reminder for appointment %s was already attempted, skipping.', appointment.id)
            summary.already_claimed += 1
            continue
        except SQLAlchemyError:
            logger.exception('Could not claim reminder for appointment %s.', appointment.id)
            summary.failed += 1
            continue

        appointments[appointment.id] = appointment
        recipients[appointment.id] = customer
        messages.append(
            PushMessage(
                key=appointment.id,
                token=customer.notification_token,
                title=REMINDER_TITLE,
                body=reminder_body(appointment, customer, lead_minutes),
            )
        )

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Could not commit reminder claims; nothing was sent.')
        raise

    for outcome in deliver_all(sender, messages, max_workers=max_workers):
        appointment = appointments[outcome.message.key]
        customer = recipients[outcome.message.key]
        try:
            with db.begin_nested():
                try:
                    outcome.result.raise_for_error()
                except TransientDeliveryError as exc:
                    _release_claim(db, appointment)
                    logger.warning('Reminder for appointment %s will be retried: %s', appointment.id, exc)
                    counter = 'retry_scheduled'
                except PermanentTokenError:
                    clear_notification_token(db, customer.id)
                    _mark_reminded(appointment, now, SKIP_INVALID_TOKEN)
                    logger.warning('Invalid notification token for user %s.', customer.id)
                    counter = 'skipped'
                else:
                    _mark_reminded(appointment, now)
                    logger.info('Sent reminder for appointment %s to user %s.', appointment.id, customer.id)
                    counter = 'sent'
        except SQLAlchemyError:
            logger.exception('Could not record reminder outcome for appointment %s.', appointment.id)
            counter = 'failed'

        setattr(summary, counter, getattr(summary, counter) + 1)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        'Reminder run at %s: %s considered, %s sent, %s skipped, %s retrying.',
        now.isoformat(), summary.considered, summary.sent, summary.skipped, summary.retry_scheduled,
    )
    return summary
