from datetime import date, datetime

import pytest

from barberflow.models.appointment import Appointment
from barberflow.models.reminder_delivery import ReminderDelivery
from barberflow.models.user import User
from barberflow.services.reminders import dispatch_reminders, prune_reminder_ledger, window_anchor

MONDAY = date(2026, 1, 5)
NOW = datetime(2026, 1, 5, 9, 0)


def _dispatch(db, sender, now: datetime = NOW):
    return dispatch_reminders(db, sender, now, lead_minutes=30, window_minutes=15)


def test_dispatch_reminders_notifies_only_appointments_inside_window(db, sender, customer, make_appointment) -> None:
    due = make_appointment(MONDAY, 578, customer=customer)
    too_late = make_appointment(MONDAY, 590, customer=customer)
    already_reminded = make_appointment(MONDAY, 578, customer=customer, reminder_sent=True)

    summary = _dispatch(db, sender)

    assert summary.considered == 1
    assert summary.sent == 1
    assert sender.sent == [(
        'customer-token',
        'Appointment Reminder!',
        'Hi Alex, your appointment for Haircut with Sam Cutter is in about 30 minutes at 09:38 AM.',
    )]
    assert db.get(Appointment, due.id).reminder_sent is True
    assert db.get(Appointment, due.id).reminder_skipped_reason is None
    assert db.get(Appointment, too_late.id).reminder_sent is False
    assert db.get(Appointment, already_reminded.id).reminder_sent is True


def test_dispatch_reminders_includes_window_edges(db, sender, customer, make_appointment) -> None:
    make_appointment(MONDAY, 570, customer=customer)
    make_appointment(MONDAY, 585, customer=customer)

    summary = _dispatch(db, sender)

    assert summary.sent == 2


def test_dispatch_reminders_ignores_appointments_that_are_not_upcoming(db, sender, customer, make_appointment) -> None:
    make_appointment(MONDAY, 578, status='cancelled', customer=customer)
    make_appointment(MONDAY, 580, status='customer-initiated-check-in', customer=customer)

    summary = _dispatch(db, sender)

    assert summary.considered == 0
    assert sender.sent == []


def test_dispatch_reminders_twice_sends_at_most_once(db, sender, customer, make_appointment) -> None:
    make_appointment(MONDAY, 578, customer=customer)

    _dispatch(db, sender)
    second = _dispatch(db, sender, datetime(2026, 1, 5, 9, 5))

    assert len(sender.sent) == 1
    assert second.sent == 0


def test_dispatch_reminders_skips_existing_ledger_claim(db, sender, customer, make_appointment) -> None:
    appointment = make_appointment(MONDAY, 578, customer=customer)
    db.add(ReminderDelivery(appointment_id=appointment.id, epoch='2026-01-05T09:38:00', claimed_at=NOW))
    db.commit()

    summary = _dispatch(db, sender)

    assert summary.already_claimed == 1
    assert sender.sent == []


def test_transient_failure_releases_claim_for_next_run(db, sender, transient_result, customer, make_appointment) -> None:
    appointment = make_appointment(MONDAY, 578, customer=customer)
    sender.results['customer-token'] = transient_result

    first = _dispatch(db, sender)

    assert first.retry_scheduled == 1
    assert db.get(Appointment, appointment.id).reminder_sent is False
    assert db.query(ReminderDelivery).count() == 0

    sender.results.clear()
    second = _dispatch(db, sender, datetime(2026, 1, 5, 9, 5))

    assert second.sent == 1
    assert db.get(Appointment, appointment.id).reminder_sent is True


def test_invalid_token_is_cleared_and_reminder_closed(db, sender, invalid_token_result, customer, make_appointment) -> None:
    appointment = make_appointment(MONDAY, 578, customer=customer)
    sender.results['customer-token'] = invalid_token_result

    summary = _dispatch(db, sender)

    assert summary.skipped == 1
    assert db.get(User, customer.id).notification_token is None
    refreshed = db.get(Appointment, appointment.id)
    assert refreshed.reminder_sent is True
    assert refreshed.reminder_skipped_reason == 'Invalid notification token'


def test_dispatch_reminders_records_skip_reasons(db, sender, make_user, make_appointment) -> None:
    tokenless = make_user('casey@example.com')
    walk_in = make_appointment(MONDAY, 575)
    no_token = make_appointment(MONDAY, 578, customer=tokenless)
    missing_user = make_appointment(MONDAY, 580, customer=tokenless)
    missing_user.customer_id = 999
    db.commit()

    summary = _dispatch(db, sender)

    assert summary.skipped == 3
    assert sender.sent == []
    assert db.get(Appointment, walk_in.id).reminder_skipped_reason == 'No customer'
    assert db.get(Appointment, no_token.id).reminder_skipped_reason == 'No notification token'
    assert db.get(Appointment, missing_user.id).reminder_skipped_reason == 'User document not found'
    assert all(db.get(Appointment, row.id).reminder_sent for row in (walk_in, no_token, missing_user))


def test_one_failed_delivery_does_not_block_siblings(db, sender, invalid_token_result, customer, make_user, make_appointment) -> None:
    other = make_user('riley@example.com', token='riley-token', first_name='Riley')
    make_appointment(MONDAY, 575, customer=other)
    healthy = make_appointment(MONDAY, 580, customer=customer)
    sender.results['riley-token'] = invalid_token_result

    summary = _dispatch(db, sender)

    assert summary.sent == 1
    assert summary.skipped == 1
    assert db.get(Appointment, healthy.id).reminder_sent is True
    assert db.get(User, other.id).notification_token is None


@pytest.mark.parametrize(
    ('tick', 'expected'),
    [
        (datetime(2026, 1, 5, 8, 54, 59), datetime(2026, 1, 5, 8, 55)),
        (datetime(2026, 1, 5, 9, 0, 1), datetime(2026, 1, 5, 9, 0)),
        (datetime(2026, 1, 5, 9, 2, 29), datetime(2026, 1, 5, 9, 0)),
        (datetime(2026, 1, 5, 9, 2, 30), datetime(2026, 1, 5, 9, 5)),
        (datetime(2026, 1, 5, 23, 59, 58), datetime(2026, 1, 6, 0, 0)),
    ],
)
def test_window_anchor_snaps_to_nearest_boundary(tick: datetime, expected: datetime) -> None:
    assert window_anchor(tick, 5) == expected


def test_jittered_ticks_still_remind_exactly_once(db, sender, customer, make_appointment) -> None:
    appointment = make_appointment(MONDAY, 570, customer=customer)
    ticks = [
        datetime(2026, 1, 5, 8, 54, 59),
        datetime(2026, 1, 5, 9, 0, 1),
        datetime(2026, 1, 5, 9, 5, 0),
    ]

    sent = sum(
        dispatch_reminders(db, sender, tick, lead_minutes=30, window_minutes=5).sent
        for tick in ticks
    )

    assert sent == 1
    assert len(sender.sent) == 1
    assert db.get(Appointment, appointment.id).reminder_sent is True


def test_late_ticks_cover_every_grid_cell(db, sender, customer, make_appointment) -> None:
    starts = [566, 571, 576]
    for start_minutes in starts:
        make_appointment(MONDAY, start_minutes, customer=customer)
    ticks = [
        datetime(2026, 1, 5, 8, 55, 2),
        datetime(2026, 1, 5, 9, 0, 4),
        datetime(2026, 1, 5, 9, 5, 3),
    ]

    per_tick = [
        dispatch_reminders(db, sender, tick, lead_minutes=30, window_minutes=5).sent
        for tick in ticks
    ]

    assert per_tick == [1, 1, 1]
    assert db.query(Appointment).filter(Appointment.reminder_sent.is_(False)).count() == 0


def test_dispatch_reminders_prunes_claims_for_past_starts(db, sender, customer, make_appointment) -> None:
    earlier = make_appointment(MONDAY, 480, customer=customer, reminder_sent=True)
    later = make_appointment(MONDAY, 600, customer=customer)
    db.add(ReminderDelivery(appointment_id=earlier.id, epoch='2026-01-05T08:00:00', claimed_at=datetime(2026, 1, 5, 7, 30)))
    db.add(ReminderDelivery(appointment_id=later.id, epoch='2026-01-05T10:00:00', claimed_at=NOW))
    db.commit()

    _dispatch(db, sender)

    remaining = [(row.appointment_id, row.epoch) for row in db.query(ReminderDelivery).all()]
    assert remaining == [(later.id, '2026-01-05T10:00:00')]


def test_prune_reminder_ledger_keeps_claim_starting_now(db, customer, make_appointment) -> None:
    appointment = make_appointment(MONDAY, 540, customer=customer)
    db.add(ReminderDelivery(appointment_id=appointment.id, epoch='2026-01-05T09:00:00', claimed_at=NOW))
    db.add(ReminderDelivery(appointment_id=appointment.id, epoch='2026-01-05T08:45:00', claimed_at=NOW))
    db.commit()

    removed = prune_reminder_ledger(db, NOW)
    db.commit()

    assert removed == 1
    assert [row.epoch for row in db.query(ReminderDelivery).all()] == ['2026-01-05T09:00:00']
