"""
Appointment state machine.

Either party may start a check-in or a completion; the joint state
(in-progress, completed) is reached once the other party confirms. Walk-ins
have no customer, so the provider's action alone reaches the joint state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from barberflow.core.errors import InvalidTransitionError
from barberflow.scheduling.records import (
    ACTIVE_STATUSES,
    CANCELLED,
    COMPLETED,
    CUSTOMER_INITIATED_CHECK_IN,
    CUSTOMER_INITIATED_COMPLETION,
    IN_PROGRESS,
    NO_SHOW,
    PROVIDER_INITIATED_CHECK_IN,
    PROVIDER_INITIATED_COMPLETION,
    TERMINAL_STATUSES,
    UPCOMING,
    AppointmentRecord,
)


class AppointmentAction(str, Enum):
    CUSTOMER_CHECK_IN = 'customer_check_in'
    PROVIDER_CHECK_IN = 'provider_check_in'
    CUSTOMER_MARK_DONE = 'customer_mark_done'
    PROVIDER_MARK_DONE = 'provider_mark_done'
    CANCEL = 'cancel'
    MARK_NO_SHOW = 'mark_no_show'


CUSTOMER_ACTIONS = frozenset({
    AppointmentAction.CUSTOMER_CHECK_IN,
    AppointmentAction.CUSTOMER_MARK_DONE,
    AppointmentAction.CANCEL,
})
PROVIDER_ACTIONS = frozenset({
    AppointmentAction.PROVIDER_CHECK_IN,
    AppointmentAction.PROVIDER_MARK_DONE,
    AppointmentAction.CANCEL,
    AppointmentAction.MARK_NO_SHOW,
})


@dataclass(frozen=True)
class StatusChanged:
    appointment_id: int | None
    previous_status: str
    new_status: str
    action: AppointmentAction


# (status, action) -> (next status, timestamp fields to stamp)
_TRANSITIONS: dict[tuple[str, AppointmentAction], tuple[str, tuple[str, ...]]] = {
    (UPCOMING, AppointmentAction.CUSTOMER_CHECK_IN): (
        CUSTOMER_INITIATED_CHECK_IN, ('customer_checked_in_at',),
    ),
    (UPCOMING, AppointmentAction.PROVIDER_CHECK_IN): (
        PROVIDER_INITIATED_CHECK_IN, ('provider_checked_in_at',),
    ),
    (PROVIDER_INITIATED_CHECK_IN, AppointmentAction.CUSTOMER_CHECK_IN): (
        IN_PROGRESS, ('customer_checked_in_at', 'service_started_at'),
    ),
    (CUSTOMER_INITIATED_CHECK_IN, AppointmentAction.PROVIDER_CHECK_IN): (
        IN_PROGRESS, ('provider_checked_in_at', 'service_started_at'),
    ),
    (IN_PROGRESS, AppointmentAction.CUSTOMER_MARK_DONE): (
        CUSTOMER_INITIATED_COMPLETION, ('customer_marked_done_at',),
    ),
    (IN_PROGRESS, AppointmentAction.PROVIDER_MARK_DONE): (
        PROVIDER_INITIATED_COMPLETION, ('provider_marked_done_at',),
    ),
    (PROVIDER_INITIATED_COMPLETION, AppointmentAction.CUSTOMER_MARK_DONE): (
        COMPLETED, ('customer_marked_done_at', 'service_completed_at'),
    ),
    (CUSTOMER_INITIATED_COMPLETION, AppointmentAction.PROVIDER_MARK_DONE): (
        COMPLETED, ('provider_marked_done_at', 'service_completed_at'),
    ),
}

_WALK_IN_TRANSITIONS: dict[tuple[str, AppointmentAction], tuple[str, tuple[str, ...]]] = {
    (UPCOMING, AppointmentAction.PROVIDER_CHECK_IN): (
        IN_PROGRESS, ('provider_checked_in_at', 'service_started_at'),
    ),
    (IN_PROGRESS, AppointmentAction.PROVIDER_MARK_DONE): (
        COMPLETED, ('provider_marked_done_at', 'service_completed_at'),
    ),
}


def _resolve(appointment: AppointmentRecord, action: AppointmentAction) -> tuple[str, tuple[str, ...]]:
    status = appointment.status

    if status in TERMINAL_STATUSES:
        raise InvalidTransitionError(status, action.value, 'The appointment is already closed.')

    if action == AppointmentAction.CANCEL:
        return CANCELLED, ()

    if action == AppointmentAction.MARK_NO_SHOW:
        if status in ACTIVE_STATUSES:
            return NO_SHOW, ()
        raise InvalidTransitionError(status, action.value, 'The service has already started.')

    if appointment.is_walk_in:
        if action in CUSTOMER_ACTIONS:
            raise InvalidTransitionError(status, action.value, 'Walk-in appointments have no customer account.')
        transition = _WALK_IN_TRANSITIONS.get((status, action))
    else:
        transition = _TRANSITIONS.get((status, action))

    if transition is None:
        raise InvalidTransitionError(status, action.value)

    return transition


def apply_action(
    appointment: AppointmentRecord,
    action: AppointmentAction,
    now: datetime,
) -> tuple[AppointmentRecord, StatusChanged]:
    """
    Validate and apply ``action``; the input record is never modified.

    Raises InvalidTransitionError for any (status, action) pair outside the
    edge set, including every action on completed, cancelled and no-show
    appointments.
    """
    new_status, stamped_fields = _resolve(appointment, action)

    changes = {field_name: now for field_name in stamped_fields}
    changes['status'] = new_status
    changes['updated_at'] = now

    updated = appointment.model_copy(update=changes)
    event = StatusChanged(
        appointment_id=appointment.id,
        previous_status=appointment.status,
        new_status=new_status,
        action=action,
    )
    return updated, event
