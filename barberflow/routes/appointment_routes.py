from datetime import date, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.auth.dependencies import get_current_provider, get_current_user
from barberflow.core.clock import Clock, get_clock
from barberflow.core.errors import SchedulingError
from barberflow.models.user import User
from barberflow.routes.common import database_unavailable, ensure_database_ready, get_db, to_http_exception
from barberflow.scheduling.records import AppointmentRecord, appointment_record
from barberflow.scheduling.slots import NO_SLOT_AVAILABLE
from barberflow.scheduling.state_machine import CUSTOMER_ACTIONS, PROVIDER_ACTIONS, AppointmentAction
from barberflow.services.appointments import delete_appointment, get_appointment, transition_appointment
from barberflow.services.triggers import on_appointment_created, on_appointment_deleted, on_appointment_updated
from barberflow.services.walk_in import MAX_CUSTOMER_NAME_LENGTH, create_walk_in

router = APIRouter(tags=['appointments'])


class WalkInRequest(BaseModel):
    service_id: int
    customer_name: str

    @field_validator('customer_name')
    @classmethod
    def validate_customer_name(cls, value: str) -> str:
        normalized = value.strip()

        if not normalized:
            raise ValueError('Customer name is required.')
        if len(normalized) > MAX_CUSTOMER_NAME_LENGTH:
            raise ValueError(f'Customer name must be {MAX_CUSTOMER_NAME_LENGTH} characters or fewer.')

        return normalized


class AppointmentActionRequest(BaseModel):
    action: AppointmentAction


class AppointmentResponse(BaseModel):
    id: int
    provider_id: int
    customer_id: int | None = None
    customer_name: str | None = None
    service_name: str | None = None
    price: float
    date: date
    start_time: str
    end_time: str
    status: str
    customer_checked_in_at: datetime | None = None
    provider_checked_in_at: datetime | None = None
    service_started_at: datetime | None = None
    customer_marked_done_at: datetime | None = None
    provider_marked_done_at: datetime | None = None
    service_completed_at: datetime | None = None

    class Config:
        from_attributes = True


class WalkInResponse(BaseModel):
    slot_found: bool
    message: str
    appointment: AppointmentResponse | None = None


def authorize_action(appointment: AppointmentRecord, action: AppointmentAction, user: User) -> None:
    is_provider = user.id == appointment.provider_id
    is_customer = appointment.customer_id is not None and user.id == appointment.customer_id

    if (is_provider and action in PROVIDER_ACTIONS) or (is_customer and action in CUSTOMER_ACTIONS):
        return

    if not (is_provider or is_customer):
        detail = 'Only the provider or the customer of this appointment can update it.'
    elif is_provider:
        detail = 'Providers cannot perform customer actions.'
    else:
        detail = 'Customers cannot perform provider actions.'
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


@router.post('/walk-in', response_model=WalkInResponse)
def create_walk_in_appointment(
    data: WalkInRequest,
    background_tasks: BackgroundTasks,
    current_provider: User = Depends(get_current_provider),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        result = create_walk_in(db, current_provider.id, data.service_id, data.customer_name, clock())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if result is NO_SLOT_AVAILABLE:
        return WalkInResponse(slot_found=False, message='No available slot for this service today.')

    background_tasks.add_task(on_appointment_created, result)
    return WalkInResponse(
        slot_found=True,
        message=f'Walk-in booked for {result.start_time} - {result.end_time}.',
        appointment=AppointmentResponse.model_validate(result),
    )


@router.post('/{appointment_id}/actions', response_model=AppointmentResponse)
def apply_appointment_action(
    appointment_id: int,
    data: AppointmentActionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        authorize_action(appointment_record(get_appointment(db, appointment_id)), data.action, current_user)
        before, after, _ = transition_appointment(db, appointment_id, data.action, clock())
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    background_tasks.add_task(on_appointment_updated, before, after)
    return AppointmentResponse.model_validate(after)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    current_provider: User = Depends(get_current_provider),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = get_appointment(db, appointment_id)
        if appointment.provider_id != current_provider.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the provider of this appointment can delete it.',
            )
        deleted = delete_appointment(db, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    background_tasks.add_task(on_appointment_deleted, deleted)
