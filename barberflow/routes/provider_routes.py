from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.auth.dependencies import get_current_provider
from barberflow.core.clock import Clock, get_clock
from barberflow.core.errors import ConflictError, NotFoundError, ValidationError
from barberflow.models.user import User
from barberflow.routes.common import database_unavailable, ensure_database_ready, get_db
from barberflow.services.booked_slots import list_booked_slots
from barberflow.services.triggers import on_provider_returned
from barberflow.services.unavailability import set_temporary_unavailability

router = APIRouter(tags=['providers'])


class TemporaryUnavailabilityRequest(BaseModel):
    becoming_unavailable: bool


class TemporaryUnavailabilityResponse(BaseModel):
    success: bool
    message: str


class BookedSlotResponse(BaseModel):
    appointment_id: int
    date: date
    start_time: str
    end_time: str

    class Config:
        from_attributes = True


@router.post('/me/temporary-unavailability', response_model=TemporaryUnavailabilityResponse)
def set_my_temporary_unavailability(
    data: TemporaryUnavailabilityRequest,
    background_tasks: BackgroundTasks,
    current_provider: User = Depends(get_current_provider),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    ensure_database_ready()

    try:
        outcome = set_temporary_unavailability(db, current_provider.id, data.becoming_unavailable, clock())
    except ValidationError as exc:
        return TemporaryUnavailabilityResponse(success=False, message=str(exc))
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Provider profile not found.',
        ) from exc
    except ConflictError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Could not update availability. No appointment was changed.',
        ) from exc

    if outcome.shifted:
        background_tasks.add_task(on_provider_returned, outcome.busy_minutes, outcome.shifted)

    return TemporaryUnavailabilityResponse(success=outcome.success, message=outcome.message)


@router.get('/{provider_id}/booked-slots', response_model=list[BookedSlotResponse])
def list_provider_booked_slots(
    provider_id: int,
    day: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = list_booked_slots(db, provider_id, day)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [BookedSlotResponse.model_validate(slot) for slot in slots]
