from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from barberflow.auth.dependencies import require_task_secret
from barberflow.core.clock import Clock, get_clock
from barberflow.core.errors import NotFoundError
from barberflow.routes.common import database_unavailable, ensure_database_ready, get_db
from barberflow.services.booked_slots import rebuild_booked_slots
from barberflow.services.calendar import get_provider
from barberflow.services.notifications import NotificationSender, get_sender
from barberflow.services.reminders import dispatch_reminders

router = APIRouter(tags=['tasks'], dependencies=[Depends(require_task_secret)])


class ReminderRunResponse(BaseModel):
    considered: int
    sent: int
    skipped: int
    already_claimed: int
    retry_scheduled: int
    failed: int


class RebuildResponse(BaseModel):
    provider_id: int
    rebuilt: int


@router.post('/reminders', response_model=ReminderRunResponse)
def run_reminders(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    sender: NotificationSender = Depends(get_sender),
):
    ensure_database_ready()

    try:
        summary = dispatch_reminders(db, sender, clock())
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return ReminderRunResponse(**asdict(summary))


@router.post('/booked-slots/{provider_id}/rebuild', response_model=RebuildResponse)
def rebuild_provider_booked_slots(provider_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        get_provider(db, provider_id)
        rebuilt = rebuild_booked_slots(db, provider_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return RebuildResponse(provider_id=provider_id, rebuilt=rebuilt)
