"""Public booked slot index definitions."""

from sqlalchemy import Column, Date, Integer
from barberflow.database import Base


class BookedSlot(Base):
    """Time-only projection of an active appointment, safe to expose publicly."""
    __tablename__ = "booked_slots"

    provider_id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False)
    start_minutes = Column(Integer, nullable=False)
    end_minutes = Column(Integer, nullable=False)
