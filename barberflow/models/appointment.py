"""Appointment model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String
from barberflow.database import Base


class Appointment(Base):
    """Represents a scheduled appointment."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    provider_name = Column(String)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null for walk-ins
    customer_name = Column(String)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    service_name = Column(String)
    price = Column(Float, default=0.0)
    date = Column(Date, nullable=False)
    # Provider-local minutes since midnight.
    start_minutes = Column(Integer, nullable=False)
    end_minutes = Column(Integer, nullable=False)
    appointment_timestamp = Column(DateTime, nullable=False)
    status = Column(String, default="upcoming", nullable=False)
    customer_checked_in_at = Column(DateTime, nullable=True)
    provider_checked_in_at = Column(DateTime, nullable=True)
    service_started_at = Column(DateTime, nullable=True)
    customer_marked_done_at = Column(DateTime, nullable=True)
    provider_marked_done_at = Column(DateTime, nullable=True)
    service_completed_at = Column(DateTime, nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    reminder_skipped_reason = Column(String, nullable=True)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
