"""Reminder delivery ledger definitions."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from barberflow.database import Base


class ReminderDelivery(Base):
    """At-most-once claim on a reminder for one appointment start instant."""
    __tablename__ = "reminder_deliveries"
    __table_args__ = (UniqueConstraint("appointment_id", "epoch", name="uq_reminder_deliveries_appointment_epoch"),)

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, nullable=False, index=True)
    epoch = Column(String, nullable=False)
    claimed_at = Column(DateTime, nullable=False)
