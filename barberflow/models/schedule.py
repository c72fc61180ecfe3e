"""Weekly schedule and unavailable date model definitions."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Integer, String, UniqueConstraint
from barberflow.database import Base


class DayTemplate(Base):
    """One weekday of a provider's weekly template, times as "hh:mm AM"."""
    __tablename__ = "day_templates"
    __table_args__ = (UniqueConstraint("provider_id", "day", name="uq_day_templates_provider_day"),)

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    day = Column(String, nullable=False)
    is_open = Column(Boolean, default=True, nullable=False)
    start_time = Column(String, nullable=False)
    end_time = Column(String, nullable=False)


class UnavailableDate(Base):
    """A calendar date on which the provider takes no appointments."""
    __tablename__ = "unavailable_dates"
    __table_args__ = (UniqueConstraint("provider_id", "date", name="uq_unavailable_dates_provider_date"),)

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String, nullable=True)
