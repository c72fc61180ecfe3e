"""Service model definitions."""

from sqlalchemy import Column, Float, ForeignKey, Integer, String
from barberflow.database import Base


class Service(Base):
    """Represents a service a provider offers."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    provider_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Float, default=0.0)
    duration = Column(Integer, nullable=False)  # minutes
