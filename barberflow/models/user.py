"""User model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from barberflow.database import Base


class User(Base):
    """Represents a customer or a service provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # customer/provider
    first_name = Column(String)
    last_name = Column(String)
    notification_token = Column(String, nullable=True)
    is_temporarily_unavailable = Column(Boolean, default=False, nullable=False)
    unavailable_since = Column(DateTime, nullable=True)
    # Bumped by every slot reservation; see services.walk_in.
    calendar_version = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, nullable=True)
