import os
from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from barberflow.database import Base  # noqa: E402
from barberflow.models.appointment import Appointment  # noqa: E402
from barberflow.models.booked_slot import BookedSlot  # noqa: E402,F401
from barberflow.models.reminder_delivery import ReminderDelivery  # noqa: E402,F401
from barberflow.models.schedule import DayTemplate, UnavailableDate  # noqa: E402,F401
from barberflow.models.service import Service  # noqa: E402
from barberflow.models.user import User  # noqa: E402
from barberflow.scheduling.time_arithmetic import combine  # noqa: E402
from barberflow.services.notifications import DeliveryErrorKind, DeliveryResult  # noqa: E402


class FakeSender:
    """Records every push and answers from a per-token script."""

    def __init__(self, results: dict[str, DeliveryResult] | None = None):
        self.results = results or {}
        self.sent: list[tuple[str, str, str]] = []

    def send(self, recipient_token: str, title: str, body: str) -> DeliveryResult:
        self.sent.append((recipient_token, title, body))
        return self.results.get(recipient_token, DeliveryResult.success())


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def invalid_token_result() -> DeliveryResult:
    return DeliveryResult.failure(DeliveryErrorKind.INVALID_TOKEN, 'Requested entity was not found.')


@pytest.fixture
def transient_result() -> DeliveryResult:
    return DeliveryResult.failure(DeliveryErrorKind.TRANSIENT, 'Push endpoint returned HTTP 503.')


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: str = 'customer', token: str | None = None, **fields) -> User:
        user = User(
            email=email,
            role=role,
            first_name=fields.pop('first_name', email.split('@')[0].title()),
            last_name=fields.pop('last_name', None),
            notification_token=token,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def provider(make_user) -> User:
    return make_user('sam@shop.example', role='provider', token='provider-token', first_name='Sam', last_name='Cutter')


@pytest.fixture
def customer(make_user) -> User:
    return make_user('alex@example.com', token='customer-token', first_name='Alex')


@pytest.fixture
def haircut(db, provider) -> Service:
    service = Service(provider_id=provider.id, name='Haircut', price=25.0, duration=30)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture
def make_appointment(db, provider, haircut):
    def _make_appointment(
        day: date,
        start_minutes: int,
        end_minutes: int | None = None,
        status: str = 'upcoming',
        customer: User | None = None,
        **fields,
    ) -> Appointment:
        appointment = Appointment(
            provider_id=provider.id,
            provider_name='Sam Cutter',
            customer_id=customer.id if customer else None,
            customer_name=customer.first_name if customer else 'Walk-in Guest',
            service_id=haircut.id,
            service_name=haircut.name,
            price=haircut.price,
            date=day,
            start_minutes=start_minutes,
            end_minutes=end_minutes if end_minutes is not None else start_minutes + haircut.duration,
            appointment_timestamp=combine(day, start_minutes),
            status=status,
            reminder_sent=fields.pop('reminder_sent', False),
            created_at=datetime(2026, 1, 1, 8, 0),
            updated_at=datetime(2026, 1, 1, 8, 0),
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make_appointment
