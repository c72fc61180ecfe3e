import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barberflow.db")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False
_booked_slot_schema_checked = False


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('reminder_sent', 'ALTER TABLE appointments ADD COLUMN reminder_sent BOOLEAN DEFAULT FALSE'),
            ('reminder_skipped_reason', 'ALTER TABLE appointments ADD COLUMN reminder_skipped_reason VARCHAR'),
            ('service_started_at', 'ALTER TABLE appointments ADD COLUMN service_started_at TIMESTAMP'),
            ('service_completed_at', 'ALTER TABLE appointments ADD COLUMN service_completed_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_provider_date '
                    'ON appointments(provider_id, date, start_minutes)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_reminder_window '
                    'ON appointments(status, reminder_sent, appointment_timestamp)'
                )
            )

        _appointment_schema_checked = True


def ensure_booked_slot_schema() -> None:
    global _booked_slot_schema_checked

    if _booked_slot_schema_checked:
        return

    with _schema_lock:
        if _booked_slot_schema_checked:
            return

        inspector = inspect(engine)

        if 'booked_slots' not in inspector.get_table_names():
            _booked_slot_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_booked_slots_provider_date ON booked_slots(provider_id, date)')
            )

        _booked_slot_schema_checked = True
