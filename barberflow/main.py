import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from barberflow.core.config import validate_runtime_config
from barberflow.database import Base, engine, ensure_appointment_schema, ensure_booked_slot_schema
from barberflow.models import appointment, booked_slot, reminder_delivery, schedule, service, user  # noqa: F401
from barberflow.routes import appointment_routes, provider_routes, task_routes

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=['http://localhost:3000'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
        ensure_booked_slot_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'BarberFlow Scheduling API Running'}


app.include_router(provider_routes.router, prefix='/providers')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(task_routes.router, prefix='/tasks')
