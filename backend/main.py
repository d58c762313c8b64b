import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import Base, engine, ensure_appointment_schema
from backend.models import appointment, doctor, patient  # noqa: F401
from backend.routes import appointment_routes, doctor_routes, payment_routes

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(doctor_routes.router, prefix='/doctors')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(payment_routes.router, prefix='/payments')
