import os
from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base, build_engine  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402, F401
from backend.models.doctor import Doctor  # noqa: E402
from backend.models.patient import Patient, PatientSequence  # noqa: E402, F401
from backend.scheduling.slots import SlotCatalog  # noqa: E402

BOOKING_DAY_MORNING = datetime(2025, 6, 10, 8, 0)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'clinic.db'}", timeout_seconds=30)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = factory()
    try:
        db.add_all([
            Doctor(id='doc1', name='Dr. Asha Rao', specialty='Cardiology'),
            Doctor(id='doc2', name='Dr. Vikram Sen', specialty=None),
        ])
        db.commit()
    finally:
        db.close()

    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog() -> SlotCatalog:
    return SlotCatalog(open_hour=9, close_hour=17, step_minutes=30, include_close=False)


@pytest.fixture
def frozen_now() -> datetime:
    return BOOKING_DAY_MORNING
