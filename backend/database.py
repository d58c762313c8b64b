from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config
from backend.scheduling.lifecycle import active_status_clause


def build_engine(database_url: str, timeout_seconds: int = config.STORAGE_TIMEOUT_SECONDS) -> Engine:
    """Create an engine whose connections give up after ``timeout_seconds``."""
    url = make_url(database_url)
    backend_name = url.get_backend_name()

    if backend_name == 'sqlite':
        return create_engine(
            url,
            connect_args={'timeout': timeout_seconds, 'check_same_thread': False},
        )

    connect_args = {}
    if backend_name == 'postgresql':
        connect_args = {
            'connect_timeout': timeout_seconds,
            'options': f'-c statement_timeout={timeout_seconds * 1000}',
        }

    return create_engine(
        url,
        connect_args=connect_args,
        pool_timeout=timeout_seconds,
        pool_pre_ping=True,
    )


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

ACTIVE_SLOT_INDEX_NAME = 'uq_appointments_active_slot'

_schema_lock = Lock()
_appointment_schema_checked = False


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    """Bring an existing appointments table up to date.

    Older tables may predate the payment columns and the partial unique index
    that keeps a (doctor, date, slot) triple to a single active booking.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('blood_pressure', 'ALTER TABLE appointments ADD COLUMN blood_pressure VARCHAR(20)'),
            ('payment_method', 'ALTER TABLE appointments ADD COLUMN payment_method VARCHAR'),
            ('payment_order_id', 'ALTER TABLE appointments ADD COLUMN payment_order_id VARCHAR'),
            ('payment_signature', 'ALTER TABLE appointments ADD COLUMN payment_signature VARCHAR'),
            ('amount', 'ALTER TABLE appointments ADD COLUMN amount INTEGER'),
            ('currency', 'ALTER TABLE appointments ADD COLUMN currency VARCHAR'),
            ('paid_at', 'ALTER TABLE appointments ADD COLUMN paid_at TIMESTAMP'),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    f'CREATE UNIQUE INDEX IF NOT EXISTS {ACTIVE_SLOT_INDEX_NAME} '
                    f'ON appointments(doctor_id, appointment_date, slot) WHERE {active_status_clause()}'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date ON appointments(doctor_id, appointment_date)')
            )

        _appointment_schema_checked = True
