import os
from datetime import datetime, timezone
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import DateTime, create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from agenda.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_session_schema_checked = False
_booking_token_schema_checked = False


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and hands them back timezone-aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes cannot be stored; attach a timezone first.")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def ensure_session_schema() -> None:
    global _session_schema_checked

    if _session_schema_checked:
        return

    with _schema_lock:
        if _session_schema_checked:
            return

        inspector = inspect(engine)

        if 'sessions' not in inspector.get_table_names():
            _session_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_sessions_patient_start ON sessions(patient_id, scheduled_at)')
            )
            connection.execute(
                text(
                    "CREATE UNIQUE INDEX IF NOT EXISTS uq_sessions_active_start ON sessions(scheduled_at) "
                    "WHERE status <> 'canceled'"
                )
            )
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_sessions_booking_token ON sessions(booking_token)')
            )
            if 'schedule_locks' in inspector.get_table_names():
                connection.execute(
                    text(
                        'INSERT INTO schedule_locks (id, version) SELECT 1, 0 '
                        'WHERE NOT EXISTS (SELECT 1 FROM schedule_locks WHERE id = 1)'
                    )
                )

        _session_schema_checked = True


def ensure_booking_token_schema() -> None:
    global _booking_token_schema_checked

    if _booking_token_schema_checked:
        return

    with _schema_lock:
        if _booking_token_schema_checked:
            return

        inspector = inspect(engine)

        if 'booking_tokens' not in inspector.get_table_names():
            _booking_token_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_booking_tokens_patient_expiry ON booking_tokens(patient_id, expires_at)')
            )

        _booking_token_schema_checked = True
