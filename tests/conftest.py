import os
from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from agenda.database import Base  # noqa: E402
from agenda.models.availability import AvailabilitySettingsRecord  # noqa: E402,F401
from agenda.models.booking_token import BookingToken  # noqa: E402,F401
from agenda.models.schedule_lock import ScheduleLock  # noqa: E402,F401
from agenda.models.session import Session  # noqa: E402
from agenda.models.user import User  # noqa: E402,F401
from agenda.scheduling.lifecycle import SessionStatus  # noqa: E402
from agenda.scheduling.settings import AvailabilitySettings  # noqa: E402

PRACTICE_TIMEZONE = 'America/Sao_Paulo'

# Monday 2026-01-05 09:00 in Sao Paulo (UTC-3).
FIXED_NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> AvailabilitySettings:
    return AvailabilitySettings(
        working_days=['monday', 'tuesday', 'wednesday', 'thursday', 'friday'],
        day_start=time(8, 0),
        day_end=time(18, 0),
        appointment_duration_minutes=60,
        break_windows=[{'start': time(12, 0), 'end': time(13, 0)}],
        timezone=PRACTICE_TIMEZONE,
    )


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on separate connections to one database file, for race tests."""
    engine = create_engine(
        f'sqlite:///{tmp_path / "agenda.db"}',
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def add_session(db):
    def _add_session(
        scheduled_at: datetime,
        duration_minutes: int = 60,
        status: SessionStatus = SessionStatus.SCHEDULED,
        patient_id: int = 1,
    ) -> Session:
        session = Session(
            patient_id=patient_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            session_type='individual',
            status=status,
            created_at=scheduled_at - timedelta(days=1),
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    return _add_session
