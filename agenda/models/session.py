"""Session model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, Enum, Index, Integer, Numeric, String, text
from agenda.database import Base, UTCDateTime
from agenda.scheduling.lifecycle import SessionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(Base):
    """Represents an appointment between the therapist and a patient."""
    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_patient_start", "patient_id", "scheduled_at"),
        # One active session per start instant; canceled sessions free the time.
        Index(
            "uq_sessions_active_start",
            "scheduled_at",
            unique=True,
            sqlite_where=text("status <> 'canceled'"),
            postgresql_where=text("status <> 'canceled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, nullable=False, index=True)
    scheduled_at = Column(UTCDateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    session_type = Column(String, nullable=False)
    status = Column(
        Enum(
            SessionStatus,
            native_enum=False,
            length=20,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=SessionStatus.SCHEDULED,
    )
    notes = Column(String)
    price = Column(Numeric(10, 2))
    booking_token = Column(String(64), unique=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
