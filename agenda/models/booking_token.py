"""Booking token model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from agenda.database import Base, UTCDateTime


class BookingToken(Base):
    """Represents a single-use link that lets a patient book one session."""
    __tablename__ = "booking_tokens"

    token = Column(String(64), primary_key=True)
    patient_id = Column(Integer, nullable=False, index=True)
    issued_by = Column(Integer)
    created_at = Column(UTCDateTime, nullable=False)
    expires_at = Column(UTCDateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(UTCDateTime)
