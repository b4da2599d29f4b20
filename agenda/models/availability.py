"""Availability settings model definitions."""

from sqlalchemy import JSON, Column, Integer, String, Time
from agenda.database import Base, UTCDateTime


class AvailabilitySettingsRecord(Base):
    """Stores the working hours the practice offers for booking."""
    __tablename__ = "availability_settings"

    id = Column(Integer, primary_key=True)
    working_days = Column(String, nullable=False)  # comma separated weekday numbers
    day_start = Column(Time, nullable=False)
    day_end = Column(Time, nullable=False)
    appointment_duration_minutes = Column(Integer, nullable=False)
    break_windows = Column(JSON, nullable=False, default=list)
    timezone = Column(String, nullable=False)
    updated_by = Column(Integer)
    updated_at = Column(UTCDateTime)
