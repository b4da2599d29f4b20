"""Schedule lock model definitions."""

from sqlalchemy import Column, Integer
from agenda.database import Base

PRACTICE_LOCK_ID = 1


class ScheduleLock(Base):
    """A single row that writers of the calendar lock before checking for overlaps."""
    __tablename__ = "schedule_locks"

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
