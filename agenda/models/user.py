"""Staff accounts allowed to manage the agenda."""

from sqlalchemy import Boolean, Column, Integer, String
from agenda.database import Base


class User(Base):
    """A therapist or assistant of the practice."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String)
    role = Column(String, nullable=False, default="therapist")  # therapist/assistant
    is_active = Column(Boolean, nullable=False, default=True)
