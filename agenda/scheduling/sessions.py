"""
Session store.

Reads sessions by date range and owns the only write paths: inserting a new
session and changing its status. Inserts hold the practice schedule lock
while they check for overlaps; status changes use a conditional update. The
unique index on active start times stays as a last guard.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from agenda import notifications
from agenda.models.schedule_lock import PRACTICE_LOCK_ID, ScheduleLock
from agenda.models.session import Session
from agenda.scheduling import errors
from agenda.scheduling.calendar_view import utc_bounds
from agenda.scheduling.conflicts import find_conflicts, intervals_overlap, session_end
from agenda.scheduling.lifecycle import SessionStatus, check_transition
from agenda.scheduling.settings import AvailabilitySettings
from agenda.scheduling.slots import find_slot, generate_slots

logger = logging.getLogger(__name__)

MAX_SESSION_MINUTES = 24 * 60
MAX_NOTES_LENGTH = 2000


class SessionPayload(BaseModel):
    patient_id: int | None = None
    scheduled_at: datetime
    duration_minutes: int
    session_type: str
    notes: str | None = None
    price: Decimal | None = None


def validate_payload(payload: SessionPayload) -> None:
    if payload.patient_id is None:
        raise errors.ValidationError('A patient is required.')
    if payload.duration_minutes <= 0:
        raise errors.ValidationError('Session duration must be greater than zero.')
    if payload.duration_minutes > MAX_SESSION_MINUTES:
        raise errors.ValidationError('Sessions cannot be longer than one day.')
    if payload.scheduled_at.tzinfo is None or payload.scheduled_at.utcoffset() is None:
        raise errors.ValidationError('Session start time must include a timezone.')
    if not payload.session_type or not payload.session_type.strip():
        raise errors.ValidationError('Session type is required.')
    if payload.notes is not None and len(payload.notes) > MAX_NOTES_LENGTH:
        raise errors.ValidationError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')
    if payload.price is not None and payload.price < 0:
        raise errors.ValidationError('Price cannot be negative.')


def get_session(db: DbSession, session_id: int) -> Session:
    session = db.get(Session, session_id)
    if session is None:
        raise errors.SessionNotFound()
    return session


def sessions_between(db: DbSession, start: datetime, end: datetime) -> list[Session]:
    """Sessions starting in ``[start, end)``."""
    return db.query(Session).filter(
        Session.scheduled_at >= start,
        Session.scheduled_at < end,
    ).order_by(Session.scheduled_at.asc()).all()


def sessions_overlapping(db: DbSession, start: datetime, end: datetime) -> list[Session]:
    """Sessions sharing any instant with ``[start, end)``, whatever their status."""
    candidates = sessions_between(db, start - timedelta(minutes=MAX_SESSION_MINUTES), end)
    return [
        session
        for session in candidates
        if intervals_overlap(start, end, session.scheduled_at, session_end(session))
    ]


def sessions_on_day(db: DbSession, day: date, tz: ZoneInfo) -> list[Session]:
    start, end = utc_bounds(day, day, tz)
    return sessions_overlapping(db, start, end)


def ensure_bookable_slot(payload: SessionPayload, settings: AvailabilitySettings, now: datetime) -> None:
    """Reject starts that are not one of the generated slots for their day."""
    local_start = payload.scheduled_at.astimezone(settings.tz)
    slot = find_slot(generate_slots(local_start.date(), settings, now), local_start.time())
    if (
        slot is None
        or slot.starts_at != payload.scheduled_at
        or payload.duration_minutes != settings.appointment_duration_minutes
    ):
        raise errors.SlotUnavailable()


def lock_schedule(db: DbSession) -> None:
    """Take the practice-wide write lock for the rest of the transaction."""
    locked = db.query(ScheduleLock).filter(ScheduleLock.id == PRACTICE_LOCK_ID).update(
        {ScheduleLock.version: ScheduleLock.version + 1},
        synchronize_session=False,
    )
    if locked == 0:
        db.add(ScheduleLock(id=PRACTICE_LOCK_ID, version=1))
        db.flush()


def insert_session(
    db: DbSession,
    payload: SessionPayload,
    settings: AvailabilitySettings,
    now: datetime,
    booking_token: str | None = None,
    require_slot: bool = False,
) -> Session:
    """
    Add a session to the current transaction without committing it.

    The practice schedule lock is taken before the overlap check and held
    until the caller commits or rolls back, so a concurrent writer waits
    and then sees this session when it runs its own check.
    """
    validate_payload(payload)
    if require_slot:
        ensure_bookable_slot(payload, settings, now)

    lock_schedule(db)

    start = payload.scheduled_at
    end = start + timedelta(minutes=payload.duration_minutes)
    if find_conflicts(start, end, sessions_overlapping(db, start, end)):
        db.rollback()
        raise errors.SlotUnavailable()

    session = Session(
        patient_id=payload.patient_id,
        scheduled_at=start,
        duration_minutes=payload.duration_minutes,
        session_type=payload.session_type.strip(),
        status=SessionStatus.SCHEDULED,
        notes=payload.notes,
        price=payload.price,
        booking_token=booking_token,
        created_at=now,
    )
    db.add(session)

    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise errors.SlotUnavailable() from exc

    return session


def create_session(
    db: DbSession,
    payload: SessionPayload,
    settings: AvailabilitySettings,
    now: datetime,
    listeners: Iterable[notifications.SessionListener] | None = None,
) -> Session:
    session = insert_session(db, payload, settings, now)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise errors.SlotUnavailable() from exc
    db.refresh(session)

    notifications.dispatch(
        notifications.SessionEvent(
            session_id=session.id,
            patient_id=session.patient_id,
            scheduled_at=session.scheduled_at,
            status=session.status,
        ),
        listeners,
    )
    return session


def transition_session(
    db: DbSession,
    session_id: int,
    target: SessionStatus,
    listeners: Iterable[notifications.SessionListener] | None = None,
) -> Session:
    session = get_session(db, session_id)
    current = session.status
    check_transition(current, target)

    updated = db.query(Session).filter(
        Session.id == session_id,
        Session.status == current,
    ).update({Session.status: target}, synchronize_session=False)

    if updated == 0:
        db.rollback()
        raise errors.InvalidTransition('This session was changed by someone else. Reload it and try again.')

    db.commit()
    db.refresh(session)
    logger.info('Session %s status changed from %s to %s', session.id, current.value, target.value)

    notifications.dispatch(
        notifications.SessionEvent(
            session_id=session.id,
            patient_id=session.patient_id,
            scheduled_at=session.scheduled_at,
            previous_status=current,
            status=session.status,
        ),
        listeners,
    )
    return session
