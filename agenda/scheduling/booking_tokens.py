"""
Booking links.

A booking token lets a patient without an account create exactly one
session. Redemption flips ``used`` with a conditional UPDATE inside the same
transaction that inserts the session, so when two requests race on one
token only one of them sees its update applied.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Iterable

from pydantic import BaseModel
from sqlalchemy.orm import Session as DbSession

from agenda import notifications
from agenda.models.booking_token import BookingToken
from agenda.models.session import Session
from agenda.scheduling import errors
from agenda.scheduling.sessions import SessionPayload, insert_session
from agenda.scheduling.settings import AvailabilitySettings
from agenda.scheduling.slots import ensure_aware

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class TokenCheck(BaseModel):
    valid: bool
    patient_id: int | None = None
    expires_at: datetime | None = None
    reason: str | None = None


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def issue_token(
    db: DbSession,
    patient_id: int,
    issued_by: int | None,
    ttl: timedelta,
    now: datetime,
) -> BookingToken:
    ensure_aware(now)
    if ttl <= timedelta(0):
        raise errors.ValidationError('Booking links must be valid for a positive amount of time.')

    booking_token = BookingToken(
        token=generate_token(),
        patient_id=patient_id,
        issued_by=issued_by,
        created_at=now,
        expires_at=now + ttl,
        used=False,
    )
    db.add(booking_token)
    db.commit()
    db.refresh(booking_token)
    logger.info('Booking link issued for patient %s by user %s', patient_id, issued_by)

    return booking_token


def find_active_token(db: DbSession, patient_id: int, now: datetime) -> BookingToken | None:
    return db.query(BookingToken).filter(
        BookingToken.patient_id == patient_id,
        BookingToken.used.is_(False),
        BookingToken.expires_at > now,
    ).order_by(BookingToken.expires_at.desc()).first()


def get_or_issue_token(
    db: DbSession,
    patient_id: int,
    issued_by: int | None,
    ttl: timedelta,
    now: datetime,
    force_new: bool = False,
) -> tuple[BookingToken, bool]:
    """Reuse the patient's open link unless ``force_new``. Returns ``(token, created)``."""
    if not force_new:
        existing = find_active_token(db, patient_id, now)
        if existing is not None:
            return existing, False
    return issue_token(db, patient_id, issued_by, ttl, now), True


def check_token(db: DbSession, token: str, now: datetime) -> BookingToken:
    """Return the token row or raise the reason it cannot be used.

    Expiry is reported before use, so an expired link always reads as
    expired.
    """
    ensure_aware(now)
    booking_token = db.get(BookingToken, token) if token else None
    if booking_token is None:
        raise errors.TokenNotFound()
    if now >= booking_token.expires_at:
        raise errors.TokenExpired()
    if booking_token.used:
        raise errors.TokenAlreadyUsed()
    return booking_token


def validate_token(db: DbSession, token: str, now: datetime) -> TokenCheck:
    try:
        booking_token = check_token(db, token, now)
    except errors.SchedulingError as exc:
        return TokenCheck(valid=False, reason=exc.code)
    return TokenCheck(valid=True, patient_id=booking_token.patient_id, expires_at=booking_token.expires_at)


def _claim(db: DbSession, token: str, now: datetime) -> bool:
    claimed = db.query(BookingToken).filter(
        BookingToken.token == token,
        BookingToken.used.is_(False),
        BookingToken.expires_at > now,
    ).update({BookingToken.used: True, BookingToken.used_at: now}, synchronize_session=False)
    return claimed == 1


def redeem_token(
    db: DbSession,
    token: str,
    payload: SessionPayload,
    settings: AvailabilitySettings,
    now: datetime,
    listeners: Iterable[notifications.SessionListener] | None = None,
) -> Session:
    """
    Create the session a booking link allows, all in one transaction.

    The token is re-checked, claimed with a compare-and-swap on ``used``
    and only then is the session inserted. A claim that touches no row
    means another request redeemed the link first. The patient always comes
    from the token, never from the payload.
    """
    booking_token = check_token(db, token, now)
    payload = payload.model_copy(update={'patient_id': booking_token.patient_id})

    if not _claim(db, token, now):
        db.rollback()
        db.expire_all()
        current = db.get(BookingToken, token)
        if current is not None and now >= current.expires_at:
            raise errors.TokenExpired()
        raise errors.TokenAlreadyUsed()

    try:
        session = insert_session(
            db,
            payload,
            settings,
            now,
            booking_token=token,
            require_slot=True,
        )
    except errors.SchedulingError:
        db.rollback()
        raise
    db.commit()
    db.refresh(session)
    logger.info('Booking link redeemed for patient %s, session %s created', session.patient_id, session.id)

    notifications.dispatch(
        notifications.SessionEvent(
            session_id=session.id,
            patient_id=session.patient_id,
            scheduled_at=session.scheduled_at,
            status=session.status,
            booked_with_link=True,
        ),
        listeners,
    )
    return session
