from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user
from agenda.core import config
from agenda.models.user import User
from agenda.routes.availability_routes import list_day_slots
from agenda.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    scheduling_http_error,
    utcnow,
)
from agenda.scheduling import errors
from agenda.scheduling.booking_tokens import check_token, get_or_issue_token, redeem_token, validate_token
from agenda.scheduling.sessions import MAX_NOTES_LENGTH, SessionPayload
from agenda.scheduling.settings_store import load_settings
from agenda.scheduling.slots import TimeSlot

router = APIRouter(tags=['booking'])

BOOKING_PAGE_PATH = '/patient-booking'
MAX_LINK_TTL_DAYS = 30


class CreateBookingLinkRequest(BaseModel):
    patient_id: int
    force_new: bool = False
    ttl_days: int | None = None

    @field_validator('ttl_days')
    @classmethod
    def validate_ttl_days(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value <= 0 or value > MAX_LINK_TTL_DAYS:
            raise ValueError(f'Booking links can be valid for 1 to {MAX_LINK_TTL_DAYS} days.')
        return value


class BookingLinkResponse(BaseModel):
    token: str
    booking_path: str
    expires_at: datetime
    created: bool


class TokenStatusResponse(BaseModel):
    valid: bool
    expires_at: datetime | None = None
    reason: str | None = None


class CreateBookingRequest(BaseModel):
    token: str
    date: date
    time: time
    session_type: str = config.DEFAULT_SESSION_TYPE
    notes: str | None = None

    @field_validator('token')
    @classmethod
    def validate_token_value(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Booking token is required.')
        return normalized

    @field_validator('session_type')
    @classmethod
    def validate_session_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Session type is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

        return normalized


class BookingResponse(BaseModel):
    session_id: int
    scheduled_at: datetime
    duration_minutes: int


@router.post('/links', response_model=BookingLinkResponse, status_code=status.HTTP_201_CREATED)
def create_booking_link(
    data: CreateBookingLinkRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        ttl = timedelta(days=data.ttl_days or config.BOOKING_TOKEN_TTL_DAYS)
        booking_token, created = get_or_issue_token(
            db,
            patient_id=data.patient_id,
            issued_by=current_user.id,
            ttl=ttl,
            now=utcnow(),
            force_new=data.force_new,
        )
        return BookingLinkResponse(
            token=booking_token.token,
            booking_path=f'{BOOKING_PAGE_PATH}/{booking_token.token}',
            expires_at=booking_token.expires_at,
            created=created,
        )
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/{token}', response_model=TokenStatusResponse)
def get_booking_link_status(token: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        result = validate_token(db, token, utcnow())
        return TokenStatusResponse(valid=result.valid, expires_at=result.expires_at, reason=result.reason)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{token}/slots', response_model=list[TimeSlot])
def list_booking_slots(
    token: str,
    slot_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        check_token(db, token, utcnow())
        return list_day_slots(db, slot_date)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        settings = load_settings(db)
        payload = SessionPayload(
            scheduled_at=datetime.combine(data.date, data.time, tzinfo=settings.tz),
            duration_minutes=settings.appointment_duration_minutes,
            session_type=data.session_type,
            notes=data.notes,
        )
        session = redeem_token(db, data.token, payload, settings, utcnow())

        return BookingResponse(
            session_id=session.id,
            scheduled_at=session.scheduled_at,
            duration_minutes=session.duration_minutes,
        )
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
