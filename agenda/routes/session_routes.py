from datetime import date, datetime, time
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user
from agenda.core import config
from agenda.models.session import Session as SessionRecord
from agenda.models.user import User
from agenda.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    scheduling_http_error,
    utcnow,
)
from agenda.scheduling import errors
from agenda.scheduling.calendar_view import ViewMode, bucket_sessions, status_counts, utc_bounds, view_range
from agenda.scheduling.lifecycle import SessionStatus, allowed_transitions
from agenda.scheduling.sessions import (
    MAX_NOTES_LENGTH,
    SessionPayload,
    create_session,
    get_session,
    sessions_between,
    transition_session,
)
from agenda.scheduling.settings_store import load_settings

router = APIRouter(tags=['sessions'])


class SessionResponse(BaseModel):
    id: int
    patient_id: int
    scheduled_at: datetime
    local_date: date
    local_time: time
    duration_minutes: int
    session_type: str
    status: SessionStatus
    notes: str | None = None
    price: Decimal | None = None
    booked_with_link: bool
    allowed_transitions: list[SessionStatus]


class CalendarDayResponse(BaseModel):
    date: date
    sessions: list[SessionResponse]


class CalendarResponse(BaseModel):
    view: ViewMode
    start_date: date
    end_date: date
    timezone: str
    days: list[CalendarDayResponse]
    status_counts: dict[SessionStatus, int]


class CreateSessionRequest(BaseModel):
    patient_id: int
    date: date
    time: time
    duration_minutes: int | None = None
    session_type: str = config.DEFAULT_SESSION_TYPE
    notes: str | None = None
    price: Decimal | None = None

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


class UpdateSessionStatusRequest(BaseModel):
    status: SessionStatus

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


def to_session_response(session: SessionRecord, tz) -> SessionResponse:
    local_start = session.scheduled_at.astimezone(tz)
    return SessionResponse(
        id=session.id,
        patient_id=session.patient_id,
        scheduled_at=session.scheduled_at,
        local_date=local_start.date(),
        local_time=local_start.time().replace(tzinfo=None),
        duration_minutes=session.duration_minutes,
        session_type=session.session_type,
        status=session.status,
        notes=session.notes,
        price=session.price,
        booked_with_link=session.booking_token is not None,
        allowed_transitions=sorted(allowed_transitions(session.status), key=lambda item: item.value),
    )


@router.get('', response_model=CalendarResponse)
def list_sessions(
    anchor: date = Query(...),
    view: ViewMode = Query(default=ViewMode.WEEK),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        settings = load_settings(db)
        tz = settings.tz
        start_date, end_date = view_range(anchor, view)
        range_start, range_end = utc_bounds(start_date, end_date, tz)
        sessions = sessions_between(db, range_start, range_end)
        buckets = bucket_sessions(sessions, start_date, end_date, tz)

        return CalendarResponse(
            view=view,
            start_date=start_date,
            end_date=end_date,
            timezone=settings.timezone,
            days=[
                CalendarDayResponse(
                    date=day,
                    sessions=[to_session_response(session, tz) for session in day_sessions],
                )
                for day, day_sessions in buckets.items()
            ],
            status_counts=status_counts(sessions),
        )
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{session_id}', response_model=SessionResponse)
def get_session_detail(
    session_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        settings = load_settings(db)
        return to_session_response(get_session(db, session_id), settings.tz)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_therapist_session(
    data: CreateSessionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        settings = load_settings(db)
        duration_minutes = data.duration_minutes
        if duration_minutes is None:
            duration_minutes = settings.appointment_duration_minutes
        payload = SessionPayload(
            patient_id=data.patient_id,
            scheduled_at=datetime.combine(data.date, data.time, tzinfo=settings.tz),
            duration_minutes=duration_minutes,
            session_type=data.session_type,
            notes=data.notes,
            price=data.price,
        )
        session = create_session(db, payload, settings, utcnow())
        return to_session_response(session, settings.tz)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/{session_id}/status', response_model=SessionResponse)
def update_session_status(
    session_id: int,
    data: UpdateSessionStatusRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        session = transition_session(db, session_id, data.status)
        return to_session_response(session, load_settings(db).tz)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
