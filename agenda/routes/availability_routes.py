from datetime import date, time, timedelta

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agenda.auth.dependencies import get_current_user
from agenda.core import config
from agenda.models.user import User
from agenda.routes.common import (
    database_unavailable,
    ensure_database_ready,
    get_db,
    scheduling_http_error,
    utcnow,
)
from agenda.scheduling import errors
from agenda.scheduling.conflicts import next_available_slot, resolve_conflicts
from agenda.scheduling.sessions import sessions_overlapping
from agenda.scheduling.calendar_view import utc_bounds
from agenda.scheduling.settings import AvailabilitySettings, BreakWindow
from agenda.scheduling.settings_store import load_settings, save_settings
from agenda.scheduling.slots import TimeSlot, generate_slots, generate_slots_for_range

router = APIRouter(tags=['availability'])

MAX_RANGE_DAYS = 31


class AvailabilitySettingsResponse(BaseModel):
    working_days: list[str]
    day_start: time
    day_end: time
    appointment_duration_minutes: int
    break_windows: list[BreakWindow]
    timezone: str


def to_settings_response(settings: AvailabilitySettings) -> AvailabilitySettingsResponse:
    return AvailabilitySettingsResponse(
        working_days=settings.working_day_names(),
        day_start=settings.day_start,
        day_end=settings.day_end,
        appointment_duration_minutes=settings.appointment_duration_minutes,
        break_windows=list(settings.break_windows),
        timezone=settings.timezone,
    )


def list_day_slots(db: Session, slot_date: date, include_unavailable: bool = False) -> list[TimeSlot]:
    settings = load_settings(db)
    now = utcnow()
    candidates = generate_slots(slot_date, settings, now)
    if not candidates:
        return []

    window_start, window_end = utc_bounds(slot_date, slot_date, settings.tz)
    resolved = resolve_conflicts(candidates, sessions_overlapping(db, window_start, window_end))
    if include_unavailable:
        return resolved
    return [slot for slot in resolved if slot.available]


def list_range_slots(
    db: Session,
    start_date: date,
    end_date: date,
    include_unavailable: bool = False,
) -> dict[date, list[TimeSlot]]:
    if (end_date - start_date).days >= MAX_RANGE_DAYS:
        raise errors.ValidationError(f'A slot range may cover at most {MAX_RANGE_DAYS} days.')

    settings = load_settings(db)
    candidates_by_day = generate_slots_for_range(start_date, end_date, settings, utcnow())
    if not any(candidates_by_day.values()):
        return {day: [] for day in candidates_by_day}

    window_start, window_end = utc_bounds(start_date, end_date, settings.tz)
    sessions = sessions_overlapping(db, window_start, window_end)

    result: dict[date, list[TimeSlot]] = {}
    for day, candidates in candidates_by_day.items():
        resolved = resolve_conflicts(candidates, sessions)
        result[day] = resolved if include_unavailable else [slot for slot in resolved if slot.available]
    return result


@router.get('/settings', response_model=AvailabilitySettingsResponse)
def get_availability_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        return to_settings_response(load_settings(db))
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/settings', response_model=AvailabilitySettingsResponse)
def update_availability_settings(
    data: AvailabilitySettings,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        saved = save_settings(db, data, now=utcnow(), updated_by=current_user.id)
        return to_settings_response(saved)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.get('/slots', response_model=list[TimeSlot])
def list_availability_slots(
    slot_date: date = Query(..., alias='date'),
    include_unavailable: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        return list_day_slots(db, slot_date, include_unavailable=include_unavailable)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/slots/range', response_model=dict[date, list[TimeSlot]])
def list_availability_slot_range(
    start_date: date = Query(..., alias='start'),
    end_date: date = Query(..., alias='end'),
    include_unavailable: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        return list_range_slots(db, start_date, end_date, include_unavailable=include_unavailable)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/next-slot', response_model=TimeSlot | None)
def get_next_available_slot(
    start_date: date = Query(..., alias='date'),
    days: int = Query(default=config.SLOT_SEARCH_DAYS, ge=1, le=90),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    del current_user
    ensure_database_ready()

    try:
        settings = load_settings(db)
        window_start, window_end = utc_bounds(start_date, start_date + timedelta(days=days - 1), settings.tz)
        sessions = sessions_overlapping(db, window_start, window_end)
        return next_available_slot(start_date, settings, sessions, utcnow(), search_days=days)
    except errors.SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

