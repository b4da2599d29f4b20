"""
Conflict resolution.

Marks generated slots as unavailable when an existing session shares any
instant with them. Intervals are half-open, so a session ending at 10:00
does not block a slot starting at 10:00.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Protocol

from agenda.scheduling.lifecycle import BLOCKING_STATUSES, parse_status
from agenda.scheduling.settings import AvailabilitySettings
from agenda.scheduling.slots import TimeSlot, generate_slots


class ScheduledItem(Protocol):
    scheduled_at: datetime
    duration_minutes: int


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def session_end(session: ScheduledItem) -> datetime:
    return session.scheduled_at + timedelta(minutes=session.duration_minutes)


def is_blocking(session: ScheduledItem) -> bool:
    status = getattr(session, 'status', None)
    if status is None:
        return True
    return parse_status(status) in BLOCKING_STATUSES


def find_conflicts(
    start: datetime,
    end: datetime,
    sessions: Iterable[ScheduledItem],
) -> list[ScheduledItem]:
    return [
        session
        for session in sessions
        if is_blocking(session) and intervals_overlap(start, end, session.scheduled_at, session_end(session))
    ]


def resolve_conflicts(slots: Iterable[TimeSlot], sessions: Iterable[ScheduledItem]) -> list[TimeSlot]:
    blocking = [(session.scheduled_at, session_end(session)) for session in sessions if is_blocking(session)]

    resolved: list[TimeSlot] = []
    for slot in slots:
        taken = any(
            intervals_overlap(slot.starts_at, slot.ends_at, busy_start, busy_end)
            for busy_start, busy_end in blocking
        )
        resolved.append(slot.model_copy(update={'available': slot.available and not taken}))

    return resolved


def available_slots(
    target_date: date,
    settings: AvailabilitySettings,
    sessions: Iterable[ScheduledItem],
    now: datetime,
) -> list[TimeSlot]:
    candidates = generate_slots(target_date, settings, now)
    return [slot for slot in resolve_conflicts(candidates, sessions) if slot.available]


def next_available_slot(
    start_date: date,
    settings: AvailabilitySettings,
    sessions: Iterable[ScheduledItem],
    now: datetime,
    search_days: int,
) -> TimeSlot | None:
    """First free slot on or after ``start_date`` within ``search_days`` days."""
    sessions = list(sessions)
    for offset in range(search_days):
        slots = available_slots(start_date + timedelta(days=offset), settings, sessions, now)
        if slots:
            return slots[0]
    return None
