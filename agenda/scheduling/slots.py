"""
Slot generation.

Turns availability settings into the fixed-width appointment windows of a
single calendar day. Everything here is pure: the caller supplies the
current instant, so results depend only on the arguments.
"""

from datetime import date, datetime, time, timedelta

from pydantic import BaseModel, ConfigDict

from agenda.scheduling import errors
from agenda.scheduling.settings import AvailabilitySettings


class TimeSlot(BaseModel):
    """A candidate appointment window. Never persisted."""

    model_config = ConfigDict(frozen=True)

    date: date
    start: time
    end: time
    starts_at: datetime
    ends_at: datetime
    available: bool = True


def ensure_aware(now: datetime) -> datetime:
    if now.tzinfo is None or now.utcoffset() is None:
        raise errors.ValidationError('The current time must include a timezone.')
    return now


def generate_slots(target_date: date, settings: AvailabilitySettings, now: datetime) -> list[TimeSlot]:
    """
    Build the bookable windows for ``target_date``.

    Windows are ``appointment_duration_minutes`` wide, start at ``day_start``
    and step by their own width. A trailing window that would run past
    ``day_end`` is dropped. Windows touching a break are kept; windows
    sharing any instant with one are dropped. Windows that start at or
    before ``now`` are dropped, so today only offers what is still ahead and
    past days offer nothing.
    """
    ensure_aware(now)

    if not settings.is_working_day(target_date.weekday()):
        return []

    tz = settings.tz
    duration = timedelta(minutes=settings.appointment_duration_minutes)
    day_end = datetime.combine(target_date, settings.day_end)
    current = datetime.combine(target_date, settings.day_start)

    slots: list[TimeSlot] = []
    while current + duration <= day_end:
        window_end = current + duration
        starts_at = current.replace(tzinfo=tz)

        in_break = any(
            window.overlaps(current.time(), window_end.time())
            for window in settings.break_windows
        )
        if not in_break and starts_at > now:
            slots.append(
                TimeSlot(
                    date=target_date,
                    start=current.time(),
                    end=window_end.time(),
                    starts_at=starts_at,
                    ends_at=window_end.replace(tzinfo=tz),
                )
            )

        current = window_end

    return slots


def generate_slots_for_range(
    start_date: date,
    end_date: date,
    settings: AvailabilitySettings,
    now: datetime,
) -> dict[date, list[TimeSlot]]:
    if end_date < start_date:
        raise errors.ValidationError('The end date must not be before the start date.')

    result: dict[date, list[TimeSlot]] = {}
    current_day = start_date
    while current_day <= end_date:
        result[current_day] = generate_slots(current_day, settings, now)
        current_day += timedelta(days=1)

    return result


def find_slot(slots: list[TimeSlot], start: time) -> TimeSlot | None:
    normalized = start.replace(second=0, microsecond=0)
    for slot in slots:
        if slot.start == normalized:
            return slot
    return None
