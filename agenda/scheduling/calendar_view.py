"""
Calendar shaping for the agenda views.

Sessions are stored as absolute instants. They are placed on a calendar day
only here, using the practice timezone passed in by the caller, never the
timezone of the machine running the code.
"""

import calendar as month_calendar
from collections import Counter
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, TypeVar
from zoneinfo import ZoneInfo

from agenda.scheduling import errors
from agenda.scheduling.conflicts import ScheduledItem
from agenda.scheduling.lifecycle import SessionStatus, parse_status

T = TypeVar('T', bound=ScheduledItem)


class ViewMode(str, Enum):
    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def view_range(anchor: date, mode: ViewMode) -> tuple[date, date]:
    """Inclusive date range shown by ``mode`` around ``anchor``.

    Weeks run Monday to Sunday. The month view is padded to whole weeks so
    the grid always starts on a Monday and ends on a Sunday.
    """
    if mode == ViewMode.DAY:
        return anchor, anchor
    if mode == ViewMode.WEEK:
        start = week_start(anchor)
        return start, start + timedelta(days=6)

    first_day = anchor.replace(day=1)
    last_day = anchor.replace(day=month_calendar.monthrange(anchor.year, anchor.month)[1])
    return week_start(first_day), week_start(last_day) + timedelta(days=6)


def local_day(instant: datetime, tz: ZoneInfo) -> date:
    if instant.tzinfo is None:
        raise errors.ValidationError('Session times must include a timezone.')
    return instant.astimezone(tz).date()


def utc_bounds(start_date: date, end_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Half-open instant range covering the local days ``start_date``..``end_date``."""
    if end_date < start_date:
        raise errors.ValidationError('The end date must not be before the start date.')

    start = datetime.combine(start_date, time.min, tzinfo=tz)
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def bucket_sessions(
    sessions: Iterable[T],
    start_date: date,
    end_date: date,
    tz: ZoneInfo,
) -> dict[date, list[T]]:
    if end_date < start_date:
        raise errors.ValidationError('The end date must not be before the start date.')

    buckets: dict[date, list[T]] = {}
    current_day = start_date
    while current_day <= end_date:
        buckets[current_day] = []
        current_day += timedelta(days=1)

    for session in sorted(sessions, key=lambda item: item.scheduled_at):
        day = local_day(session.scheduled_at, tz)
        if day in buckets:
            buckets[day].append(session)

    return buckets


def status_counts(sessions: Iterable[ScheduledItem]) -> dict[SessionStatus, int]:
    counts = Counter(parse_status(session.status) for session in sessions)
    return {status: counts.get(status, 0) for status in SessionStatus}
