from datetime import date, datetime, time, timedelta, timezone
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from agenda.scheduling.conflicts import (
    available_slots,
    find_conflicts,
    intervals_overlap,
    next_available_slot,
    resolve_conflicts,
)
from agenda.scheduling.lifecycle import SessionStatus
from agenda.scheduling.slots import generate_slots

SAO_PAULO = ZoneInfo('America/Sao_Paulo')


def _local(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=SAO_PAULO)


def _booked(start: datetime, minutes: int = 60, status=SessionStatus.SCHEDULED) -> SimpleNamespace:
    return SimpleNamespace(scheduled_at=start, duration_minutes=minutes, status=status)


@pytest.mark.parametrize(
    'other_start, other_end, expected',
    [
        (time(9, 15), time(9, 45), True),
        (time(9, 30), time(10, 0), False),
        (time(8, 30), time(9, 0), False),
        (time(8, 0), time(11, 0), True),
        (time(9, 5), time(9, 10), True),
    ],
)
def test_intervals_overlap_is_half_open(other_start: time, other_end: time, expected: bool) -> None:
    day = date(2026, 1, 6)

    assert intervals_overlap(
        _local(day, 9, 0),
        _local(day, 9, 30),
        _local(day, other_start.hour, other_start.minute),
        _local(day, other_end.hour, other_end.minute),
    ) is expected


def test_available_slots_matches_the_tuesday_walkthrough(settings, now) -> None:
    tuesday = date(2026, 1, 6)
    sessions = [_booked(_local(tuesday, 10, 0))]

    slots = available_slots(tuesday, settings, sessions, now)

    assert [slot.start for slot in slots] == [
        time(8, 0), time(9, 0), time(11, 0), time(13, 0),
        time(14, 0), time(15, 0), time(16, 0), time(17, 0),
    ]


def test_resolve_conflicts_marks_overlapping_slot_and_keeps_touching_one(settings, now) -> None:
    half_hour = settings.model_copy(
        update={
            'day_start': time(9, 0),
            'day_end': time(10, 0),
            'appointment_duration_minutes': 30,
            'break_windows': (),
        }
    )
    tuesday = date(2026, 1, 6)
    slots = generate_slots(tuesday, half_hour, now)

    overlapping = resolve_conflicts(slots, [_booked(_local(tuesday, 9, 15), 30)])
    touching = resolve_conflicts(slots, [_booked(_local(tuesday, 9, 30), 30)])

    assert [slot.available for slot in overlapping] == [False, False]
    assert [slot.available for slot in touching] == [True, False]
    assert all(slot.available for slot in slots)


def test_canceled_sessions_do_not_block(settings, now) -> None:
    tuesday = date(2026, 1, 6)
    canceled = _booked(_local(tuesday, 10, 0), status=SessionStatus.CANCELED)

    starts = [slot.start for slot in available_slots(tuesday, settings, [canceled], now)]

    assert time(10, 0) in starts
    assert find_conflicts(_local(tuesday, 10, 0), _local(tuesday, 11, 0), [canceled]) == []


@pytest.mark.parametrize(
    'status',
    [SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED, SessionStatus.NO_SHOW],
)
def test_non_canceled_sessions_block(status: SessionStatus) -> None:
    tuesday = date(2026, 1, 6)
    session = _booked(_local(tuesday, 10, 0), status=status)

    assert find_conflicts(_local(tuesday, 10, 30), _local(tuesday, 11, 30), [session]) == [session]


def test_conflicts_compare_instants_across_timezones() -> None:
    # 13:00 UTC is 10:00 in Sao Paulo.
    session = _booked(datetime(2026, 1, 6, 13, 0, tzinfo=timezone.utc))

    assert find_conflicts(_local(date(2026, 1, 6), 10, 0), _local(date(2026, 1, 6), 11, 0), [session])


def test_session_from_previous_day_can_block_early_slots(settings, now) -> None:
    late_start = _local(date(2026, 1, 6), 23, 0)
    overnight = _booked(late_start, minutes=10 * 60)

    starts = [slot.start for slot in available_slots(date(2026, 1, 7), settings, [overnight], now)]

    assert time(8, 0) not in starts
    assert time(9, 0) in starts


def test_next_available_slot_skips_full_days(settings, now) -> None:
    tuesday = date(2026, 1, 6)
    busy = _booked(_local(tuesday, 8, 0), minutes=10 * 60)

    slot = next_available_slot(tuesday, settings, [busy], now, search_days=7)

    assert slot.date == date(2026, 1, 7)
    assert slot.start == time(8, 0)


def test_next_available_slot_gives_up_after_search_window(settings, now) -> None:
    saturday = date(2026, 1, 10)

    assert next_available_slot(saturday, settings, [], now, search_days=2) is None
    assert next_available_slot(saturday, settings, [], now, search_days=3).date == date(2026, 1, 12)


def test_next_available_slot_starts_after_now(settings) -> None:
    # Monday 15:30 local.
    now = datetime(2026, 1, 5, 18, 30, tzinfo=timezone.utc)

    slot = next_available_slot(date(2026, 1, 5), settings, [], now, search_days=1)

    assert slot.start == time(16, 0)
    assert slot.starts_at > now
    assert slot.starts_at - now == timedelta(minutes=30)
