from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from agenda.models.booking_token import BookingToken
from agenda.models.session import Session
from agenda.scheduling import booking_tokens, errors
from agenda.scheduling.booking_tokens import (
    check_token,
    get_or_issue_token,
    issue_token,
    redeem_token,
    validate_token,
)
from agenda.scheduling.lifecycle import SessionStatus
from agenda.scheduling.sessions import SessionPayload

SAO_PAULO = ZoneInfo('America/Sao_Paulo')
TUESDAY = date(2026, 1, 6)
WEEK = timedelta(days=7)


def _booking(hour: int = 10, minute: int = 0, duration_minutes: int = 60, **overrides) -> SessionPayload:
    values = {
        'scheduled_at': datetime.combine(TUESDAY, time(hour, minute), tzinfo=SAO_PAULO),
        'duration_minutes': duration_minutes,
        'session_type': 'individual',
    }
    values.update(overrides)
    return SessionPayload(**values)


def _token_row(db, token: str) -> BookingToken:
    db.expire_all()
    return db.get(BookingToken, token)


def test_issue_token_creates_unused_link(db, now) -> None:
    issued = issue_token(db, patient_id=7, issued_by=1, ttl=WEEK, now=now)

    assert len(issued.token) >= 40
    assert issued.used is False
    assert issued.used_at is None
    assert issued.expires_at == now + WEEK
    assert issued.patient_id == 7


def test_issued_tokens_are_distinct(db, now) -> None:
    tokens = {issue_token(db, 7, 1, WEEK, now).token for _ in range(5)}

    assert len(tokens) == 5


@pytest.mark.parametrize('ttl', [timedelta(0), timedelta(days=-1)])
def test_issue_token_rejects_non_positive_ttl(db, now, ttl: timedelta) -> None:
    with pytest.raises(errors.ValidationError):
        issue_token(db, 7, 1, ttl, now)


def test_get_or_issue_token_reuses_open_link(db, now) -> None:
    first, first_created = get_or_issue_token(db, 7, 1, WEEK, now)
    again, again_created = get_or_issue_token(db, 7, 1, WEEK, now + timedelta(hours=1))
    forced, forced_created = get_or_issue_token(db, 7, 1, WEEK, now, force_new=True)
    other_patient, other_created = get_or_issue_token(db, 8, 1, WEEK, now)

    assert first_created is True
    assert (again.token, again_created) == (first.token, False)
    assert forced_created is True and forced.token != first.token
    assert other_created is True and other_patient.token not in {first.token, forced.token}


def test_get_or_issue_token_ignores_expired_link(db, now) -> None:
    old, _ = get_or_issue_token(db, 7, 1, WEEK, now - timedelta(days=8))

    fresh, created = get_or_issue_token(db, 7, 1, WEEK, now)

    assert created is True
    assert fresh.token != old.token


def test_validate_token_reports_each_state(db, now) -> None:
    valid = issue_token(db, 7, 1, WEEK, now)
    expired = issue_token(db, 7, 1, timedelta(hours=1), now - timedelta(hours=2))
    used = issue_token(db, 7, 1, WEEK, now)
    used.used = True
    db.commit()

    ok = validate_token(db, valid.token, now)

    assert ok.valid is True
    assert ok.patient_id == 7
    assert ok.expires_at == now + WEEK
    assert validate_token(db, 'not-a-real-token', now).reason == 'token_not_found'
    assert validate_token(db, '', now).reason == 'token_not_found'
    assert validate_token(db, expired.token, now).reason == 'token_expired'
    assert validate_token(db, used.token, now).reason == 'token_already_used'


def test_token_is_expired_at_exact_expiry_instant(db, now) -> None:
    issued = issue_token(db, 7, 1, WEEK, now)

    check_token(db, issued.token, now + WEEK - timedelta(seconds=1))
    with pytest.raises(errors.TokenExpired):
        check_token(db, issued.token, now + WEEK)


def test_expired_and_used_token_reads_as_expired(db, settings, now) -> None:
    issued = issue_token(db, 7, 1, WEEK, now - timedelta(days=10))
    issued.used = True
    db.commit()

    with pytest.raises(errors.TokenExpired):
        redeem_token(db, issued.token, _booking(), settings, now, listeners=[])


def test_redeem_token_books_session_for_token_patient(db, settings, now) -> None:
    received = []
    issued = issue_token(db, 7, 1, WEEK, now)

    session = redeem_token(
        db,
        issued.token,
        _booking(patient_id=999),
        settings,
        now,
        listeners=[received.append],
    )

    row = _token_row(db, issued.token)
    assert session.patient_id == 7
    assert session.status == SessionStatus.SCHEDULED
    assert session.booking_token == issued.token
    assert row.used is True
    assert row.used_at == now
    assert received[0].booked_with_link is True


def test_redeem_token_twice_books_only_once(db, settings, now) -> None:
    issued = issue_token(db, 7, 1, WEEK, now)
    redeem_token(db, issued.token, _booking(10), settings, now, listeners=[])

    with pytest.raises(errors.TokenAlreadyUsed):
        redeem_token(db, issued.token, _booking(14), settings, now, listeners=[])

    assert db.query(Session).count() == 1


def test_redeem_unknown_token(db, settings, now) -> None:
    with pytest.raises(errors.TokenNotFound):
        redeem_token(db, 'missing', _booking(), settings, now, listeners=[])


def test_redeem_taken_slot_leaves_token_unused(db, settings, now, add_session) -> None:
    add_session(datetime.combine(TUESDAY, time(10, 0), tzinfo=SAO_PAULO))
    issued = issue_token(db, 7, 1, WEEK, now)

    with pytest.raises(errors.SlotUnavailable):
        redeem_token(db, issued.token, _booking(10), settings, now, listeners=[])

    row = _token_row(db, issued.token)
    assert row.used is False
    assert row.used_at is None
    assert db.query(Session).count() == 1


@pytest.mark.parametrize(
    'booking',
    [
        {'hour': 10, 'minute': 30},
        {'hour': 12},
        {'hour': 10, 'duration_minutes': 30},
        {'hour': 10, 'duration_minutes': 120},
    ],
)
def test_redeem_rejects_times_that_are_not_generated_slots(db, settings, now, booking: dict) -> None:
    issued = issue_token(db, 7, 1, WEEK, now)

    with pytest.raises(errors.SlotUnavailable):
        redeem_token(db, issued.token, _booking(**booking), settings, now, listeners=[])

    assert _token_row(db, issued.token).used is False


def test_redeem_rejects_slot_in_the_past(db, settings, now) -> None:
    issued = issue_token(db, 7, 1, WEEK, now)
    # Monday 08:00 local is an hour before the fixed clock.
    earlier_today = _booking(scheduled_at=datetime(2026, 1, 5, 8, 0, tzinfo=SAO_PAULO))

    with pytest.raises(errors.SlotUnavailable):
        redeem_token(db, issued.token, earlier_today, settings, now, listeners=[])


def test_failing_listener_does_not_undo_booking(db, settings, now) -> None:
    issued = issue_token(db, 7, 1, WEEK, now)

    def broken_listener(event) -> None:
        raise RuntimeError('reminder service down')

    session = redeem_token(db, issued.token, _booking(), settings, now, listeners=[broken_listener])

    assert db.query(Session).filter(Session.id == session.id).count() == 1
    assert _token_row(db, issued.token).used is True


def test_concurrent_redemption_books_exactly_one_session(file_session_factory, settings, now, monkeypatch) -> None:
    setup = file_session_factory()
    token = issue_token(setup, 7, 1, WEEK, now).token
    setup.close()

    real_check = booking_tokens.check_token
    other_request = file_session_factory()

    def check_then_interleave(db, token_value, current_time):
        checked = real_check(db, token_value, current_time)
        monkeypatch.setattr(booking_tokens, 'check_token', real_check)
        redeem_token(other_request, token_value, _booking(14), settings, current_time, listeners=[])
        return checked

    monkeypatch.setattr(booking_tokens, 'check_token', check_then_interleave)

    first_request = file_session_factory()
    try:
        with pytest.raises(errors.TokenAlreadyUsed):
            redeem_token(first_request, token, _booking(10), settings, now, listeners=[])

        sessions = first_request.query(Session).all()
        assert [session.scheduled_at for session in sessions] == [
            datetime.combine(TUESDAY, time(14, 0), tzinfo=SAO_PAULO)
        ]
    finally:
        first_request.close()
        other_request.close()
