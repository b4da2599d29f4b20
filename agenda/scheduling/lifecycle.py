"""
Session status lifecycle.

    scheduled -> confirmed -> in_progress -> completed
    scheduled | confirmed -> canceled
    scheduled | confirmed | in_progress -> no_show

completed, canceled and no_show are terminal.
"""

from enum import Enum

from agenda.scheduling import errors


class SessionStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELED = 'canceled'
    NO_SHOW = 'no_show'


TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.CONFIRMED, SessionStatus.CANCELED, SessionStatus.NO_SHOW}),
    SessionStatus.CONFIRMED: frozenset({SessionStatus.IN_PROGRESS, SessionStatus.CANCELED, SessionStatus.NO_SHOW}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.NO_SHOW}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELED: frozenset(),
    SessionStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Statuses that still hold their time on the calendar.
BLOCKING_STATUSES = frozenset(SessionStatus) - {SessionStatus.CANCELED}

STATUS_LABELS = {
    SessionStatus.SCHEDULED: 'Scheduled',
    SessionStatus.CONFIRMED: 'Confirmed',
    SessionStatus.IN_PROGRESS: 'In progress',
    SessionStatus.COMPLETED: 'Completed',
    SessionStatus.CANCELED: 'Canceled',
    SessionStatus.NO_SHOW: 'No-show',
}


def parse_status(value: 'SessionStatus | str') -> SessionStatus:
    try:
        return SessionStatus(value.strip().lower() if isinstance(value, str) else value)
    except ValueError as exc:
        raise errors.ValidationError('Unknown session status.') from exc


def is_terminal(status: SessionStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_transitions(current: SessionStatus) -> frozenset[SessionStatus]:
    return TRANSITIONS[current]


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in TRANSITIONS[current]


def check_transition(current: SessionStatus, target: SessionStatus) -> None:
    if can_transition(current, target):
        return

    if is_terminal(current):
        message = f'A {STATUS_LABELS[current].lower()} session cannot be changed.'
    else:
        message = (
            f'A {STATUS_LABELS[current].lower()} session cannot be marked as '
            f'{STATUS_LABELS[target].lower()}.'
        )
    raise errors.InvalidTransition(message)
