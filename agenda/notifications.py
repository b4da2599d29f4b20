"""
Session event dispatch.

Reminders, e-mails and calendar sync live outside the scheduling engine.
They subscribe here and are called after a session change has been
committed. A failing listener is logged and skipped; it never undoes the
change that triggered it.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable

from pydantic import BaseModel

from agenda.scheduling.lifecycle import SessionStatus

logger = logging.getLogger(__name__)


class SessionEvent(BaseModel):
    session_id: int
    patient_id: int
    scheduled_at: datetime
    previous_status: SessionStatus | None = None
    status: SessionStatus
    booked_with_link: bool = False


SessionListener = Callable[[SessionEvent], None]

_listeners: list[SessionListener] = []


def register_listener(listener: SessionListener) -> None:
    if listener not in _listeners:
        _listeners.append(listener)


def unregister_listener(listener: SessionListener) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def registered_listeners() -> list[SessionListener]:
    return list(_listeners)


def dispatch(event: SessionEvent, listeners: Iterable[SessionListener] | None = None) -> int:
    """Call every listener with ``event``. Returns how many succeeded."""
    delivered = 0
    for listener in (registered_listeners() if listeners is None else listeners):
        try:
            listener(event)
        except Exception:
            logger.exception(
                'Session listener %s failed for session %s (%s)',
                getattr(listener, '__name__', repr(listener)),
                event.session_id,
                event.status.value,
            )
            continue
        delivered += 1

    return delivered


def log_session_event(event: SessionEvent) -> None:
    if event.previous_status is None:
        logger.info('Session %s created with status %s', event.session_id, event.status.value)
    else:
        logger.info(
            'Session %s moved from %s to %s',
            event.session_id,
            event.previous_status.value,
            event.status.value,
        )
