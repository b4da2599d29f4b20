"""Error kinds raised by the scheduling engine.

Every error carries a message that is safe to show to the person who made
the request and a short machine-readable ``code``. Messages never include
tokens or database identifiers.
"""


class SchedulingError(Exception):
    code = 'scheduling_error'
    default_message = 'The scheduling request could not be completed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SchedulingError):
    code = 'validation_error'
    default_message = 'The request contains invalid scheduling data.'


class NotFoundError(SchedulingError):
    code = 'not_found'
    default_message = 'The requested item was not found.'


class ExpiredError(SchedulingError):
    code = 'expired'
    default_message = 'This item has expired.'


class ConflictError(SchedulingError):
    code = 'conflict'
    default_message = 'The request conflicts with the current schedule.'


class StateError(SchedulingError):
    code = 'invalid_state'
    default_message = 'The session cannot change to that status.'


class TokenNotFound(NotFoundError):
    code = 'token_not_found'
    default_message = 'This booking link is not valid.'


class TokenExpired(ExpiredError):
    code = 'token_expired'
    default_message = 'This booking link has expired. Please ask for a new one.'


class TokenAlreadyUsed(ConflictError):
    code = 'token_already_used'
    default_message = 'This booking link has already been used.'


class SlotUnavailable(ConflictError):
    code = 'slot_unavailable'
    default_message = 'This time is no longer available. Please choose another slot.'


class SessionNotFound(NotFoundError):
    code = 'session_not_found'
    default_message = 'Session not found.'


class InvalidTransition(StateError):
    code = 'invalid_transition'
