from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from agenda.database import SessionLocal, ensure_booking_token_schema, ensure_session_schema
from agenda.scheduling import errors

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

ERROR_STATUS_CODES = [
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.NotFoundError, status.HTTP_404_NOT_FOUND),
    (errors.ExpiredError, status.HTTP_410_GONE),
    (errors.ConflictError, status.HTTP_409_CONFLICT),
    (errors.StateError, status.HTTP_409_CONFLICT),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_database_ready() -> None:
    try:
        ensure_session_schema()
        ensure_booking_token_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: errors.SchedulingError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_kind, mapped_status in ERROR_STATUS_CODES:
        if isinstance(exc, error_kind):
            status_code = mapped_status
            break

    return HTTPException(
        status_code=status_code,
        detail={'code': exc.code, 'message': exc.message},
    )
