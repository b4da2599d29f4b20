import logging
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from agenda.models.availability import AvailabilitySettingsRecord
from agenda.scheduling import errors
from agenda.scheduling.settings import AvailabilitySettings, default_settings

logger = logging.getLogger(__name__)


def _to_settings(record: AvailabilitySettingsRecord) -> AvailabilitySettings:
    try:
        return AvailabilitySettings(
            working_days=record.working_days,
            day_start=record.day_start,
            day_end=record.day_end,
            appointment_duration_minutes=record.appointment_duration_minutes,
            break_windows=record.break_windows or [],
            timezone=record.timezone,
        )
    except PydanticValidationError as exc:
        logger.error('Stored availability settings row %s is invalid: %s', record.id, exc)
        raise errors.ValidationError(
            'The saved availability settings are invalid. Please save them again.'
        ) from exc


def load_settings(db: Session) -> AvailabilitySettings:
    record = db.query(AvailabilitySettingsRecord).order_by(AvailabilitySettingsRecord.id.asc()).first()
    if record is None:
        return default_settings()
    return _to_settings(record)


def save_settings(
    db: Session,
    settings: AvailabilitySettings,
    now: datetime,
    updated_by: int | None = None,
) -> AvailabilitySettings:
    record = db.query(AvailabilitySettingsRecord).order_by(AvailabilitySettingsRecord.id.asc()).first()
    if record is None:
        record = AvailabilitySettingsRecord()
        db.add(record)

    record.working_days = ','.join(str(day) for day in sorted(settings.working_days))
    record.day_start = settings.day_start
    record.day_end = settings.day_end
    record.appointment_duration_minutes = settings.appointment_duration_minutes
    record.break_windows = [
        {'start': window.start.isoformat(), 'end': window.end.isoformat()}
        for window in settings.break_windows
    ]
    record.timezone = settings.timezone
    record.updated_by = updated_by
    record.updated_at = now

    db.commit()
    db.refresh(record)
    logger.info('Availability settings updated by user %s', updated_by)

    return _to_settings(record)
