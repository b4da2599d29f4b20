"""Availability settings snapshot used by the slot generator."""

from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from agenda.core import config

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


def weekday_number(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValueError(f'Invalid weekday: {value!r}.')
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f'Invalid weekday: {value!r}.')

    normalized = str(value).strip().lower()
    if normalized.isdigit():
        return weekday_number(int(normalized))
    if normalized not in WEEKDAY_NAMES:
        raise ValueError(f'Invalid weekday: {value!r}.')
    return WEEKDAY_NAMES.index(normalized)


class BreakWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode='after')
    def validate_order(self) -> 'BreakWindow':
        if self.start >= self.end:
            raise ValueError('A break must end after it starts.')
        return self

    def overlaps(self, start: time, end: time) -> bool:
        return self.start < end and start < self.end


class AvailabilitySettings(BaseModel):
    """Working hours of the practice.

    ``working_days`` holds weekday numbers (Monday is 0). Names such as
    ``"monday"`` are accepted on input. Times are wall-clock times in
    ``timezone``.
    """

    model_config = ConfigDict(frozen=True)

    working_days: frozenset[int]
    day_start: time
    day_end: time
    appointment_duration_minutes: int
    break_windows: tuple[BreakWindow, ...] = ()
    timezone: str

    @field_validator('working_days', mode='before')
    @classmethod
    def normalize_working_days(cls, value) -> frozenset[int]:
        if isinstance(value, str):
            value = value.split(',')
        return frozenset(weekday_number(day) for day in value if str(day).strip())

    @field_validator('appointment_duration_minutes')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Appointment duration must be greater than zero.')
        return value

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        normalized = value.strip()
        try:
            ZoneInfo(normalized)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f'Unknown timezone: {value!r}.') from exc
        return normalized

    @field_validator('break_windows', mode='after')
    @classmethod
    def sort_break_windows(cls, value: tuple[BreakWindow, ...]) -> tuple[BreakWindow, ...]:
        return tuple(sorted(value, key=lambda window: window.start))

    @model_validator(mode='after')
    def validate_hours(self) -> 'AvailabilitySettings':
        if self.day_start >= self.day_end:
            raise ValueError('The working day must end after it starts.')

        previous = None
        for window in self.break_windows:
            if window.start < self.day_start or window.end > self.day_end:
                raise ValueError('Breaks must fall within working hours.')
            if previous is not None and previous.overlaps(window.start, window.end):
                raise ValueError('Breaks must not overlap each other.')
            previous = window

        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_working_day(self, weekday: int) -> bool:
        return weekday in self.working_days

    def working_day_names(self) -> list[str]:
        return [WEEKDAY_NAMES[day] for day in sorted(self.working_days)]


def parse_break_windows(ranges: list[str]) -> list[BreakWindow]:
    windows = []
    for item in ranges:
        start, separator, end = item.partition('-')
        if not separator:
            raise ValueError(f'Invalid break window: {item!r}. Use HH:MM-HH:MM.')
        windows.append(BreakWindow(start=time.fromisoformat(start.strip()), end=time.fromisoformat(end.strip())))
    return windows


def default_settings() -> AvailabilitySettings:
    return AvailabilitySettings(
        working_days=config.DEFAULT_WORKING_DAYS,
        day_start=time.fromisoformat(config.DEFAULT_DAY_START),
        day_end=time.fromisoformat(config.DEFAULT_DAY_END),
        appointment_duration_minutes=config.DEFAULT_APPOINTMENT_DURATION,
        break_windows=parse_break_windows(config.DEFAULT_BREAK_WINDOWS),
        timezone=config.DEFAULT_TIMEZONE,
    )
