from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Iterator

from shift_planner.services.models import ShiftType

MINUTES_PER_DAY = 24 * 60
NOON = 12

WEEKDAYS: tuple[str, ...] = ("monday", "tuesday", "wednesday", "thursday", "friday")
HALF_DAYS: tuple[str, ...] = ("AM", "PM")


def parse_clock(value: str) -> tuple[int, int]:
    """Split an ``HH:MM`` string into hour and minute."""

    try:
        hour_text, minute_text = value.split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM") from exc
    if not (0 <= hour <= 23 and 0 <= minute < 60) and (hour, minute) != (24, 0):
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    return hour, minute


def shift_duration_hours(shift: ShiftType) -> float:
    start_hour, start_minute = parse_clock(shift.start_time)
    end_hour, end_minute = parse_clock(shift.end_time)
    start_minutes = start_hour * 60 + start_minute
    end_minutes = end_hour * 60 + end_minute
    if end_minutes < start_minutes:
        end_minutes += MINUTES_PER_DAY
    return (end_minutes - start_minutes) / 60


def weekday_name(day: date) -> str | None:
    """Return the lowercase weekday, or ``None`` for Saturday and Sunday."""

    index = day.weekday()
    if index >= len(WEEKDAYS):
        return None
    return WEEKDAYS[index]


def week_key(day: date) -> date:
    return day - timedelta(days=day.weekday())


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iter_weeks(start: date, end: date) -> Iterator[tuple[date, list[date]]]:
    """Yield ``(monday, days)`` for every calendar week touched by the range."""

    current_key: date | None = None
    bucket: list[date] = []
    for day in iter_days(start, end):
        key = week_key(day)
        if current_key is not None and key != current_key:
            yield current_key, bucket
            bucket = []
        current_key = key
        bucket.append(day)
    if current_key is not None:
        yield current_key, bucket


def count_weekdays(days: Iterable[date]) -> int:
    return sum(1 for day in days if weekday_name(day) is not None)
