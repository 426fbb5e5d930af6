from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from shift_planner.services.dates import HALF_DAYS, NOON, WEEKDAYS, parse_clock, weekday_name
from shift_planner.services.models import Absence, Employee, ShiftType


def create_default_availability() -> dict[str, bool]:
    return {f"{day}_{half}": False for day in WEEKDAYS for half in HALF_DAYS}


def find_absence(employee: Employee, day: date, absences: Iterable[Absence]) -> Absence | None:
    for absence in absences:
        if absence.employee_id == employee.id and absence.covers(day):
            return absence
    return None


def is_available(
    employee: Employee,
    day: date,
    shift: ShiftType,
    absences: Iterable[Absence] = (),
) -> bool:
    """
    Decide whether ``employee`` can work ``shift`` on ``day``.

    Morning starts need the ``_AM`` flag, anything touching the afternoon needs
    ``_PM`` and an overnight shift ending before noon also needs the next
    weekday's ``_AM`` flag. Missing flags count as unavailable.
    """

    if find_absence(employee, day, absences):
        return False
    weekday = weekday_name(day)
    if weekday is None:
        return False

    start_hour, _ = parse_clock(shift.start_time)
    end_hour, _ = parse_clock(shift.end_time)

    if start_hour < NOON and employee.availability.get(f"{weekday}_AM") is not True:
        return False

    if end_hour >= NOON or start_hour >= NOON:
        if employee.availability.get(f"{weekday}_PM") is not True:
            return False

    if shift.is_overnight:
        next_weekday = weekday_name(day + timedelta(days=1))
        if next_weekday and 0 < end_hour < NOON:
            if employee.availability.get(f"{next_weekday}_AM") is not True:
                return False

    return True
