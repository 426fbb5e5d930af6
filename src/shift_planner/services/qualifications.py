from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from shift_planner.services.availability import create_default_availability
from shift_planner.services.models import Employee, LearningYearQualification, ShiftType


def apply_learning_year_qualifications(
    employees: Sequence[Employee],
    qualifications: Sequence[LearningYearQualification],
    shift_types: Sequence[ShiftType],
) -> list[Employee]:
    """
    Give apprentices the shift permissions and default availability of their
    learning year. Other employees are returned unchanged.
    """

    by_year = {qualification.year: qualification for qualification in qualifications}
    known_shifts = {shift.id for shift in shift_types}

    prepared: list[Employee] = []
    for employee in employees:
        qualification = by_year.get(employee.cohort_year) if employee.is_apprentice else None
        if qualification is None:
            prepared.append(employee)
            continue
        availability = create_default_availability()
        availability.update(qualification.default_availability)
        prepared.append(
            replace(
                employee,
                allowed_shift_ids=frozenset(qualification.qualified_shift_ids & known_shifts),
                availability=availability,
            )
        )
    return prepared
