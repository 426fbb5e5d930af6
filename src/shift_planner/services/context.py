from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date

from shift_planner.services.availability import is_available
from shift_planner.services.models import (
    Absence,
    Employee,
    ExemptTransition,
    ForbiddenSequenceRule,
    MandatoryFollowUpRule,
    ShiftAssignment,
    ShiftType,
)
from shift_planner.services.rotation import ApprenticeRotation
from shift_planner.services.workload import WorkloadTracker

logger = logging.getLogger(__name__)


@dataclass
class SchedulingContext:
    """Mutable state owned by one scheduling run and shared with the evaluators."""

    shift_lookup: dict[str, ShiftType]
    workload: WorkloadTracker
    rotation: ApprenticeRotation
    absences: list[Absence] = field(default_factory=list)
    forbidden_rules: list[ForbiddenSequenceRule] = field(default_factory=list)
    follow_up_rules: list[MandatoryFollowUpRule] = field(default_factory=list)
    exempt_transitions: list[ExemptTransition] = field(default_factory=list)
    capacity_aware_follow_ups: bool = True
    max_follow_up_depth: int = 3
    assignments: list[ShiftAssignment] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    _by_employee: dict[str, list[ShiftAssignment]] = field(
        default_factory=lambda: defaultdict(list), init=False, repr=False
    )
    _by_slot: dict[tuple[date, str], int] = field(
        default_factory=lambda: defaultdict(int), init=False, repr=False
    )

    def __post_init__(self) -> None:
        existing = self.assignments
        self.assignments = []
        for assignment in existing:
            self._index(assignment)

    def _index(self, assignment: ShiftAssignment) -> None:
        self.assignments.append(assignment)
        self._by_employee[assignment.employee_id].append(assignment)
        self._by_slot[(assignment.date, assignment.shift_id)] += 1

    def employee_assignments(self, employee_id: str) -> list[ShiftAssignment]:
        return self._by_employee.get(employee_id, [])

    def filled(self, day: date, shift_id: str) -> int:
        return self._by_slot.get((day, shift_id), 0)

    def has_primary_on(self, employee_id: str, day: date) -> bool:
        return any(
            assignment.date == day and not assignment.is_follow_up
            for assignment in self.employee_assignments(employee_id)
        )

    def holds(self, employee_id: str, day: date, shift_id: str) -> bool:
        return any(
            assignment.date == day and assignment.shift_id == shift_id
            for assignment in self.employee_assignments(employee_id)
        )

    def available(self, employee: Employee, day: date, shift: ShiftType) -> bool:
        return is_available(employee, day, shift, self.absences)

    def commit(
        self, employee: Employee, day: date, shift: ShiftType, *, is_follow_up: bool = False
    ) -> ShiftAssignment:
        assignment = ShiftAssignment(
            employee_id=employee.id,
            shift_id=shift.id,
            date=day,
            locked=False,
            is_follow_up=is_follow_up,
        )
        self._index(assignment)
        self.workload.record(employee, day, shift.id)
        if not is_follow_up:
            self.rotation.record(employee, shift.id)
        return assignment

    def add_conflict(self, message: str) -> None:
        logger.debug("Conflict: %s", message)
        self.conflicts.append(message)

    def unique_conflicts(self) -> list[str]:
        return list(dict.fromkeys(self.conflicts))
