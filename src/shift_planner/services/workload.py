from __future__ import annotations

import math
from datetime import date
from typing import Iterable, Sequence

from shift_planner.services.dates import iter_days, weekday_name
from shift_planner.services.models import (
    Employee,
    ShiftAssignment,
    ShiftType,
    Team,
    WorkloadStats,
)


def count_schedulable_slots(start: date, end: date, shift_types: Sequence[ShiftType]) -> int:
    """Number of (weekday, shift-type) pairs between ``start`` and ``end``."""

    weekdays = sum(1 for day in iter_days(start, end) if weekday_name(day))
    return weekdays * len(shift_types)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def effective_target_percentage(employee: Employee, team: Team | None) -> float:
    if employee.shift_percentage is not None:
        return float(employee.shift_percentage)
    if team is not None:
        return float(team.target_percentage)
    return 100.0


class WorkloadTracker:
    """Running hours, shift counts and team slot totals for one scheduling run."""

    def __init__(
        self,
        employees: Sequence[Employee],
        teams: Sequence[Team],
        durations: dict[str, float],
        total_slots: int,
    ) -> None:
        self._durations = durations
        self._employees = {employee.id: employee for employee in employees}
        team_lookup = {team.id: team for team in teams}

        self.team_targets: dict[str, int] = {
            team.id: _round_half_up(team.target_percentage / 100 * total_slots) for team in teams
        }
        self.team_workloads: dict[str, int] = {team.id: 0 for team in teams}
        self.employee_workloads: dict[str, WorkloadStats] = {
            employee.id: WorkloadStats(
                target_percentage=effective_target_percentage(
                    employee, team_lookup.get(employee.team_id)
                )
            )
            for employee in employees
        }

    def seed(self, assignments: Iterable[ShiftAssignment]) -> None:
        for assignment in assignments:
            employee = self._employees.get(assignment.employee_id)
            if employee is None or assignment.shift_id not in self._durations:
                continue
            self.record(employee, assignment.date, assignment.shift_id)

    def record(self, employee: Employee, day: date, shift_id: str) -> None:
        duration = self._durations.get(shift_id, 0.0)
        stats = self.employee_workloads.setdefault(employee.id, WorkloadStats())
        stats.hours += duration if math.isfinite(duration) else 0.0
        stats.shifts += 1
        stats.days_worked.add(day)
        self.team_workloads[employee.team_id] = self.team_workloads.get(employee.team_id, 0) + 1

    def team_fill_ratio(self, team_id: str) -> float:
        target = self.team_targets.get(team_id, 0)
        if target <= 0:
            return math.inf
        return self.team_workloads.get(team_id, 0) / target

    def hours(self, employee_id: str) -> float:
        stats = self.employee_workloads.get(employee_id)
        return stats.hours if stats else 0.0

    def rank_candidates(self, employees: Sequence[Employee], shift: ShiftType) -> list[Employee]:
        """
        Order employees for ``shift``: least-filled team first, then fewest hours,
        then highest suitability. The sort is stable so input order breaks ties.
        """

        return sorted(
            employees,
            key=lambda employee: (
                self.team_fill_ratio(employee.team_id),
                self.hours(employee.id),
                -employee.suitability.get(shift.id, 0),
            ),
        )
