"""Coverage and utilisation figures for a generated plan."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from shift_planner.services.dates import WEEKDAYS, iter_days, shift_duration_hours, weekday_name
from shift_planner.services.models import Employee, ScheduleOptions, ScheduleResult, ShiftType, Team

OVERWORKED_THRESHOLD = 110.0
UNDERWORKED_THRESHOLD = 80.0


@dataclass
class CoverageStats:
    total_required: int
    total_assigned: int
    coverage_percentage: float
    unassigned: int


@dataclass
class TeamStats:
    team_id: str
    name: str
    employee_count: int
    total_assignments: int
    total_hours: float
    average_hours: float


@dataclass
class EmployeeUtilization:
    employee_id: str
    name: str
    team_id: str
    hours: float
    shifts: int
    expected_hours: float
    utilization_percentage: float
    days_worked: int
    is_overworked: bool
    is_underworked: bool


@dataclass
class ShiftTypeUtilization:
    shift_id: str
    name: str
    total_required: int
    total_assigned: int
    utilization_percentage: float
    is_understaffed: bool


@dataclass
class PlanAnalytics:
    period_weeks: int
    total_hours: float
    active_employees: int
    conflict_count: int
    coverage: CoverageStats
    teams: list[TeamStats] = field(default_factory=list)
    employees: list[EmployeeUtilization] = field(default_factory=list)
    shift_types: list[ShiftTypeUtilization] = field(default_factory=list)


def weekly_shift_hours(shift_types: Sequence[ShiftType]) -> float:
    """Hours of demand in one week across all shift types."""

    hours = 0.0
    for shift in shift_types:
        duration = shift_duration_hours(shift)
        for weekday in WEEKDAYS:
            hours += shift.need_on(weekday) * duration
    return hours


def period_shift_hours(shift_types: Sequence[ShiftType], weeks: int = 4) -> float:
    return weekly_shift_hours(shift_types) * weeks


def _percentage(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def build_plan_analytics(
    options: ScheduleOptions,
    result: ScheduleResult,
    full_time_weekly_hours: float = 42.5,
) -> PlanAnalytics:
    days = list(iter_days(options.start_date, options.end_date))
    period_weeks = max(1, math.ceil(len(days) / 7))
    primary = [assignment for assignment in result.assignments if not assignment.is_follow_up]

    required_by_shift: dict[str, int] = {shift.id: 0 for shift in options.shift_types}
    for day in days:
        weekday = weekday_name(day)
        if weekday is None:
            continue
        for shift in options.shift_types:
            required_by_shift[shift.id] += shift.need_on(weekday)

    assigned_by_shift: dict[str, int] = {}
    assigned_by_employee: dict[str, int] = {}
    for assignment in primary:
        assigned_by_shift[assignment.shift_id] = assigned_by_shift.get(assignment.shift_id, 0) + 1
        assigned_by_employee[assignment.employee_id] = assigned_by_employee.get(assignment.employee_id, 0) + 1

    total_required = sum(required_by_shift.values())
    covered = sum(min(assigned_by_shift.get(shift_id, 0), need) for shift_id, need in required_by_shift.items())
    coverage = CoverageStats(
        total_required=total_required,
        total_assigned=len(primary),
        coverage_percentage=_percentage(covered, total_required),
        unassigned=max(total_required - covered, 0),
    )

    workloads = result.statistics.employee_workloads
    teams = [
        _team_stats(team, options.employees, workloads, assigned_by_employee) for team in options.teams
    ]

    employees: list[EmployeeUtilization] = []
    for employee in options.employees:
        stats = workloads.get(employee.id)
        hours = stats.hours if stats else 0.0
        target = stats.target_percentage if stats else 100.0
        expected = target / 100 * full_time_weekly_hours * period_weeks
        utilization = _percentage(hours, expected)
        employees.append(
            EmployeeUtilization(
                employee_id=employee.id,
                name=employee.display_name,
                team_id=employee.team_id,
                hours=hours,
                shifts=stats.shifts if stats else 0,
                expected_hours=expected,
                utilization_percentage=utilization,
                days_worked=len(stats.days_worked) if stats else 0,
                is_overworked=utilization > OVERWORKED_THRESHOLD,
                is_underworked=utilization < UNDERWORKED_THRESHOLD,
            )
        )
    employees.sort(key=lambda item: item.utilization_percentage, reverse=True)

    shift_types = [
        ShiftTypeUtilization(
            shift_id=shift.id,
            name=shift.name,
            total_required=required_by_shift[shift.id],
            total_assigned=assigned_by_shift.get(shift.id, 0),
            utilization_percentage=_percentage(assigned_by_shift.get(shift.id, 0), required_by_shift[shift.id]),
            is_understaffed=assigned_by_shift.get(shift.id, 0) < required_by_shift[shift.id],
        )
        for shift in options.shift_types
    ]
    shift_types.sort(key=lambda item: item.utilization_percentage)

    return PlanAnalytics(
        period_weeks=period_weeks,
        total_hours=sum(stats.hours for stats in workloads.values()),
        active_employees=sum(1 for stats in workloads.values() if stats.shifts > 0),
        conflict_count=len(result.conflicts),
        coverage=coverage,
        teams=teams,
        employees=employees,
        shift_types=shift_types,
    )


def _team_stats(
    team: Team,
    employees: Sequence[Employee],
    workloads: dict,
    assigned_by_employee: dict[str, int],
) -> TeamStats:
    members = [employee for employee in employees if employee.team_id == team.id]
    total_hours = sum(workloads[member.id].hours for member in members if member.id in workloads)
    return TeamStats(
        team_id=team.id,
        name=team.name,
        employee_count=len(members),
        total_assignments=sum(assigned_by_employee.get(member.id, 0) for member in members),
        total_hours=total_hours,
        average_hours=total_hours / len(members) if members else 0.0,
    )
