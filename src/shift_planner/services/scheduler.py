from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import Collection

from shift_planner.services.context import SchedulingContext
from shift_planner.services.dates import iter_weeks, shift_duration_hours, weekday_name
from shift_planner.services.models import (
    Employee,
    ForbiddenSequenceRule,
    MandatoryFollowUpRule,
    ScheduleOptions,
    ScheduleResult,
    ScheduleStatistics,
    ShiftType,
)
from shift_planner.services.qualifications import apply_learning_year_qualifications
from shift_planner.services.rotation import ApprenticeRotation
from shift_planner.services.rule_engine import apply_mandatory_follow_ups, violates_forbidden_sequence
from shift_planner.services.validation import validate_configuration
from shift_planner.services.workload import WorkloadTracker, count_schedulable_slots

logger = logging.getLogger(__name__)


class SchedulingInputError(ValueError):
    """Raised for call-time input the engine cannot work with at all."""


class SchedulerState(str, Enum):
    INITIALIZING = "initializing"
    WEEK_LOOP = "week_loop"
    DAY_LOOP = "day_loop"
    SHIFT_LOOP = "shift_loop"
    SLOT_LOOP = "slot_loop"
    DONE = "done"


def _check_options(options: ScheduleOptions) -> None:
    if options.start_date is None or options.end_date is None:
        raise SchedulingInputError("start_date and end_date are required")
    if options.end_date < options.start_date:
        raise SchedulingInputError(
            f"end_date {options.end_date.isoformat()} is before start_date {options.start_date.isoformat()}"
        )
    if options.max_follow_up_depth < 1:
        raise SchedulingInputError("max_follow_up_depth must be at least 1")


class ShiftScheduler:
    """
    Greedy single-pass scheduler.

    The range is walked week by week. Inside a week every priority group is
    resolved for all weekdays before the next group starts, and each unit of
    demand is filled by the first candidate passing availability and rule
    checks. Unfilled demand becomes a conflict string instead of an error.
    """

    def __init__(self, options: ScheduleOptions) -> None:
        self.state = SchedulerState.INITIALIZING
        _check_options(options)
        self.options = options

        employees = list(options.employees)
        if options.learning_year_qualifications:
            employees = apply_learning_year_qualifications(
                employees, options.learning_year_qualifications, options.shift_types
            )
        self.employees: list[Employee] = employees
        self.employee_lookup = {employee.id: employee for employee in employees}
        self.shift_types: list[ShiftType] = list(options.shift_types)
        shift_lookup = {shift.id: shift for shift in self.shift_types}

        try:
            durations = {shift.id: shift_duration_hours(shift) for shift in self.shift_types}
        except ValueError as exc:
            raise SchedulingInputError(str(exc)) from exc

        self.configuration_issues = validate_configuration(
            employees, options.teams, self.shift_types, options.rules
        )
        for issue in self.configuration_issues:
            logger.warning("Configuration issue [%s]: %s", issue.code, issue.message)

        existing = [replace(assignment) for assignment in options.existing_assignments]

        workload = WorkloadTracker(
            employees,
            options.teams,
            durations,
            count_schedulable_slots(options.start_date, options.end_date, self.shift_types),
        )
        workload.seed(existing)

        rotation = ApprenticeRotation(employees, options.rotation_strategy)
        for assignment in existing:
            employee = self.employee_lookup.get(assignment.employee_id)
            if employee is not None and not assignment.is_follow_up:
                rotation.record(employee, assignment.shift_id)

        self.context = SchedulingContext(
            shift_lookup=shift_lookup,
            workload=workload,
            rotation=rotation,
            absences=list(options.absences),
            forbidden_rules=[rule for rule in options.rules if isinstance(rule, ForbiddenSequenceRule)],
            follow_up_rules=[rule for rule in options.rules if isinstance(rule, MandatoryFollowUpRule)],
            exempt_transitions=list(options.exempt_transitions),
            capacity_aware_follow_ups=options.capacity_aware_follow_ups,
            max_follow_up_depth=options.max_follow_up_depth,
            assignments=existing,
        )

        self.anchor_for: dict[str, str] = {
            pairing.paired_shift_id: pairing.anchor_shift_id
            for pairing in options.pairings
            if pairing.paired_shift_id in shift_lookup and pairing.anchor_shift_id in shift_lookup
        }
        self._result: ScheduleResult | None = None

        logger.info(
            "Scheduler initialised with %d employees, %d shift types and %d existing assignments",
            len(employees),
            len(self.shift_types),
            len(existing),
        )

    def priority_order(self) -> list[list[ShiftType]]:
        """Group shift types by name prefix; paired shifts follow the rest of their group."""

        prefix_groups = [tuple(group) for group in self.options.priority_groups]
        grouped: list[list[ShiftType]] = [[] for _ in prefix_groups]
        remainder: list[ShiftType] = []
        for shift in self.shift_types:
            for index, prefixes in enumerate(prefix_groups):
                if shift.name.startswith(prefixes):
                    grouped[index].append(shift)
                    break
            else:
                remainder.append(shift)

        def sort_key(shift: ShiftType) -> tuple[bool, str]:
            return (shift.id in self.anchor_for, shift.name)

        return [sorted(group, key=sort_key) for group in [*grouped, remainder] if group]

    def schedule(self) -> ScheduleResult:
        if self._result is not None:
            return self._result

        groups = self.priority_order()
        for week_index, (_monday, days) in enumerate(iter_weeks(self.options.start_date, self.options.end_date)):
            self.state = SchedulerState.WEEK_LOOP
            if week_index > 0:
                self.context.rotation.advance_week()
            workdays = [day for day in days if weekday_name(day)]
            for group in groups:
                for day in workdays:
                    self.state = SchedulerState.DAY_LOOP
                    for shift in group:
                        self.state = SchedulerState.SHIFT_LOOP
                        self._fill_shift(day, shift)

        self.state = SchedulerState.DONE
        self._result = self._build_result()
        return self._result

    def _fill_shift(self, day: date, shift: ShiftType) -> None:
        need = shift.need_on(weekday_name(day))
        already = self.context.filled(day, shift.id)
        if need <= already:
            return

        anchor_id = self.anchor_for.get(shift.id)
        tried_partners: set[str] = set()
        for slot in range(already + 1, need + 1):
            self.state = SchedulerState.SLOT_LOOP
            if anchor_id is not None:
                partner = self._pairing_partner(day, anchor_id, shift, tried_partners)
                if partner is not None:
                    tried_partners.add(partner.id)
                    if self._can_pair(partner, day, shift):
                        self._commit(partner, day, shift)
                    else:
                        anchor = self.context.shift_lookup[anchor_id]
                        self.context.add_conflict(
                            f"{shift.name} cannot be covered by {partner.display_name} "
                            f"({anchor.name}) on {day.isoformat()} (slot {slot} of {need})"
                        )
                    continue

            employee = self._select_ranked(day, shift) or self._select_fallback(day, shift)
            if employee is None:
                self.context.add_conflict(
                    f"No available employee for shift {shift.name} on {day.isoformat()} (slot {slot} of {need})"
                )
                continue
            self._commit(employee, day, shift)

    def _pairing_partner(
        self, day: date, anchor_id: str, shift: ShiftType, skip: Collection[str] = ()
    ) -> Employee | None:
        for assignment in self.context.assignments:
            if assignment.date != day or assignment.shift_id != anchor_id or assignment.is_follow_up:
                continue
            if assignment.employee_id in skip:
                continue
            employee = self.employee_lookup.get(assignment.employee_id)
            if employee is not None and not self.context.holds(employee.id, day, shift.id):
                return employee
        return None

    def _can_pair(self, employee: Employee, day: date, shift: ShiftType) -> bool:
        return (
            employee.may_work(shift.id)
            and self.context.available(employee, day, shift)
            and not violates_forbidden_sequence(self.context, employee, day, shift)
        )

    def _eligible(self, employee: Employee, day: date, shift: ShiftType) -> bool:
        if not employee.may_work(shift.id):
            return False
        if not self.context.available(employee, day, shift):
            return False
        if self.context.has_primary_on(employee.id, day):
            return False
        return not violates_forbidden_sequence(self.context, employee, day, shift)

    def _select_ranked(self, day: date, shift: ShiftType) -> Employee | None:
        ranked = self.context.workload.rank_candidates(self.employees, shift)
        preferred, _deferred = self.context.rotation.order_candidates(ranked, shift)
        for employee in preferred:
            if self._eligible(employee, day, shift):
                return employee
        return None

    def _select_fallback(self, day: date, shift: ShiftType) -> Employee | None:
        for employee in self.employees:
            if self._eligible(employee, day, shift):
                return employee
        return None

    def _commit(self, employee: Employee, day: date, shift: ShiftType) -> None:
        self.context.commit(employee, day, shift)
        apply_mandatory_follow_ups(self.context, employee, day, shift)

    def _build_result(self) -> ScheduleResult:
        conflicts = self.context.unique_conflicts()
        workload = self.context.workload
        logger.info(
            "Scheduling finished with %d assignments and %d conflicts",
            len(self.context.assignments),
            len(conflicts),
        )
        return ScheduleResult(
            assignments=list(self.context.assignments),
            conflicts=conflicts,
            statistics=ScheduleStatistics(
                total_assignments=len(self.context.assignments),
                unassigned_shifts=len(conflicts),
                employee_workloads=workload.employee_workloads,
                team_workloads=workload.team_workloads,
            ),
            configuration_issues=list(self.configuration_issues),
        )


def generate_schedule(options: ScheduleOptions) -> ScheduleResult:
    """Run one complete scheduling pass over ``options``."""

    return ShiftScheduler(options).schedule()
