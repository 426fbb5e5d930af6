"""Forbidden-sequence checks and mandatory follow-up propagation."""

from __future__ import annotations

from datetime import date, timedelta

from shift_planner.services.context import SchedulingContext
from shift_planner.services.dates import weekday_name
from shift_planner.services.models import Employee, MandatoryFollowUpRule, ShiftType


def violates_forbidden_sequence(
    context: SchedulingContext, employee: Employee, day: date, shift: ShiftType
) -> bool:
    """
    Return True as soon as one forbidden-sequence rule links ``shift`` on ``day``
    with an assignment the employee already holds, in either direction.
    """

    held = context.employee_assignments(employee.id)
    if not held:
        return False

    for rule in context.forbidden_rules:
        for assignment in held:
            offset = (day - assignment.date).days
            if assignment.shift_id == rule.from_shift_id and shift.id in rule.to_shift_ids:
                if (rule.same_day and offset == 0) or (not rule.same_day and offset == 1):
                    return True
            if shift.id == rule.from_shift_id and assignment.shift_id in rule.to_shift_ids:
                if (rule.same_day and offset == 0) or (not rule.same_day and offset == -1):
                    return True
    return False


def _is_exempt(context: SchedulingContext, employee: Employee, rule: MandatoryFollowUpRule) -> bool:
    if not rule.same_day or not employee.is_apprentice:
        return False
    return any(
        exemption.from_shift_id == rule.from_shift_id
        and exemption.to_shift_id == rule.to_shift_id
        and exemption.cohort_year == employee.cohort_year
        for exemption in context.exempt_transitions
    )


def _demand_met(context: SchedulingContext, day: date, shift: ShiftType) -> bool:
    weekday = weekday_name(day)
    need = shift.need_on(weekday) if weekday else 0
    return context.filled(day, shift.id) >= need


def apply_mandatory_follow_ups(
    context: SchedulingContext,
    employee: Employee,
    day: date,
    shift: ShiftType,
    depth: int = 0,
) -> None:
    """
    Create the follow-up assignments required after ``employee`` took ``shift``.

    Blocked follow-ups are reported as conflicts; the triggering assignment is
    kept either way. Calling this twice for the same trigger adds nothing the
    second time.
    """

    for rule in context.follow_up_rules:
        if rule.from_shift_id != shift.id:
            continue
        target = context.shift_lookup.get(rule.to_shift_id)
        if target is None:
            continue
        if _is_exempt(context, employee, rule):
            continue

        follow_day = day if rule.same_day else day + timedelta(days=1)
        label = f"{employee.display_name} on {follow_day.isoformat()}"

        if context.holds(employee.id, follow_day, target.id):
            continue
        if depth >= context.max_follow_up_depth:
            context.add_conflict(
                f"Follow-up chain for {label} stopped at {target.name}: "
                f"depth limit {context.max_follow_up_depth} reached"
            )
            continue
        if not employee.may_work(target.id):
            context.add_conflict(f"Follow-up shift {target.name} not permitted for {label}")
            continue
        if not context.available(employee, follow_day, target):
            context.add_conflict(
                f"{employee.display_name} not available for follow-up shift {target.name} "
                f"on {follow_day.isoformat()}"
            )
            continue

        other_primary = any(
            assignment.date == follow_day
            and not assignment.is_follow_up
            and not (assignment.date == day and assignment.shift_id == shift.id)
            for assignment in context.employee_assignments(employee.id)
        )
        if other_primary:
            continue
        if context.capacity_aware_follow_ups and _demand_met(context, follow_day, target):
            continue
        if violates_forbidden_sequence(context, employee, follow_day, target):
            context.add_conflict(f"Follow-up shift {target.name} for {label} breaks a forbidden sequence")
            continue

        context.commit(employee, follow_day, target, is_follow_up=True)
        apply_mandatory_follow_ups(context, employee, follow_day, target, depth + 1)
