from __future__ import annotations

from typing import Sequence

from shift_planner.services.dates import parse_clock
from shift_planner.services.models import (
    ConfigurationIssue,
    Employee,
    ForbiddenSequenceRule,
    MandatoryFollowUpRule,
    ShiftRule,
    ShiftType,
    Team,
)


def validate_configuration(
    employees: Sequence[Employee],
    teams: Sequence[Team],
    shift_types: Sequence[ShiftType],
    rules: Sequence[ShiftRule],
) -> list[ConfigurationIssue]:
    """
    Report dangling references, unparsable times and follow-up cycles.

    The engine skips whatever these issues point at, so they are surfaced here
    rather than raised.
    """

    issues: list[ConfigurationIssue] = []
    shift_ids = {shift.id for shift in shift_types}
    team_ids = {team.id for team in teams}

    for shift in shift_types:
        for label, value in (("start", shift.start_time), ("end", shift.end_time)):
            try:
                parse_clock(value)
            except ValueError:
                issues.append(
                    ConfigurationIssue(
                        code="invalid-shift-time",
                        message=f"Shift {shift.name} has an invalid {label} time {value!r}.",
                        severity="critical",
                    )
                )

    for rule in rules:
        referenced = [rule.from_shift_id]
        if isinstance(rule, ForbiddenSequenceRule):
            referenced.extend(sorted(rule.to_shift_ids))
        else:
            referenced.append(rule.to_shift_id)
        for shift_id in referenced:
            if shift_id not in shift_ids:
                issues.append(
                    ConfigurationIssue(
                        code="rule-unknown-shift",
                        message=f"Rule {rule.name or rule.id} references unknown shift type {shift_id}.",
                    )
                )

    for employee in employees:
        if employee.team_id not in team_ids:
            issues.append(
                ConfigurationIssue(
                    code="employee-unknown-team",
                    message=f"Employee {employee.display_name} belongs to unknown team {employee.team_id}.",
                )
            )
        for shift_id in sorted(employee.allowed_shift_ids - shift_ids):
            issues.append(
                ConfigurationIssue(
                    code="employee-unknown-shift",
                    message=f"Employee {employee.display_name} is allowed on unknown shift type {shift_id}.",
                    severity="info",
                )
            )

    for cycle in find_follow_up_cycles([rule for rule in rules if isinstance(rule, MandatoryFollowUpRule)]):
        issues.append(
            ConfigurationIssue(
                code="follow-up-cycle",
                message="Mandatory follow-up rules form a cycle: " + " -> ".join(cycle),
            )
        )

    return issues


def find_follow_up_cycles(rules: Sequence[MandatoryFollowUpRule]) -> list[list[str]]:
    graph: dict[str, list[str]] = {}
    for rule in rules:
        graph.setdefault(rule.from_shift_id, []).append(rule.to_shift_id)

    cycles: list[list[str]] = []
    seen_cycles: set[frozenset[str]] = set()
    finished: set[str] = set()

    def _visit(node: str, path: list[str]) -> None:
        if node in path:
            cycle = path[path.index(node):] + [node]
            key = frozenset(cycle)
            if key not in seen_cycles:
                seen_cycles.add(key)
                cycles.append(cycle)
            return
        if node in finished:
            return
        path.append(node)
        for successor in graph.get(node, []):
            _visit(successor, path)
        path.pop()
        finished.add(node)

    for start in graph:
        _visit(start, [])
    return cycles
