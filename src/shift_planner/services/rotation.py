from __future__ import annotations

from collections import defaultdict
from typing import Collection, Iterable, Sequence

from shift_planner.services.models import Employee, RotationStrategy, ShiftType


class ApprenticeRotation:
    """
    Rotates preference among apprentices of the same cohort year.

    Each cohort keeps a weekly index into its id-sorted member list. With the
    ``least_used`` strategy the member who has worked a shift type least often
    is preferred and the weekly index only breaks ties; with ``weekly`` the
    index alone decides.
    """

    def __init__(self, employees: Iterable[Employee], strategy: RotationStrategy = "least_used") -> None:
        self.strategy = strategy
        cohorts: dict[int, list[Employee]] = defaultdict(list)
        for employee in employees:
            if employee.is_apprentice:
                cohorts[employee.cohort_year].append(employee)
        self.cohorts: dict[int, list[Employee]] = {
            year: sorted(members, key=lambda member: member.id) for year, members in sorted(cohorts.items())
        }
        self.indices: dict[int, int] = {year: 0 for year in self.cohorts}
        self.usage: dict[tuple[int, str], dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def advance_week(self) -> None:
        for year, members in self.cohorts.items():
            if len(members) > 1:
                self.indices[year] = (self.indices[year] + 1) % len(members)

    def active_member(self, year: int) -> str | None:
        members = self.cohorts.get(year)
        if not members:
            return None
        return members[self.indices[year]].id

    def record(self, employee: Employee, shift_id: str) -> None:
        if employee.is_apprentice:
            self.usage[(employee.cohort_year, shift_id)][employee.id] += 1

    def usage_count(self, year: int, shift_id: str, employee_id: str) -> int:
        return self.usage.get((year, shift_id), {}).get(employee_id, 0)

    def preferred_member(self, year: int, shift_id: str, eligible_ids: Collection[str]) -> str | None:
        members = self.cohorts.get(year, [])
        pool = [(position, member) for position, member in enumerate(members) if member.id in eligible_ids]
        if len(pool) < 2:
            return None
        size = len(members)
        start = self.indices.get(year, 0)

        def rotation_offset(position: int) -> int:
            return (position - start) % size

        if self.strategy == "weekly":
            _, chosen = min(pool, key=lambda item: rotation_offset(item[0]))
        else:
            _, chosen = min(
                pool,
                key=lambda item: (self.usage_count(year, shift_id, item[1].id), rotation_offset(item[0])),
            )
        return chosen.id

    def order_candidates(
        self, ranked: Sequence[Employee], shift: ShiftType
    ) -> tuple[list[Employee], list[Employee]]:
        """
        Split ``ranked`` into ``(preferred, deferred)``. Deferred apprentices are
        cohort members that are not this week's preferred pick for ``shift``.
        """

        preferred_ids: dict[int, str | None] = {}
        for year, members in self.cohorts.items():
            eligible = {member.id for member in members if member.may_work(shift.id)}
            preferred_ids[year] = self.preferred_member(year, shift.id, eligible)

        preferred: list[Employee] = []
        deferred: list[Employee] = []
        for employee in ranked:
            if not employee.is_apprentice:
                preferred.append(employee)
                continue
            chosen = preferred_ids.get(employee.cohort_year)
            if chosen is None or chosen == employee.id:
                preferred.append(employee)
            else:
                deferred.append(employee)
        return preferred, deferred
