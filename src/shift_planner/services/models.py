"""Typed records exchanged between the scheduling engine and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Union

EmployeeType = Literal["qualified", "apprentice"]
RotationStrategy = Literal["weekly", "least_used"]

DEFAULT_PRIORITY_GROUPS: tuple[tuple[str, ...], ...] = (("3", "4"), ("2",), ("0", "1"))


@dataclass(frozen=True)
class Employee:
    id: str
    first_name: str
    last_name: str
    team_id: str
    employee_type: EmployeeType = "qualified"
    cohort_year: int | None = None
    grade: float = 100.0
    shift_percentage: float | None = None
    allowed_shift_ids: frozenset[str] = frozenset()
    suitability: dict[str, int] = field(default_factory=dict)
    availability: dict[str, bool] = field(default_factory=dict)
    short_name: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_apprentice(self) -> bool:
        return self.employee_type == "apprentice" and self.cohort_year is not None

    def may_work(self, shift_id: str) -> bool:
        return shift_id in self.allowed_shift_ids


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    target_percentage: float
    leader_id: str | None = None


@dataclass(frozen=True)
class ShiftType:
    id: str
    name: str
    start_time: str
    end_time: str
    weekly_needs: dict[str, int] = field(default_factory=dict)

    @property
    def is_overnight(self) -> bool:
        # HH:MM strings compare correctly as text
        return self.end_time < self.start_time

    def need_on(self, weekday: str) -> int:
        return int(self.weekly_needs.get(weekday, 0) or 0)


@dataclass(frozen=True)
class ForbiddenSequenceRule:
    id: str
    from_shift_id: str
    to_shift_ids: frozenset[str]
    same_day: bool = False
    name: str | None = None
    type: Literal["forbidden_sequence"] = "forbidden_sequence"


@dataclass(frozen=True)
class MandatoryFollowUpRule:
    id: str
    from_shift_id: str
    to_shift_id: str
    same_day: bool = False
    name: str | None = None
    type: Literal["mandatory_follow_up"] = "mandatory_follow_up"


ShiftRule = Union[ForbiddenSequenceRule, MandatoryFollowUpRule]


@dataclass(frozen=True)
class Absence:
    employee_id: str
    start_date: date
    end_date: date
    reason: str | None = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass
class ShiftAssignment:
    employee_id: str
    shift_id: str
    date: date
    locked: bool = False
    is_follow_up: bool = False


@dataclass(frozen=True)
class LearningYearQualification:
    year: int
    qualified_shift_ids: frozenset[str] = frozenset()
    default_availability: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ShiftPairing:
    """The occupant of ``anchor_shift_id`` also covers ``paired_shift_id`` that day."""

    anchor_shift_id: str
    paired_shift_id: str


@dataclass(frozen=True)
class ExemptTransition:
    """A same-day mandatory follow-up that does not apply to one apprentice cohort."""

    from_shift_id: str
    to_shift_id: str
    cohort_year: int


@dataclass
class WorkloadStats:
    hours: float = 0.0
    shifts: int = 0
    target_percentage: float = 100.0
    days_worked: set[date] = field(default_factory=set)


@dataclass
class ConfigurationIssue:
    code: str
    message: str
    severity: Literal["info", "warning", "critical"] = "warning"


@dataclass
class ScheduleOptions:
    start_date: date | None
    end_date: date | None
    employees: list[Employee] = field(default_factory=list)
    teams: list[Team] = field(default_factory=list)
    shift_types: list[ShiftType] = field(default_factory=list)
    rules: list[ShiftRule] = field(default_factory=list)
    absences: list[Absence] = field(default_factory=list)
    existing_assignments: list[ShiftAssignment] = field(default_factory=list)
    learning_year_qualifications: list[LearningYearQualification] = field(default_factory=list)
    pairings: list[ShiftPairing] = field(default_factory=list)
    exempt_transitions: list[ExemptTransition] = field(default_factory=list)
    priority_groups: tuple[tuple[str, ...], ...] = DEFAULT_PRIORITY_GROUPS
    rotation_strategy: RotationStrategy = "least_used"
    capacity_aware_follow_ups: bool = True
    max_follow_up_depth: int = 3


@dataclass
class ScheduleStatistics:
    total_assignments: int
    unassigned_shifts: int
    employee_workloads: dict[str, WorkloadStats]
    team_workloads: dict[str, int]


@dataclass
class ScheduleResult:
    assignments: list[ShiftAssignment]
    conflicts: list[str]
    statistics: ScheduleStatistics
    configuration_issues: list[ConfigurationIssue] = field(default_factory=list)
