from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from shift_planner.schemas.roster import (
    AbsencePayload,
    EmployeePayload,
    ExemptTransitionPayload,
    LearningYearQualificationPayload,
    ShiftAssignmentBase,
    ShiftAssignmentRead,
    ShiftPairingPayload,
    ShiftRulePayload,
    ShiftTypePayload,
    TeamPayload,
)


class ScheduleRequest(BaseModel):
    """Everything one plan generation needs; nothing is read from storage."""

    start_date: date
    end_date: date
    employees: list[EmployeePayload] = Field(default_factory=list)
    teams: list[TeamPayload] = Field(default_factory=list)
    shift_types: list[ShiftTypePayload] = Field(default_factory=list)
    rules: list[ShiftRulePayload] = Field(default_factory=list)
    absences: list[AbsencePayload] = Field(default_factory=list)
    existing_assignments: list[ShiftAssignmentBase] = Field(default_factory=list)
    learning_year_qualifications: list[LearningYearQualificationPayload] = Field(default_factory=list)
    # None means "derive from the active policy by shift name"
    pairings: list[ShiftPairingPayload] | None = None
    exempt_transitions: list[ExemptTransitionPayload] | None = None
    include_analytics: bool = False


class ConfigurationValidationRequest(BaseModel):
    employees: list[EmployeePayload] = Field(default_factory=list)
    teams: list[TeamPayload] = Field(default_factory=list)
    shift_types: list[ShiftTypePayload] = Field(default_factory=list)
    rules: list[ShiftRulePayload] = Field(default_factory=list)


class WorkloadStatsRead(BaseModel):
    hours: float
    shifts: int
    target_percentage: float
    days_worked: list[date] = Field(default_factory=list)


class ScheduleStatisticsRead(BaseModel):
    total_assignments: int
    unassigned_shifts: int
    employee_workloads: dict[str, WorkloadStatsRead] = Field(default_factory=dict)
    team_workloads: dict[str, int] = Field(default_factory=dict)


class ConfigurationIssueRead(BaseModel):
    code: str
    message: str
    severity: Literal["info", "warning", "critical"] = "warning"

    model_config = ConfigDict(from_attributes=True)


class CoverageRead(BaseModel):
    total_required: int
    total_assigned: int
    coverage_percentage: float
    unassigned: int

    model_config = ConfigDict(from_attributes=True)


class TeamStatsRead(BaseModel):
    team_id: str
    name: str
    employee_count: int
    total_assignments: int
    total_hours: float
    average_hours: float

    model_config = ConfigDict(from_attributes=True)


class EmployeeUtilizationRead(BaseModel):
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

    model_config = ConfigDict(from_attributes=True)


class ShiftTypeUtilizationRead(BaseModel):
    shift_id: str
    name: str
    total_required: int
    total_assigned: int
    utilization_percentage: float
    is_understaffed: bool

    model_config = ConfigDict(from_attributes=True)


class PlanAnalyticsRead(BaseModel):
    period_weeks: int
    total_hours: float
    active_employees: int
    conflict_count: int
    coverage: CoverageRead
    teams: list[TeamStatsRead] = Field(default_factory=list)
    employees: list[EmployeeUtilizationRead] = Field(default_factory=list)
    shift_types: list[ShiftTypeUtilizationRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class ScheduleResponse(BaseModel):
    assignments: list[ShiftAssignmentRead]
    conflicts: list[str] = Field(default_factory=list)
    statistics: ScheduleStatisticsRead
    configuration_issues: list[ConfigurationIssueRead] = Field(default_factory=list)
    duration_ms: int | None = None
    analytics: PlanAnalyticsRead | None = None
