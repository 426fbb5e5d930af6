import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from shift_planner.core.config import Settings, get_settings
from shift_planner.schemas.planning import (
    ConfigurationIssueRead,
    ConfigurationValidationRequest,
    PlanAnalyticsRead,
    ScheduleRequest,
    ScheduleResponse,
    ScheduleStatisticsRead,
    WorkloadStatsRead,
)
from shift_planner.schemas.roster import (
    EmployeePayload,
    ForbiddenSequenceRulePayload,
    ShiftAssignmentRead,
    ShiftRulePayload,
    ShiftTypePayload,
    TeamPayload,
)
from shift_planner.services.analytics import build_plan_analytics
from shift_planner.services.models import (
    Absence,
    Employee,
    ExemptTransition,
    ForbiddenSequenceRule,
    LearningYearQualification,
    MandatoryFollowUpRule,
    ScheduleOptions,
    ScheduleResult,
    ShiftAssignment,
    ShiftPairing,
    ShiftRule,
    ShiftType,
    Team,
)
from shift_planner.services.policy import (
    SchedulingPolicy,
    get_active_policy,
    priority_groups,
    resolve_exempt_transitions,
    resolve_pairings,
)
from shift_planner.services.scheduler import SchedulingInputError, generate_schedule
from shift_planner.services.validation import validate_configuration

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_employee(payload: EmployeePayload) -> Employee:
    return Employee(
        id=payload.id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        short_name=payload.short_name,
        team_id=payload.team_id,
        employee_type=payload.employee_type,
        cohort_year=payload.cohort_year,
        grade=payload.grade,
        shift_percentage=payload.shift_percentage,
        allowed_shift_ids=frozenset(payload.allowed_shift_ids),
        suitability=dict(payload.suitability),
        availability=dict(payload.availability),
    )


def _to_team(payload: TeamPayload) -> Team:
    return Team(
        id=payload.id,
        name=payload.name,
        target_percentage=payload.target_percentage,
        leader_id=payload.leader_id,
    )


def _to_shift_type(payload: ShiftTypePayload) -> ShiftType:
    return ShiftType(
        id=payload.id,
        name=payload.name,
        start_time=payload.start_time,
        end_time=payload.end_time,
        weekly_needs=dict(payload.weekly_needs),
    )


def _to_rule(payload: ShiftRulePayload) -> ShiftRule:
    if isinstance(payload, ForbiddenSequenceRulePayload):
        return ForbiddenSequenceRule(
            id=payload.id,
            from_shift_id=payload.from_shift_id,
            to_shift_ids=frozenset(payload.to_shift_ids),
            same_day=payload.same_day,
            name=payload.name,
        )
    return MandatoryFollowUpRule(
        id=payload.id,
        from_shift_id=payload.from_shift_id,
        to_shift_id=payload.to_shift_id,
        same_day=payload.same_day,
        name=payload.name,
    )


def _build_options(payload: ScheduleRequest, policy: SchedulingPolicy) -> ScheduleOptions:
    shift_types = [_to_shift_type(shift) for shift in payload.shift_types]

    if payload.pairings is None:
        pairings = resolve_pairings(policy, shift_types)
    else:
        pairings = [
            ShiftPairing(anchor_shift_id=item.anchor_shift_id, paired_shift_id=item.paired_shift_id)
            for item in payload.pairings
        ]
    if payload.exempt_transitions is None:
        exempt_transitions = resolve_exempt_transitions(policy, shift_types)
    else:
        exempt_transitions = [
            ExemptTransition(
                from_shift_id=item.from_shift_id,
                to_shift_id=item.to_shift_id,
                cohort_year=item.cohort_year,
            )
            for item in payload.exempt_transitions
        ]

    return ScheduleOptions(
        start_date=payload.start_date,
        end_date=payload.end_date,
        employees=[_to_employee(employee) for employee in payload.employees],
        teams=[_to_team(team) for team in payload.teams],
        shift_types=shift_types,
        rules=[_to_rule(rule) for rule in payload.rules],
        absences=[
            Absence(
                employee_id=absence.employee_id,
                start_date=absence.start_date,
                end_date=absence.end_date,
                reason=absence.reason,
            )
            for absence in payload.absences
        ],
        existing_assignments=[
            ShiftAssignment(**assignment.model_dump()) for assignment in payload.existing_assignments
        ],
        learning_year_qualifications=[
            LearningYearQualification(
                year=qualification.year,
                qualified_shift_ids=frozenset(qualification.qualified_shift_ids),
                default_availability=dict(qualification.default_availability),
            )
            for qualification in payload.learning_year_qualifications
        ],
        pairings=pairings,
        exempt_transitions=exempt_transitions,
        priority_groups=priority_groups(policy),
        rotation_strategy=policy.rotation_strategy,
        capacity_aware_follow_ups=policy.capacity_aware_follow_ups,
        max_follow_up_depth=policy.max_follow_up_depth,
    )


def _map_result(result: ScheduleResult) -> ScheduleResponse:
    statistics = result.statistics
    return ScheduleResponse(
        assignments=[ShiftAssignmentRead.model_validate(assignment) for assignment in result.assignments],
        conflicts=result.conflicts,
        statistics=ScheduleStatisticsRead(
            total_assignments=statistics.total_assignments,
            unassigned_shifts=statistics.unassigned_shifts,
            employee_workloads={
                employee_id: WorkloadStatsRead(
                    hours=stats.hours,
                    shifts=stats.shifts,
                    target_percentage=stats.target_percentage,
                    days_worked=sorted(stats.days_worked),
                )
                for employee_id, stats in statistics.employee_workloads.items()
            },
            team_workloads=dict(statistics.team_workloads),
        ),
        configuration_issues=[
            ConfigurationIssueRead.model_validate(issue) for issue in result.configuration_issues
        ],
    )


@router.post("/generate", response_model=ScheduleResponse)
async def generate_plan(
    payload: ScheduleRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ScheduleResponse:
    policy = get_active_policy(settings.policy_path)
    options = _build_options(payload, policy)

    started = time.perf_counter()
    try:
        result = generate_schedule(options)
    except SchedulingInputError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    duration_ms = int((time.perf_counter() - started) * 1000)
    logger.info("Plan generated in %d ms", duration_ms)

    response = _map_result(result)
    response.duration_ms = duration_ms
    if payload.include_analytics:
        analytics = build_plan_analytics(options, result, policy.full_time_weekly_hours)
        response.analytics = PlanAnalyticsRead.model_validate(analytics)
    return response


@router.post("/validate", response_model=list[ConfigurationIssueRead])
async def validate_plan_configuration(
    payload: ConfigurationValidationRequest,
) -> list[ConfigurationIssueRead]:
    issues = validate_configuration(
        [_to_employee(employee) for employee in payload.employees],
        [_to_team(team) for team in payload.teams],
        [_to_shift_type(shift) for shift in payload.shift_types],
        [_to_rule(rule) for rule in payload.rules],
    )
    return [ConfigurationIssueRead.model_validate(issue) for issue in issues]
