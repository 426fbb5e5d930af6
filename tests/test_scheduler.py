from collections import Counter
from datetime import date, timedelta

import pytest

from shift_planner.services.availability import is_available
from shift_planner.services.dates import iter_days, weekday_name
from shift_planner.services.models import (
    Absence,
    ForbiddenSequenceRule,
    LearningYearQualification,
    MandatoryFollowUpRule,
    ShiftAssignment,
    ShiftPairing,
)
from shift_planner.services.scheduler import (
    SchedulerState,
    SchedulingInputError,
    ShiftScheduler,
    generate_schedule,
)

from .factories import (
    FRIDAY,
    MONDAY,
    NEXT_FRIDAY,
    NEXT_MONDAY,
    TUESDAY,
    WEDNESDAY,
    build_apprentice,
    build_employee,
    build_options,
    build_scheduler,
    build_shift_type,
    build_team,
    full_availability,
)

EVERY_WEEKDAY = {"monday": 1, "tuesday": 1, "wednesday": 1, "thursday": 1, "friday": 1}


def _rich_options():
    early = build_shift_type(weekly_needs=EVERY_WEEKDAY)
    late = build_shift_type(
        id="late",
        name="Late",
        start_time="14:00",
        end_time="22:00",
        weekly_needs={day: 2 for day in EVERY_WEEKDAY},
    )
    employees = [
        build_employee(id="emp-1", allowed_shift_ids=frozenset({"early", "late"})),
        build_employee(id="emp-2", first_name="Ben", team_id="team-b"),
        build_employee(
            id="emp-3",
            first_name="Cleo",
            allowed_shift_ids=frozenset({"late"}),
            availability=full_availability(tuesday_PM=False),
        ),
    ]
    return build_options(
        start_date=MONDAY,
        end_date=NEXT_FRIDAY,
        employees=employees,
        teams=[build_team(target_percentage=60), build_team(id="team-b", name="Pastry", target_percentage=40)],
        shift_types=[early, late],
        rules=[ForbiddenSequenceRule(id="r1", from_shift_id="late", to_shift_ids=frozenset({"early"}))],
        absences=[Absence(employee_id="emp-2", start_date=WEDNESDAY, end_date=date(2024, 11, 7))],
    )


def _total_demand(options) -> int:
    total = 0
    for day in iter_days(options.start_date, options.end_date):
        weekday = weekday_name(day)
        if weekday:
            total += sum(shift.need_on(weekday) for shift in options.shift_types)
    return total


def test_single_shift_is_assigned() -> None:
    result = generate_schedule(build_options())

    assert result.assignments == [ShiftAssignment("emp-1", "early", MONDAY)]
    assert result.conflicts == []
    assert result.statistics.total_assignments == 1
    assert result.statistics.unassigned_shifts == 0
    assert result.statistics.employee_workloads["emp-1"].hours == 8.0
    assert result.statistics.team_workloads == {"team-a": 1}


def test_unavailable_morning_leaves_a_conflict() -> None:
    options = build_options(employees=[build_employee(availability=full_availability(monday_AM=False))])

    result = generate_schedule(options)

    assert result.assignments == []
    assert result.conflicts == ["No available employee for shift Early on 2024-11-04 (slot 1 of 1)"]
    assert result.statistics.unassigned_shifts == 1


def test_every_unit_of_demand_is_reported_separately() -> None:
    options = build_options(shift_types=[build_shift_type(weekly_needs={"monday": 3})])

    result = generate_schedule(options)

    assert len(result.assignments) == 1
    assert result.conflicts == [
        "No available employee for shift Early on 2024-11-04 (slot 2 of 3)",
        "No available employee for shift Early on 2024-11-04 (slot 3 of 3)",
    ]


def test_same_day_forbidden_sequence_blocks_second_shift() -> None:
    alpha = build_shift_type(id="alpha", name="Alpha")
    bravo = build_shift_type(id="bravo", name="Bravo")
    rule = ForbiddenSequenceRule(id="r1", from_shift_id="alpha", to_shift_ids=frozenset({"bravo"}), same_day=True)
    options = build_options(
        employees=[build_employee(allowed_shift_ids=frozenset({"alpha", "bravo"}))],
        shift_types=[alpha, bravo],
        rules=[rule],
    )

    result = generate_schedule(options)

    assert [assignment.shift_id for assignment in result.assignments] == ["alpha"]
    assert result.conflicts == ["No available employee for shift Bravo on 2024-11-04 (slot 1 of 1)"]


def test_next_day_forbidden_sequence_moves_shift_to_colleague() -> None:
    alpha = build_shift_type(id="alpha", name="Alpha", weekly_needs={"monday": 1})
    bravo = build_shift_type(id="bravo", name="Bravo", weekly_needs={"tuesday": 1})
    rule = ForbiddenSequenceRule(id="r1", from_shift_id="alpha", to_shift_ids=frozenset({"bravo"}))
    anna = build_employee(allowed_shift_ids=frozenset({"alpha", "bravo"}))

    alone = generate_schedule(
        build_options(end_date=TUESDAY, employees=[anna], shift_types=[alpha, bravo], rules=[rule])
    )
    assert len(alone.assignments) == 1
    assert alone.conflicts == ["No available employee for shift Bravo on 2024-11-05 (slot 1 of 1)"]

    ben = build_employee(id="emp-2", first_name="Ben", allowed_shift_ids=frozenset({"bravo"}))
    together = generate_schedule(
        build_options(end_date=TUESDAY, employees=[anna, ben], shift_types=[alpha, bravo], rules=[rule])
    )
    assert together.conflicts == []
    assert ShiftAssignment("emp-2", "bravo", TUESDAY) in together.assignments


def test_mandatory_follow_up_fills_second_shift() -> None:
    alpha = build_shift_type(id="alpha", name="Alpha")
    bravo = build_shift_type(id="bravo", name="Bravo")
    rule = MandatoryFollowUpRule(id="f1", from_shift_id="alpha", to_shift_id="bravo", same_day=True)
    options = build_options(
        employees=[build_employee(allowed_shift_ids=frozenset({"alpha", "bravo"}))],
        shift_types=[alpha, bravo],
        rules=[rule],
    )

    result = generate_schedule(options)

    assert result.conflicts == []
    assert result.assignments == [
        ShiftAssignment("emp-1", "alpha", MONDAY),
        ShiftAssignment("emp-1", "bravo", MONDAY, is_follow_up=True),
    ]


def test_apprentice_rotation_balances_usage_over_two_weeks() -> None:
    options = build_options(
        end_date=NEXT_FRIDAY,
        employees=[build_apprentice(id="app-1"), build_apprentice(id="app-2", first_name="Mia")],
        shift_types=[build_shift_type(weekly_needs=EVERY_WEEKDAY)],
    )
    scheduler = ShiftScheduler(options)

    result = scheduler.schedule()

    assert result.conflicts == []
    counts = Counter(assignment.employee_id for assignment in result.assignments)
    assert counts == {"app-1": 5, "app-2": 5}
    rotation = scheduler.context.rotation
    assert rotation.usage_count(2, "early", "app-1") == rotation.usage_count(2, "early", "app-2")

    by_day = {assignment.date: assignment.employee_id for assignment in result.assignments}
    assert by_day[MONDAY] != by_day[NEXT_MONDAY]


def test_weekly_rotation_gives_each_week_to_one_apprentice() -> None:
    options = build_options(
        end_date=NEXT_FRIDAY,
        employees=[build_apprentice(id="app-1"), build_apprentice(id="app-2", first_name="Mia")],
        shift_types=[build_shift_type(weekly_needs=EVERY_WEEKDAY)],
        rotation_strategy="weekly",
    )

    result = generate_schedule(options)

    first_week = {a.employee_id for a in result.assignments if a.date <= FRIDAY}
    second_week = {a.employee_id for a in result.assignments if a.date >= NEXT_MONDAY}
    assert first_week == {"app-1"}
    assert second_week == {"app-2"}


def test_deferred_apprentice_covers_when_preferred_is_absent() -> None:
    options = build_options(
        employees=[build_apprentice(id="app-1"), build_apprentice(id="app-2", first_name="Mia")],
        absences=[Absence(employee_id="app-1", start_date=MONDAY, end_date=MONDAY)],
    )

    result = generate_schedule(options)

    assert result.assignments == [ShiftAssignment("app-2", "early", MONDAY)]


def test_learning_year_qualification_grants_shifts_and_availability() -> None:
    apprentice = build_apprentice(cohort_year=1, allowed_shift_ids=frozenset(), availability={})
    qualification = LearningYearQualification(
        year=1,
        qualified_shift_ids=frozenset({"early", "unknown"}),
        default_availability={"monday_AM": True, "monday_PM": True},
    )
    scheduler = build_scheduler(employees=[apprentice], learning_year_qualifications=[qualification])

    result = scheduler.schedule()

    assert scheduler.employees[0].allowed_shift_ids == frozenset({"early"})
    assert result.assignments == [ShiftAssignment("app-1", "early", MONDAY)]


def test_team_with_lower_fill_ratio_is_preferred() -> None:
    options = build_options(
        end_date=FRIDAY,
        employees=[build_employee(team_id="a"), build_employee(id="emp-2", first_name="Ben", team_id="b")],
        teams=[build_team(id="a", target_percentage=50), build_team(id="b", target_percentage=50)],
        shift_types=[build_shift_type(weekly_needs=EVERY_WEEKDAY)],
    )

    result = generate_schedule(options)

    assert [assignment.employee_id for assignment in result.assignments] == [
        "emp-1",
        "emp-2",
        "emp-1",
        "emp-2",
        "emp-1",
    ]
    assert result.statistics.team_workloads == {"a": 3, "b": 2}


def test_priority_order_groups_by_prefix_and_puts_paired_shift_last() -> None:
    names = ["Z", "0.", "2. Lunch", "1. VM", "4. Late", "3. Early"]
    shift_types = [build_shift_type(id=f"s{index}", name=name) for index, name in enumerate(names)]
    scheduler = build_scheduler(shift_types=shift_types, pairings=[ShiftPairing("s3", "s1")])

    order = [[shift.name for shift in group] for group in scheduler.priority_order()]

    assert order == [["3. Early", "4. Late"], ["2. Lunch"], ["1. VM", "0."], ["Z"]]


def test_higher_priority_group_is_filled_first() -> None:
    prep = build_shift_type(id="prep", name="0. Prep")
    dinner = build_shift_type(id="dinner", name="3. Dinner")
    options = build_options(
        employees=[build_employee(allowed_shift_ids=frozenset({"prep", "dinner"}))],
        shift_types=[prep, dinner],
    )

    result = generate_schedule(options)

    assert [assignment.shift_id for assignment in result.assignments] == ["dinner"]
    assert result.conflicts == ["No available employee for shift 0. Prep on 2024-11-04 (slot 1 of 1)"]


def test_paired_shift_goes_to_anchor_occupant() -> None:
    anchor = build_shift_type(id="vm", name="1. VM", start_time="07:00", end_time="11:00")
    paired = build_shift_type(id="zero", name="0.", start_time="06:00", end_time="07:00")
    allowed = frozenset({"vm", "zero"})
    options = build_options(
        employees=[
            build_employee(allowed_shift_ids=allowed),
            build_employee(id="emp-2", first_name="Ben", allowed_shift_ids=allowed),
        ],
        shift_types=[paired, anchor],
        pairings=[ShiftPairing(anchor_shift_id="vm", paired_shift_id="zero")],
    )

    result = generate_schedule(options)

    assert result.conflicts == []
    assert result.assignments == [
        ShiftAssignment("emp-1", "vm", MONDAY),
        ShiftAssignment("emp-1", "zero", MONDAY),
    ]


def test_blocked_pairing_leaves_paired_shift_open() -> None:
    anchor = build_shift_type(id="vm", name="1. VM", start_time="07:00", end_time="11:00")
    paired = build_shift_type(id="zero", name="0.", start_time="06:00", end_time="07:00")
    options = build_options(
        employees=[
            build_employee(allowed_shift_ids=frozenset({"vm"})),
            build_employee(id="emp-2", first_name="Ben", allowed_shift_ids=frozenset({"vm", "zero"})),
        ],
        shift_types=[anchor, paired],
        pairings=[ShiftPairing(anchor_shift_id="vm", paired_shift_id="zero")],
    )

    result = generate_schedule(options)

    assert result.assignments == [ShiftAssignment("emp-1", "vm", MONDAY)]
    assert result.conflicts == ["0. cannot be covered by Anna Keller (1. VM) on 2024-11-04 (slot 1 of 1)"]


def test_blocked_pairing_moves_on_to_next_anchor_occupant() -> None:
    anchor = build_shift_type(id="vm", name="1. VM", start_time="07:00", end_time="11:00", weekly_needs={"monday": 2})
    paired = build_shift_type(id="zero", name="0.", start_time="06:00", end_time="07:00", weekly_needs={"monday": 2})
    options = build_options(
        employees=[
            build_employee(allowed_shift_ids=frozenset({"vm"})),
            build_employee(id="emp-2", first_name="Ben", allowed_shift_ids=frozenset({"vm", "zero"})),
        ],
        shift_types=[anchor, paired],
        pairings=[ShiftPairing(anchor_shift_id="vm", paired_shift_id="zero")],
    )

    result = generate_schedule(options)

    assert result.assignments == [
        ShiftAssignment("emp-1", "vm", MONDAY),
        ShiftAssignment("emp-2", "vm", MONDAY),
        ShiftAssignment("emp-2", "zero", MONDAY),
    ]
    assert result.conflicts == ["0. cannot be covered by Anna Keller (1. VM) on 2024-11-04 (slot 1 of 2)"]
    assert len(result.assignments) + len(result.conflicts) == _total_demand(options)


def test_existing_assignments_are_kept_and_count_towards_demand() -> None:
    locked = ShiftAssignment("emp-1", "early", MONDAY, locked=True)
    options = build_options(
        employees=[build_employee(), build_employee(id="emp-2", first_name="Ben")],
        existing_assignments=[locked],
    )

    result = generate_schedule(options)

    assert result.assignments == [locked]
    assert result.assignments[0] is not locked
    assert result.conflicts == []
    assert result.statistics.employee_workloads["emp-1"].hours == 8.0


def test_existing_assignment_blocks_second_primary_that_day() -> None:
    late = build_shift_type(id="late", name="Late", start_time="14:00", end_time="20:00")
    options = build_options(
        employees=[build_employee(allowed_shift_ids=frozenset({"early", "late"}))],
        shift_types=[build_shift_type(), late],
        existing_assignments=[ShiftAssignment("emp-1", "early", MONDAY)],
    )

    result = generate_schedule(options)

    assert len(result.assignments) == 1
    assert result.conflicts == ["No available employee for shift Late on 2024-11-04 (slot 1 of 1)"]


def test_configuration_issues_do_not_stop_scheduling() -> None:
    rule = ForbiddenSequenceRule(id="r1", from_shift_id="early", to_shift_ids=frozenset({"ghost"}))

    result = generate_schedule(build_options(rules=[rule]))

    assert [issue.code for issue in result.configuration_issues] == ["rule-unknown-shift"]
    assert len(result.assignments) == 1


def test_weekend_only_range_produces_nothing() -> None:
    result = generate_schedule(build_options(start_date=date(2024, 11, 9), end_date=date(2024, 11, 10)))

    assert result.assignments == []
    assert result.conflicts == []


def test_schedule_is_deterministic() -> None:
    first = generate_schedule(_rich_options())
    second = generate_schedule(_rich_options())

    assert first.assignments == second.assignments
    assert first.conflicts == second.conflicts


def test_schedule_respects_hard_constraints() -> None:
    options = _rich_options()
    result = generate_schedule(options)
    employees = {employee.id: employee for employee in options.employees}
    shifts = {shift.id: shift for shift in options.shift_types}

    primaries = Counter((a.employee_id, a.date) for a in result.assignments if not a.is_follow_up)
    assert max(primaries.values()) == 1

    for assignment in result.assignments:
        employee = employees[assignment.employee_id]
        assert employee.may_work(assignment.shift_id)
        assert is_available(employee, assignment.date, shifts[assignment.shift_id], options.absences)

    held = {(a.employee_id, a.date, a.shift_id) for a in result.assignments}
    for employee_id, day, shift_id in held:
        if shift_id == "late":
            assert (employee_id, day + timedelta(days=1), "early") not in held

    assert len(result.assignments) + len(result.conflicts) == _total_demand(options)


def test_schedule_result_is_cached() -> None:
    scheduler = build_scheduler()

    assert scheduler.schedule() is scheduler.schedule()
    assert scheduler.state is SchedulerState.DONE


@pytest.mark.parametrize(
    "overrides",
    [
        {"end_date": MONDAY - timedelta(days=1)},
        {"start_date": None},
        {"max_follow_up_depth": 0},
        {"shift_types": [build_shift_type(start_time="6am")]},
    ],
)
def test_invalid_input_raises(overrides: dict) -> None:
    with pytest.raises(SchedulingInputError):
        ShiftScheduler(build_options(**overrides))
