from datetime import date
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

CLOCK_PATTERN = r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$"


class TeamPayload(BaseModel):
    id: str
    name: str
    target_percentage: float = Field(ge=0, le=100)
    leader_id: str | None = None


class EmployeePayload(BaseModel):
    id: str
    first_name: str
    last_name: str
    short_name: str | None = None
    employee_type: Literal["qualified", "apprentice"] = "qualified"
    cohort_year: int | None = Field(default=None, ge=1)
    grade: float = Field(default=100.0, ge=0, le=100)
    team_id: str
    shift_percentage: float | None = Field(default=None, ge=0, le=100)
    allowed_shift_ids: list[str] = Field(default_factory=list)
    suitability: dict[str, Annotated[int, Field(ge=0, le=5)]] = Field(default_factory=dict)
    availability: dict[str, bool] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_cohort(self) -> "EmployeePayload":
        if self.employee_type == "apprentice" and self.cohort_year is None:
            raise ValueError("apprentices need a cohort_year")
        return self


class ShiftTypePayload(BaseModel):
    id: str
    name: str
    start_time: str = Field(pattern=CLOCK_PATTERN)
    end_time: str = Field(pattern=CLOCK_PATTERN)
    weekly_needs: dict[str, Annotated[int, Field(ge=0)]] = Field(default_factory=dict)


class ForbiddenSequenceRulePayload(BaseModel):
    type: Literal["forbidden_sequence"] = "forbidden_sequence"
    id: str
    from_shift_id: str
    to_shift_ids: list[str] = Field(min_length=1)
    same_day: bool = False
    name: str | None = None


class MandatoryFollowUpRulePayload(BaseModel):
    type: Literal["mandatory_follow_up"] = "mandatory_follow_up"
    id: str
    from_shift_id: str
    to_shift_id: str
    same_day: bool = False
    name: str | None = None


ShiftRulePayload = Annotated[
    Union[ForbiddenSequenceRulePayload, MandatoryFollowUpRulePayload],
    Field(discriminator="type"),
]


class AbsencePayload(BaseModel):
    employee_id: str
    start_date: date
    end_date: date
    reason: str | None = None

    @model_validator(mode="after")
    def validate_range(self) -> "AbsencePayload":
        if self.end_date < self.start_date:
            raise ValueError("absence end_date cannot precede start_date")
        return self


class LearningYearQualificationPayload(BaseModel):
    year: int = Field(ge=1)
    qualified_shift_ids: list[str] = Field(default_factory=list)
    default_availability: dict[str, bool] = Field(default_factory=dict)


class ShiftPairingPayload(BaseModel):
    anchor_shift_id: str
    paired_shift_id: str


class ExemptTransitionPayload(BaseModel):
    from_shift_id: str
    to_shift_id: str
    cohort_year: int = Field(ge=1)


class ShiftAssignmentBase(BaseModel):
    employee_id: str
    shift_id: str
    date: date
    locked: bool = False
    is_follow_up: bool = False


class ShiftAssignmentRead(ShiftAssignmentBase):
    model_config = ConfigDict(from_attributes=True)
