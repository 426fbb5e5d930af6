"""Scheduling policy: the configuration table behind pairings, exemptions and ordering."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Literal, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from shift_planner.services.models import ExemptTransition, ShiftPairing, ShiftType

logger = logging.getLogger(__name__)


class PairingRule(BaseModel):
    anchor_shift: str
    paired_shift: str

    @model_validator(mode="after")
    def validate_distinct(self) -> "PairingRule":
        if self.anchor_shift == self.paired_shift:
            raise ValueError("a shift cannot be paired with itself")
        return self


class ExemptTransitionRule(BaseModel):
    from_shift: str
    to_shift: str
    cohort_year: int = Field(ge=1)


class SchedulingPolicy(BaseModel):
    pairings: list[PairingRule] = Field(default_factory=list)
    exempt_transitions: list[ExemptTransitionRule] = Field(default_factory=list)
    priority_groups: list[list[str]] = Field(default_factory=list)
    rotation_strategy: Literal["weekly", "least_used"] = "least_used"
    capacity_aware_follow_ups: bool = True
    max_follow_up_depth: int = Field(default=3, ge=1)
    full_time_weekly_hours: float = Field(default=42.5, gt=0)

    @field_validator("priority_groups")
    @classmethod
    def validate_groups(cls, groups: list[list[str]]) -> list[list[str]]:
        if any(not group for group in groups):
            raise ValueError("priority groups must not be empty")
        return groups


def _read_policy(payload: dict) -> SchedulingPolicy:
    return SchedulingPolicy.model_validate(payload["policy"])


def _load_policy_from_json() -> SchedulingPolicy:
    with resources.files("shift_planner.services.data").joinpath("default_policy.json").open(
        "r", encoding="utf-8"
    ) as handle:
        payload = json.load(handle)
    return _read_policy(payload)


@lru_cache(maxsize=1)
def load_default_policy() -> SchedulingPolicy:
    """Return the policy bundled with the application."""

    return _load_policy_from_json()


def load_policy(path: Path | str) -> SchedulingPolicy:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    logger.info("Loaded scheduling policy from %s", path)
    return _read_policy(payload)


def get_active_policy(policy_path: Path | str | None = None) -> SchedulingPolicy:
    if policy_path:
        return load_policy(policy_path)
    return load_default_policy()


def _ids_by_name(shift_types: Sequence[ShiftType]) -> dict[str, str]:
    lookup: dict[str, str] = {}
    for shift in shift_types:
        lookup.setdefault(shift.name, shift.id)
    return lookup


def resolve_pairings(policy: SchedulingPolicy, shift_types: Sequence[ShiftType]) -> list[ShiftPairing]:
    """Translate named pairings into shift-type ids, dropping names that are not configured."""

    ids = _ids_by_name(shift_types)
    return [
        ShiftPairing(anchor_shift_id=ids[rule.anchor_shift], paired_shift_id=ids[rule.paired_shift])
        for rule in policy.pairings
        if rule.anchor_shift in ids and rule.paired_shift in ids
    ]


def resolve_exempt_transitions(
    policy: SchedulingPolicy, shift_types: Sequence[ShiftType]
) -> list[ExemptTransition]:
    ids = _ids_by_name(shift_types)
    return [
        ExemptTransition(
            from_shift_id=ids[rule.from_shift],
            to_shift_id=ids[rule.to_shift],
            cohort_year=rule.cohort_year,
        )
        for rule in policy.exempt_transitions
        if rule.from_shift in ids and rule.to_shift in ids
    ]


def priority_groups(policy: SchedulingPolicy) -> tuple[tuple[str, ...], ...]:
    return tuple(tuple(group) for group in policy.priority_groups)
