"""Scheduling services."""

from .models import ScheduleOptions, ScheduleResult
from .scheduler import SchedulingInputError, ShiftScheduler, generate_schedule

__all__ = [
    "ScheduleOptions",
    "ScheduleResult",
    "SchedulingInputError",
    "ShiftScheduler",
    "generate_schedule",
]
