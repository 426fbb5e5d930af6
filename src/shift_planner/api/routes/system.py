from typing import Annotated

from fastapi import APIRouter, Depends

from shift_planner.core.config import Settings, get_settings
from shift_planner.services.policy import SchedulingPolicy, get_active_policy

router = APIRouter()


@router.get("/settings")
async def read_settings(
    settings: Annotated[Settings, Depends(get_settings)]
) -> dict[str, str]:
    """Expose basic runtime metadata for diagnostics."""
    return {
        "environment": settings.environment,
        "project": settings.project_name,
        "version": settings.version,
    }


@router.get("/policy", response_model=SchedulingPolicy)
async def read_policy(
    settings: Annotated[Settings, Depends(get_settings)]
) -> SchedulingPolicy:
    return get_active_policy(settings.policy_path)
