"""
Learner Activity API Router

Endpoints a learner uses to log their own work.

Endpoints:
- POST /api/activity/progress - Log a verse range
- DELETE /api/activity/progress/{entry_id} - Delete a logged range
- PUT /api/activity/daily-completions - Mark a program done for a day
- GET /api/activity/weekly-objectives - Active objectives with this week's completion
- POST /api/activity/weekly-objectives - Add a custom objective
- DELETE /api/activity/weekly-objectives/{objective_id} - Retire a custom objective
- PUT /api/activity/weekly-objectives/{objective_id}/completion - Mark an objective for a week
- POST /api/activity/completion-cycles - Record a full revision/reading pass
- GET /api/activity/completion-cycles - Completion cycle statistics
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hifz.db.base import get_db
from hifz.db.models_progress import User
from hifz.dependencies import get_current_user
from hifz.models.base import SuccessResponse
from hifz.models.progress import (
    CompletionCycleCreate,
    CompletionCycleResponse,
    CycleStats,
    DailyCompletionUpsert,
    ObjectiveCompletionUpsert,
    ProgressEntryCreate,
    ProgressEntryResponse,
    WeeklyObjectiveCreate,
    WeeklyObjectiveView,
)
from hifz.services.progress import ActivityService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/activity", tags=["activity"])


async def get_activity_service(db: AsyncSession = Depends(get_db)) -> ActivityService:
    """Get activity service."""
    return ActivityService(db)


# ===========================================
# Progress Entries
# ===========================================


@router.post(
    "/progress",
    response_model=ProgressEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_progress(
    request: ProgressEntryCreate,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> ProgressEntryResponse:
    """Log a verse range under an activity program."""
    return await service.log_progress(caller, request)


@router.delete("/progress/{entry_id}", response_model=SuccessResponse)
async def delete_progress(
    entry_id: int,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> SuccessResponse:
    await service.delete_progress(caller, entry_id)
    return SuccessResponse(message="Progress entry deleted")


# ===========================================
# Weekly Objectives
# ===========================================


@router.get("/weekly-objectives", response_model=list[WeeklyObjectiveView])
async def list_objectives(
    week_of: Optional[date] = Query(None, description="Any date of the week; defaults to this week"),
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> list[WeeklyObjectiveView]:
    """List active objectives; defaults are created on the first call."""
    return await service.list_objectives(caller, week_of=week_of)


@router.post(
    "/weekly-objectives",
    response_model=WeeklyObjectiveView,
    status_code=status.HTTP_201_CREATED,
)
async def create_objective(
    request: WeeklyObjectiveCreate,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> WeeklyObjectiveView:
    return await service.create_objective(caller, request)


@router.delete("/weekly-objectives/{objective_id}", response_model=SuccessResponse)
async def deactivate_objective(
    objective_id: int,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> SuccessResponse:
    await service.deactivate_objective(caller, objective_id)
    return SuccessResponse(message="Objective removed")


# ===========================================
# Completions
# ===========================================


@router.put("/daily-completions", response_model=SuccessResponse)
async def set_daily_completion(
    request: DailyCompletionUpsert,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> SuccessResponse:
    await service.set_daily_completion(caller, request)
    return SuccessResponse(message="Daily completion saved")


@router.put("/weekly-objectives/{objective_id}/completion", response_model=SuccessResponse)
async def set_objective_completion(
    objective_id: int,
    request: ObjectiveCompletionUpsert,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> SuccessResponse:
    await service.set_objective_completion(caller, objective_id, request)
    return SuccessResponse(message="Objective completion saved")


# ===========================================
# Completion Cycles
# ===========================================


@router.post(
    "/completion-cycles",
    response_model=CompletionCycleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_cycle(
    request: CompletionCycleCreate,
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> CompletionCycleResponse:
    """Record a completed full pass; days since the previous pass are computed."""
    return await service.record_cycle(caller, request)


@router.get("/completion-cycles", response_model=list[CycleStats])
async def get_cycle_stats(
    caller: User = Depends(get_current_user),
    service: ActivityService = Depends(get_activity_service),
) -> list[CycleStats]:
    """Days since the last pass and average pass duration, per cycle type."""
    return await service.get_cycle_stats(caller.id)
