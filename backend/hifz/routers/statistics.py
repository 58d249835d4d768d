"""
Statistics API Router

Endpoints:
- GET /api/statistics/{learner_id} - Statistics report for a scope
- GET /api/learners/{learner_id}/profile - Learner profile

Visibility: the learner, administrators and managers, supervisors of a
shared group, and members of a shared group unless the learner's
statistics are private.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.db.base import get_db, get_session_factory
from hifz.db.models_progress import User
from hifz.dependencies import get_current_user
from hifz.enums.progress import TimeScope
from hifz.models.progress import LearnerProfile, StatisticsReport
from hifz.services.progress import LearnerProfileService, StatisticsService
from hifz.services.progress.permissions import require_visibility

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["statistics"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_statistics_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> StatisticsService:
    """Get statistics service."""
    return StatisticsService(session_factory)


async def get_profile_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> LearnerProfileService:
    """Get learner profile service."""
    return LearnerProfileService(session_factory)


# ===========================================
# Endpoints
# ===========================================


@router.get("/statistics/{learner_id}", response_model=StatisticsReport)
async def get_statistics(
    learner_id: int,
    scope: TimeScope = Query(TimeScope.WEEK, description="Time scope"),
    year: Optional[int] = Query(None, description="Year for month/year scopes"),
    month: Optional[int] = Query(None, ge=1, le=12, description="Month for the month scope"),
    week_offset: int = Query(0, le=0, description="0 = current week, -1 = previous"),
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: StatisticsService = Depends(get_statistics_service),
) -> StatisticsReport:
    """
    Get a learner's statistics.

    Returns:
    - Coverage and reconciled mastery (all time)
    - Activity, attendance and submission rates for the period
    - Daily and weekly objective streaks
    - Trend of completed activities against the previous period
    - Rolling weekly evolution and completion cycles
    """
    await require_visibility(db, caller, learner_id)
    return await service.get_statistics(
        learner_id, scope=scope, year=year, month=month, week_offset=week_offset
    )


@router.get("/learners/{learner_id}/profile", response_model=LearnerProfile)
async def get_learner_profile(
    learner_id: int,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: LearnerProfileService = Depends(get_profile_service),
) -> LearnerProfile:
    """Get mastery, attendance, recent recitations and validations of a learner."""
    await require_visibility(db, caller, learner_id)
    return await service.get_profile(learner_id)
