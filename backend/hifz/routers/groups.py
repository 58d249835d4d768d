"""
Group Insights API Router

Endpoints:
- GET /api/groups/{group_id}/ranking - Members ranked by memorized verses
- GET /api/groups/{group_id}/inactive - Members without recent activity

Ranking is open to every group member; inactivity alerts are for the
group's supervisors and administrators.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.db.base import get_db, get_session_factory
from hifz.db.models_progress import User
from hifz.dependencies import get_current_user
from hifz.models.progress import GroupRanking, InactiveLearner
from hifz.services.progress import GroupInsightsService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/groups", tags=["groups"])


async def get_insights_service(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> GroupInsightsService:
    """Get group insights service."""
    return GroupInsightsService(db, session_factory)


@router.get("/{group_id}/ranking", response_model=GroupRanking)
async def get_ranking(
    group_id: int,
    caller: User = Depends(get_current_user),
    service: GroupInsightsService = Depends(get_insights_service),
) -> GroupRanking:
    """Rank the group's members by distinct memorized verses."""
    return await service.get_ranking(group_id, caller)


@router.get("/{group_id}/inactive", response_model=list[InactiveLearner])
async def get_inactive(
    group_id: int,
    threshold_days: Optional[int] = Query(
        None, ge=1, description="Idle days before a member is listed; defaults to settings"
    ),
    caller: User = Depends(get_current_user),
    service: GroupInsightsService = Depends(get_insights_service),
) -> list[InactiveLearner]:
    """
    List members idle for at least the threshold.

    Members who never recorded any activity come first, then the longest idle.
    """
    return await service.get_inactive(group_id, caller, threshold_days=threshold_days)
