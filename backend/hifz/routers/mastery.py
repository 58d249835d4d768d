"""
Group Mastery API Router

Endpoints for the group mastery sheet, recitation comments, weekly sessions
and attendance.

Endpoints:
- GET /api/groups/{group_id}/mastery - Mastery matrix of a group
- PUT /api/groups/{group_id}/mastery - Set or clear a chapter status
- POST /api/groups/{group_id}/mastery/comments - Add a recitation comment
- PATCH /api/comments/{comment_id} - Edit a comment
- DELETE /api/comments/{comment_id} - Delete a comment
- POST /api/groups/{group_id}/sessions/current - Resolve this week's session
- POST /api/sessions/{session_id}/attendance - Upsert attendance marks
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.db.base import get_db, get_session_factory
from hifz.db.models_progress import User
from hifz.dependencies import get_current_user
from hifz.enums.progress import SortOrder
from hifz.models.base import SuccessResponse
from hifz.models.progress import (
    AttendanceUpsert,
    CommentUpdateRequest,
    CommentView,
    MasteryCommentCreate,
    MasteryMatrixResponse,
    MasteryUpdateRequest,
    MasteryUpdateResponse,
    SessionResponse,
)
from hifz.services.progress import GroupMasteryService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["mastery"])


# ===========================================
# Dependency Injection
# ===========================================


async def get_mastery_service(
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> GroupMasteryService:
    """Get group mastery service."""
    return GroupMasteryService(db, session_factory)


# ===========================================
# Mastery Endpoints
# ===========================================


@router.get("/groups/{group_id}/mastery", response_model=MasteryMatrixResponse)
async def get_mastery(
    group_id: int,
    order: SortOrder = Query(SortOrder.ASC, description="Comment order by session date"),
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> MasteryMatrixResponse:
    """
    Get the mastery matrix of a group.

    Returns:
    - Roster of members
    - Chapter statuses per learner (fully covered chapters without a
      record appear as synthetic validated cells)
    - Comments per learner and chapter
    - Next session number and total sessions
    """
    return await service.get_mastery(group_id, caller, order=order)


@router.put("/groups/{group_id}/mastery", response_model=MasteryUpdateResponse)
async def set_mastery(
    group_id: int,
    request: MasteryUpdateRequest,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> MasteryUpdateResponse:
    """Set a chapter status for a learner; a null status deletes the record."""
    return await service.set_mastery(group_id, caller, request)


# ===========================================
# Comment Endpoints
# ===========================================


@router.post(
    "/groups/{group_id}/mastery/comments",
    response_model=CommentView,
    status_code=status.HTTP_201_CREATED,
)
async def add_mastery_comment(
    group_id: int,
    request: MasteryCommentCreate,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> CommentView:
    """
    Add a recitation comment.

    Without a session number (or with one past the last session) the
    comment goes to this week's session, which is created if needed.
    """
    return await service.add_comment(group_id, caller, request)


@router.patch("/comments/{comment_id}", response_model=CommentView)
async def edit_comment(
    comment_id: int,
    request: CommentUpdateRequest,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> CommentView:
    """Edit a comment's text or move it to another session."""
    return await service.edit_comment(comment_id, caller, request)


@router.delete("/comments/{comment_id}", response_model=SuccessResponse)
async def delete_comment(
    comment_id: int,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> SuccessResponse:
    await service.delete_comment(comment_id, caller)
    return SuccessResponse(message="Comment deleted")


# ===========================================
# Session Endpoints
# ===========================================


@router.post("/groups/{group_id}/sessions/current", response_model=SessionResponse)
async def resolve_current_session(
    group_id: int,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> SessionResponse:
    """Get this week's session of the group, creating it on first call."""
    return await service.resolve_current_session(group_id, caller)


@router.post("/sessions/{session_id}/attendance", response_model=SuccessResponse)
async def record_attendance(
    session_id: int,
    request: AttendanceUpsert,
    caller: User = Depends(get_current_user),
    service: GroupMasteryService = Depends(get_mastery_service),
) -> SuccessResponse:
    count = await service.record_attendance(session_id, caller, request)
    return SuccessResponse(message=f"Recorded {count} attendance marks")
