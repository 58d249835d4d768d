"""
Group Mastery Service

Operations behind the group mastery sheet:

- get_mastery: roster, per-learner chapter statuses (with synthetic cells
  for silently completed chapters), comment timelines, session counters
- set_mastery: upsert or clear an explicit chapter status
- add_comment / edit_comment / delete_comment: recitation assessments,
  anchored to a session resolved through the weekly session resolver
- resolve_current_session / record_attendance: session-scoped writes

Authorization runs first in every operation; writes are single statements.

Usage:
    service = GroupMasteryService(db, async_session_maker)
    matrix = await service.get_mastery(group_id, caller)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.config import settings
from hifz.db.models_progress import (
    AttendanceRecord,
    GroupMember,
    GroupSession,
    MasteryRecord,
    RecitationComment,
    User,
)
from hifz.db.upsert import upsert
from hifz.enums.progress import VALIDATED_STATUSES, SortOrder
from hifz.middleware.error_handling import NotFoundError, ValidationError
from hifz.models.progress import (
    AttendanceUpsert,
    CommentUpdateRequest,
    CommentView,
    MasteryCommentCreate,
    MasteryMatrixResponse,
    MasteryUpdateRequest,
    MasteryUpdateResponse,
    RosterMember,
    SessionResponse,
)
from hifz.services.progress.chapters import (
    reference_verse_counts,
    validate_chapter,
    validate_verse_range,
)
from hifz.services.progress.mastery_reconciler import (
    build_roster_statuses,
    comment_view,
    group_comments,
)
from hifz.services.progress.permissions import (
    MEMBER_OR_ADMIN,
    SUPERVISOR_OR_ADMIN,
    get_user,
    require_role,
)
from hifz.services.progress.records import RecordLoader
from hifz.services.progress.session_resolver import WeeklySessionResolver
from hifz.services.progress.weeks import DateLike, to_date, week_start

logger = logging.getLogger(__name__)


def clean_comment_text(text: Optional[str]) -> str:
    """
    Raises:
        ValidationError: On empty or oversized comment text.
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text must not be empty")
    if len(text) > settings.COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment exceeds {settings.COMMENT_MAX_LENGTH} characters",
            details={"length": len(text), "max": settings.COMMENT_MAX_LENGTH},
        )
    return text


class GroupMasteryService:
    """
    Mastery sheet reads and supervisor writes for one study group.

    Reads go through RecordLoader (one session per concurrent fetch);
    writes use the request session. Session find-or-create runs in its own
    transaction inside WeeklySessionResolver.
    """

    def __init__(self, db: AsyncSession, session_factory: async_sessionmaker[AsyncSession]):
        self.db = db
        self.loader = RecordLoader(session_factory)
        self.resolver = WeeklySessionResolver(session_factory)

    async def _require_member_of_group(self, group_id: int, learner_id: int) -> None:
        result = await self.db.execute(
            select(GroupMember.id).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == learner_id,
            )
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                f"Learner {learner_id} is not a member of group {group_id}",
                details={"group_id": group_id, "learner_id": learner_id},
            )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_mastery(
        self,
        group_id: int,
        caller: User,
        order: SortOrder = SortOrder.ASC,
        now: Optional[DateLike] = None,
    ) -> MasteryMatrixResponse:
        """
        Full mastery matrix of a group.

        next_session_number is the number of this week's session when it
        exists, otherwise the number the next created session will get.
        """
        await require_role(self.db, caller, group_id, MEMBER_OR_ADMIN)
        snapshot = await self.loader.load_group(group_id)

        today = to_date(now if now is not None else datetime.now(timezone.utc))
        current_week = week_start(today)
        total_sessions = len(snapshot.sessions)
        next_number = total_sessions + 1
        for index, session in enumerate(snapshot.sessions, start=1):
            if week_start(session.session_date) == current_week:
                next_number = index
                break

        statuses = build_roster_statuses(
            snapshot.mastery_records, snapshot.entries, snapshot.verse_counts
        )
        comments = group_comments(snapshot.comments, snapshot.sessions, order=order)

        return MasteryMatrixResponse(
            group_id=group_id,
            roster=[RosterMember(user_id=m.id, name=m.name) for m in snapshot.members],
            chapter_status_by_learner={m.id: statuses.get(m.id, []) for m in snapshot.members},
            comments_by_learner_and_chapter={
                m.id: comments[m.id] for m in snapshot.members if m.id in comments
            },
            next_session_number=next_number,
            total_sessions=total_sessions,
        )

    # =========================================================================
    # Mastery Writes
    # =========================================================================

    async def set_mastery(
        self, group_id: int, caller: User, request: MasteryUpdateRequest
    ) -> MasteryUpdateResponse:
        """Upsert a chapter status, or delete the record when status is null."""
        await require_role(self.db, caller, group_id, SUPERVISOR_OR_ADMIN)
        validate_chapter(reference_verse_counts(), request.chapter_number)
        await get_user(self.db, request.learner_id)
        await self._require_member_of_group(group_id, request.learner_id)

        if request.status is None:
            result = await self.db.execute(
                delete(MasteryRecord).where(
                    MasteryRecord.learner_id == request.learner_id,
                    MasteryRecord.chapter_number == request.chapter_number,
                )
            )
            await self.db.flush()
            logger.info(
                f"Cleared mastery of chapter {request.chapter_number} for learner "
                f"{request.learner_id} by {caller.id}"
            )
            return MasteryUpdateResponse(success=True, deleted=result.rowcount > 0)

        now = datetime.now(timezone.utc)
        await upsert(
            self.db,
            MasteryRecord,
            ["learner_id", "chapter_number"],
            {
                "learner_id": request.learner_id,
                "chapter_number": request.chapter_number,
                "status": request.status.value,
                "validated_week": request.validated_week,
                "validated_at": now if request.status in VALIDATED_STATUSES else None,
                "updated_at": now,
            },
        )
        await self.db.flush()
        logger.info(
            f"Set mastery of chapter {request.chapter_number} for learner "
            f"{request.learner_id} to {request.status.value} by {caller.id}"
        )
        return MasteryUpdateResponse(success=True, deleted=False)

    # =========================================================================
    # Comments
    # =========================================================================

    async def _view(self, comment: RecitationComment) -> CommentView:
        session = await self.db.get(GroupSession, comment.session_id)
        number = await self.resolver.session_number(self.db, session)
        return comment_view(comment, session, number)

    async def add_comment(
        self,
        group_id: int,
        caller: User,
        request: MasteryCommentCreate,
        now: Optional[DateLike] = None,
    ) -> CommentView:
        """
        Attach a recitation comment to a session of the group.

        The session is the one numbered `session_number`, or this week's
        session (created if needed) when no number or an out-of-range one
        is given.
        """
        await require_role(self.db, caller, group_id, SUPERVISOR_OR_ADMIN)
        text = clean_comment_text(request.comment)
        verse_counts = reference_verse_counts()
        validate_chapter(verse_counts, request.chapter_number)
        if request.verse_start is not None or request.verse_end is not None:
            validate_verse_range(
                verse_counts, request.chapter_number, request.verse_start, request.verse_end
            )
        await get_user(self.db, request.learner_id)
        await self._require_member_of_group(group_id, request.learner_id)

        session = await self.resolver.resolve_by_number(
            self.db, group_id, request.session_number, now=now, created_by=caller.id
        )
        comment = RecitationComment(
            session_id=session.id,
            learner_id=request.learner_id,
            chapter_number=request.chapter_number,
            verse_start=request.verse_start,
            verse_end=request.verse_end,
            status=request.status.value if request.status else None,
            comment=text,
        )
        self.db.add(comment)
        await self.db.flush()
        logger.info(
            f"Comment {comment.id} added on chapter {request.chapter_number} for learner "
            f"{request.learner_id} in session {session.id}"
        )
        return await self._view(comment)

    async def _get_comment_for_supervisor(
        self, comment_id: int, caller: User
    ) -> RecitationComment:
        comment = await self.db.get(RecitationComment, comment_id)
        if comment is None:
            raise NotFoundError(
                f"Comment {comment_id} not found", details={"comment_id": comment_id}
            )
        session = await self.db.get(GroupSession, comment.session_id)
        await require_role(self.db, caller, session.group_id, SUPERVISOR_OR_ADMIN)
        return comment

    async def edit_comment(
        self, comment_id: int, caller: User, request: CommentUpdateRequest
    ) -> CommentView:
        """Replace the text and/or move the comment to another session."""
        comment = await self._get_comment_for_supervisor(comment_id, caller)
        text = clean_comment_text(request.comment) if request.comment is not None else None

        # Resolve the target session before touching the row: the resolver
        # may create a session in its own transaction.
        if request.session_number is not None:
            current = await self.db.get(GroupSession, comment.session_id)
            target = await self.resolver.resolve_by_number(
                self.db, current.group_id, request.session_number, created_by=caller.id
            )
            comment.session_id = target.id
        if text is not None:
            comment.comment = text

        await self.db.flush()
        logger.info(f"Comment {comment_id} edited by {caller.id}")
        return await self._view(comment)

    async def delete_comment(self, comment_id: int, caller: User) -> None:
        comment = await self._get_comment_for_supervisor(comment_id, caller)
        await self.db.delete(comment)
        await self.db.flush()
        logger.info(f"Comment {comment_id} deleted by {caller.id}")

    # =========================================================================
    # Sessions & Attendance
    # =========================================================================

    async def resolve_current_session(
        self, group_id: int, caller: User, now: Optional[DateLike] = None
    ) -> SessionResponse:
        """This week's session of the group, created on first request."""
        await require_role(self.db, caller, group_id, SUPERVISOR_OR_ADMIN)
        session = await self.resolver.resolve_week_session(
            group_id, now=now, created_by=caller.id
        )
        return SessionResponse(
            id=session.id,
            group_id=session.group_id,
            session_date=session.session_date,
            week_start=session.week_start,
            iso_week=session.iso_week,
            session_number=await self.resolver.session_number(self.db, session),
        )

    async def record_attendance(
        self, session_id: int, caller: User, request: AttendanceUpsert
    ) -> int:
        """
        Upsert presence marks for a session.

        Returns:
            Number of marks written.
        """
        session = await self.db.get(GroupSession, session_id)
        if session is None:
            raise NotFoundError(
                f"Session {session_id} not found", details={"session_id": session_id}
            )
        await require_role(self.db, caller, session.group_id, SUPERVISOR_OR_ADMIN)
        for entry in request.records:
            await self._require_member_of_group(session.group_id, entry.learner_id)

        for entry in request.records:
            await upsert(
                self.db,
                AttendanceRecord,
                ["session_id", "learner_id"],
                {
                    "session_id": session_id,
                    "learner_id": entry.learner_id,
                    "present": entry.present,
                    "excused": entry.excused,
                    "note": entry.note,
                },
            )
        await self.db.flush()
        logger.info(f"Recorded {len(request.records)} attendance marks for session {session_id}")
        return len(request.records)
