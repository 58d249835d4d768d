"""
Weekly Session Resolver

A group has at most one session per Sunday-anchored week. Every write that
needs a session without naming one (recitation comments, attendance) goes
through `resolve_week_session`, which finds this week's session or creates
it dated today.

Creation happens in its own short transaction guarded by the
(group_id, week_start) unique constraint. When two requests race, the loser
gets an IntegrityError, rolls back and re-reads the winner's row, so callers
never see two sessions for one week and never see the conflict.

Usage:
    resolver = WeeklySessionResolver(async_session_maker)
    session = await resolver.resolve_week_session(group_id, created_by=caller.id)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.db.models_progress import GroupSession
from hifz.middleware.error_handling import ConflictError
from hifz.services.progress.weeks import DateLike, iso_week_number, to_date, week_start

logger = logging.getLogger(__name__)


class WeeklySessionResolver:
    """Find-or-create of the current week's group session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    async def find_week_session(
        db: AsyncSession, group_id: int, day: DateLike
    ) -> Optional[GroupSession]:
        """Session of the group dated inside the Sunday-anchored week of `day`."""
        start = week_start(day)
        result = await db.execute(
            select(GroupSession)
            .where(
                GroupSession.group_id == group_id,
                GroupSession.session_date >= start,
                GroupSession.session_date < start + timedelta(days=7),
            )
            .order_by(GroupSession.session_date, GroupSession.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_sessions(db: AsyncSession, group_id: int) -> list[GroupSession]:
        """Sessions of a group in chronological order (session number = index + 1)."""
        result = await db.execute(
            select(GroupSession)
            .where(GroupSession.group_id == group_id)
            .order_by(GroupSession.session_date, GroupSession.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def count_sessions(db: AsyncSession, group_id: int) -> int:
        result = await db.execute(
            select(func.count(GroupSession.id)).where(GroupSession.group_id == group_id)
        )
        return result.scalar_one()

    async def resolve_week_session(
        self,
        group_id: int,
        now: Optional[DateLike] = None,
        created_by: Optional[int] = None,
    ) -> GroupSession:
        """
        Return this week's session of the group, creating it when missing.

        Args:
            group_id: Group the session belongs to.
            now: Reference instant; defaults to the current UTC time.
            created_by: User recorded as creator of a new session.

        Raises:
            ConflictError: Only if the unique constraint fired but the
                winning row cannot be read back.
        """
        today = to_date(now if now is not None else datetime.now(timezone.utc))

        async with self.session_factory() as db:
            existing = await self.find_week_session(db, group_id, today)
            if existing is not None:
                return existing

            session = GroupSession(
                group_id=group_id,
                session_date=today,
                week_start=week_start(today),
                iso_week=iso_week_number(today),
                created_by=created_by,
            )
            db.add(session)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                logger.warning(
                    f"Concurrent session creation for group {group_id} week "
                    f"{week_start(today)}, re-reading"
                )
                existing = await self.find_week_session(db, group_id, today)
                if existing is None:
                    raise ConflictError(
                        "Week session could not be created or read back",
                        details={"group_id": group_id, "week_start": str(week_start(today))},
                    )
                return existing

            logger.info(
                f"Created session {session.id} for group {group_id} on {today} "
                f"(ISO week {session.iso_week})"
            )
            return session

    async def resolve_by_number(
        self,
        db: AsyncSession,
        group_id: int,
        session_number: Optional[int],
        now: Optional[DateLike] = None,
        created_by: Optional[int] = None,
    ) -> GroupSession:
        """
        Map a 1-based session number to its session.

        A missing or out-of-range number resolves to this week's session
        instead of failing.
        """
        if session_number is not None and session_number >= 1:
            sessions = await self.list_sessions(db, group_id)
            if session_number <= len(sessions):
                return sessions[session_number - 1]
            logger.debug(
                f"Session number {session_number} out of range for group {group_id} "
                f"({len(sessions)} sessions), using current week"
            )
        return await self.resolve_week_session(group_id, now=now, created_by=created_by)

    async def session_number(self, db: AsyncSession, session: GroupSession) -> int:
        """Chronological number of a session within its group."""
        sessions = await self.list_sessions(db, session.group_id)
        for index, candidate in enumerate(sessions, start=1):
            if candidate.id == session.id:
                return index
        return len(sessions) + 1
