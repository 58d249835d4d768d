"""
Concurrent Record Loading

Fetches the raw rows one aggregation pass needs. The fetches have no
ordering dependency, so each runs in its own AsyncSession (one session
cannot run two statements at once) and they are awaited together with
asyncio.gather. The resulting snapshot is then handed to the pure
derivation functions; nothing derived is stored.

Usage:
    loader = RecordLoader(async_session_maker)
    snapshot = await loader.load_learner(learner_id)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.db.models_progress import (
    AttendanceRecord,
    Chapter,
    CompletionCycle,
    DailyActivityCompletion,
    Group,
    GroupMember,
    GroupSession,
    MasteryRecord,
    ProgressEntry,
    RecitationComment,
    User,
    Verse,
    WeeklyObjective,
    WeeklyObjectiveCompletion,
)
from hifz.enums.progress import ActivityProgram, GroupRole
from hifz.middleware.error_handling import NotFoundError
from hifz.services.progress.attendance import AttendanceMark
from hifz.services.progress.chapters import verse_counts_from_rows
from hifz.services.progress.verse_sets import PageMap
from hifz.services.progress.weeks import to_date

logger = logging.getLogger(__name__)


@dataclass
class LearnerSnapshot:
    """Everything statistics and profile derivations read for one learner."""

    learner: User
    verse_counts: dict[int, int]
    page_map: PageMap
    entries: list[ProgressEntry] = field(default_factory=list)
    mastery_records: list[MasteryRecord] = field(default_factory=list)
    completions: list[DailyActivityCompletion] = field(default_factory=list)
    objectives: list[WeeklyObjective] = field(default_factory=list)
    objective_completions: list[WeeklyObjectiveCompletion] = field(default_factory=list)
    cycles: list[CompletionCycle] = field(default_factory=list)
    attendance: list[AttendanceMark] = field(default_factory=list)

    @property
    def first_completion_date(self) -> Optional[date]:
        """First day with a completed daily activity."""
        dates = [to_date(c.completion_date) for c in self.completions if c.completed]
        return min(dates) if dates else None

    @property
    def adoption_date(self) -> Optional[date]:
        """Earliest completion or progress entry: when the learner started."""
        dates = [to_date(c.completion_date) for c in self.completions]
        dates.extend(to_date(e.entry_date) for e in self.entries)
        return min(dates) if dates else None

    @property
    def earliest_record_date(self) -> Optional[date]:
        """Earliest completion, progress entry or attended session."""
        dates = [to_date(c.completion_date) for c in self.completions]
        dates.extend(to_date(e.entry_date) for e in self.entries)
        dates.extend(m.session_date for m in self.attendance)
        return min(dates) if dates else None


@dataclass
class GroupSnapshot:
    """Roster, sessions and records behind the group mastery matrix."""

    group: Group
    members: list[User]
    verse_counts: dict[int, int]
    sessions: list[GroupSession] = field(default_factory=list)
    mastery_records: list[MasteryRecord] = field(default_factory=list)
    entries: list[ProgressEntry] = field(default_factory=list)
    comments: list[RecitationComment] = field(default_factory=list)


class RecordLoader:
    """Issues independent reads concurrently, one session per read."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _scalars(self, statement) -> list:
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def _rows(self, statement) -> list:
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return list(result.all())

    async def _one_or_none(self, statement):
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    async def load_verse_counts(self) -> dict[int, int]:
        return verse_counts_from_rows(await self._scalars(select(Chapter)))

    async def load_page_map(self) -> PageMap:
        rows = await self._rows(select(Verse.chapter_number, Verse.verse_number, Verse.page))
        return {(chapter, verse): page for chapter, verse, page in rows}

    # -------------------------------------------------------------------------
    # Learner
    # -------------------------------------------------------------------------

    async def load_attendance_marks(self, learner_id: int) -> list[AttendanceMark]:
        rows = await self._rows(
            select(
                GroupSession.session_date,
                AttendanceRecord.present,
                AttendanceRecord.excused,
            )
            .join(GroupSession, AttendanceRecord.session_id == GroupSession.id)
            .where(AttendanceRecord.learner_id == learner_id)
        )
        return [
            AttendanceMark(session_date=session_date, present=present, excused=excused)
            for session_date, present, excused in rows
        ]

    async def load_objective_completions(
        self, learner_id: int
    ) -> list[WeeklyObjectiveCompletion]:
        return await self._scalars(
            select(WeeklyObjectiveCompletion)
            .join(WeeklyObjective, WeeklyObjectiveCompletion.objective_id == WeeklyObjective.id)
            .where(WeeklyObjective.learner_id == learner_id)
        )

    async def load_learner(self, learner_id: int) -> LearnerSnapshot:
        """
        Fetch every raw record of one learner concurrently.

        Raises:
            NotFoundError: If the learner does not exist.
        """
        (
            learner,
            verse_counts,
            page_map,
            entries,
            mastery_records,
            completions,
            objectives,
            objective_completions,
            cycles,
            attendance,
        ) = await asyncio.gather(
            self._one_or_none(select(User).where(User.id == learner_id)),
            self.load_verse_counts(),
            self.load_page_map(),
            self._scalars(
                select(ProgressEntry)
                .where(ProgressEntry.learner_id == learner_id)
                .order_by(ProgressEntry.entry_date, ProgressEntry.id)
            ),
            self._scalars(
                select(MasteryRecord)
                .where(MasteryRecord.learner_id == learner_id)
                .order_by(MasteryRecord.chapter_number)
            ),
            self._scalars(
                select(DailyActivityCompletion).where(
                    DailyActivityCompletion.learner_id == learner_id
                )
            ),
            self._scalars(select(WeeklyObjective).where(WeeklyObjective.learner_id == learner_id)),
            self.load_objective_completions(learner_id),
            self._scalars(
                select(CompletionCycle)
                .where(CompletionCycle.learner_id == learner_id)
                .order_by(CompletionCycle.completed_at)
            ),
            self.load_attendance_marks(learner_id),
        )

        if learner is None:
            raise NotFoundError(
                f"Learner {learner_id} not found", details={"learner_id": learner_id}
            )

        logger.debug(
            f"Loaded learner {learner_id}: {len(entries)} entries, "
            f"{len(mastery_records)} mastery records, {len(completions)} completions"
        )
        return LearnerSnapshot(
            learner=learner,
            verse_counts=verse_counts,
            page_map=page_map,
            entries=entries,
            mastery_records=mastery_records,
            completions=completions,
            objectives=objectives,
            objective_completions=objective_completions,
            cycles=cycles,
            attendance=attendance,
        )

    # -------------------------------------------------------------------------
    # Group
    # -------------------------------------------------------------------------

    async def load_group(self, group_id: int) -> GroupSnapshot:
        """
        Fetch the group roster and everything the mastery matrix shows.

        Members are needed to scope the second round of reads, so the load
        runs in two concurrent rounds.

        Raises:
            NotFoundError: If the group does not exist.
        """
        group, members, sessions, verse_counts = await asyncio.gather(
            self._one_or_none(select(Group).where(Group.id == group_id)),
            self._scalars(
                select(User)
                .join(GroupMember, GroupMember.user_id == User.id)
                .where(
                    GroupMember.group_id == group_id,
                    GroupMember.role == GroupRole.MEMBER.value,
                )
                .order_by(User.name, User.id)
            ),
            self._scalars(
                select(GroupSession)
                .where(GroupSession.group_id == group_id)
                .order_by(GroupSession.session_date, GroupSession.id)
            ),
            self.load_verse_counts(),
        )
        if group is None:
            raise NotFoundError(f"Group {group_id} not found", details={"group_id": group_id})

        member_ids = [member.id for member in members]
        session_ids = [session.id for session in sessions]

        mastery_records, entries, comments = await asyncio.gather(
            self._scalars(
                select(MasteryRecord).where(MasteryRecord.learner_id.in_(member_ids))
            ),
            self._scalars(
                select(ProgressEntry).where(
                    ProgressEntry.learner_id.in_(member_ids),
                    ProgressEntry.program == ActivityProgram.MEMORIZATION.value,
                )
            ),
            self._scalars(
                select(RecitationComment)
                .where(RecitationComment.session_id.in_(session_ids))
                .order_by(RecitationComment.created_at, RecitationComment.id)
            ),
        )

        return GroupSnapshot(
            group=group,
            members=members,
            verse_counts=verse_counts,
            sessions=sessions,
            mastery_records=mastery_records,
            entries=entries,
            comments=comments,
        )

    # -------------------------------------------------------------------------
    # Recitations
    # -------------------------------------------------------------------------

    async def load_recent_comments(
        self, learner_id: int, limit: int
    ) -> tuple[list[RecitationComment], list[GroupSession]]:
        """
        Latest comments about a learner plus every session of the groups
        they were commented in, so each comment can be numbered.
        """
        commented_groups = (
            select(GroupSession.group_id)
            .join(RecitationComment, RecitationComment.session_id == GroupSession.id)
            .where(RecitationComment.learner_id == learner_id)
        )
        comments, sessions = await asyncio.gather(
            self._scalars(
                select(RecitationComment)
                .where(RecitationComment.learner_id == learner_id)
                .order_by(RecitationComment.created_at.desc(), RecitationComment.id.desc())
                .limit(limit)
            ),
            self._scalars(
                select(GroupSession)
                .where(GroupSession.group_id.in_(commented_groups))
                .order_by(GroupSession.session_date, GroupSession.id)
            ),
        )
        return comments, sessions

    # -------------------------------------------------------------------------
    # Activity
    # -------------------------------------------------------------------------

    async def load_last_activity(self, learner_ids: list[int]) -> dict[int, date]:
        """
        Latest activity day per learner.

        Activity is any completed daily program, progress entry, mastery
        update, recitation comment or attended session. Learners without any
        are absent from the result.
        """
        if not learner_ids:
            return {}

        completions, entries, mastery, comments, attendance = await asyncio.gather(
            self._rows(
                select(
                    DailyActivityCompletion.learner_id,
                    func.max(DailyActivityCompletion.completion_date),
                )
                .where(
                    DailyActivityCompletion.learner_id.in_(learner_ids),
                    DailyActivityCompletion.completed.is_(True),
                )
                .group_by(DailyActivityCompletion.learner_id)
            ),
            self._rows(
                select(ProgressEntry.learner_id, func.max(ProgressEntry.entry_date))
                .where(ProgressEntry.learner_id.in_(learner_ids))
                .group_by(ProgressEntry.learner_id)
            ),
            self._rows(
                select(MasteryRecord.learner_id, func.max(MasteryRecord.updated_at))
                .where(MasteryRecord.learner_id.in_(learner_ids))
                .group_by(MasteryRecord.learner_id)
            ),
            self._rows(
                select(RecitationComment.learner_id, func.max(RecitationComment.created_at))
                .where(RecitationComment.learner_id.in_(learner_ids))
                .group_by(RecitationComment.learner_id)
            ),
            self._rows(
                select(AttendanceRecord.learner_id, func.max(GroupSession.session_date))
                .join(GroupSession, AttendanceRecord.session_id == GroupSession.id)
                .where(
                    AttendanceRecord.learner_id.in_(learner_ids),
                    AttendanceRecord.present.is_(True),
                )
                .group_by(AttendanceRecord.learner_id)
            ),
        )

        latest: dict[int, date] = {}
        for rows in (completions, entries, mastery, comments, attendance):
            for learner_id, value in rows:
                if value is None:
                    continue
                day = to_date(value)
                if learner_id not in latest or day > latest[learner_id]:
                    latest[learner_id] = day
        return latest
