"""
Integration tests for GroupInsightsService.

Tests:
- Ranking of MEMBER-role users by distinct memorized verses
- Inactivity from the latest completion, entry, mastery update, comment or
  attended session
- Role checks on both operations
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio

from hifz.db.models_progress import (
    AttendanceRecord,
    DailyActivityCompletion,
    GroupMember,
    GroupSession,
    MasteryRecord,
    ProgressEntry,
    RecitationComment,
)
from hifz.enums.progress import ActivityProgram, GroupRole
from hifz.middleware.error_handling import AuthorizationError, NotFoundError
from hifz.services.progress.group_insights import GroupInsightsService

pytestmark = pytest.mark.integration

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db_session, session_factory):
    return GroupInsightsService(db_session, session_factory)


def memorized(learner, chapter, start, end, program=ActivityProgram.MEMORIZATION):
    return ProgressEntry(
        learner_id=learner.id,
        program=program.value,
        entry_date=date(2024, 3, 1),
        chapter_number=chapter,
        verse_start=start,
        verse_end=end,
    )


class TestRanking:
    async def test_members_ranked_by_memorized_verses(self, service, seeder, world):
        await seeder.add(
            memorized(world.amina, 112, 1, 4),
            memorized(world.amina, 2, 1, 286, program=ActivityProgram.REVISION),
            memorized(world.bilal, 1, 1, 4),
            memorized(world.bilal, 1, 3, 7),
            memorized(world.supervisor, 2, 1, 286),
        )

        ranking = await service.get_ranking(world.group.id, world.amina)

        assert ranking.group_name == "Tuesday circle"
        assert [(m.rank, m.name, m.memorized_verses) for m in ranking.members] == [
            (1, "Bilal", 7),
            (2, "Amina", 4),
        ]
        assert ranking.caller_rank == 2

    async def test_supervisor_has_no_rank(self, service, world):
        ranking = await service.get_ranking(world.group.id, world.supervisor)

        assert [m.name for m in ranking.members] == ["Amina", "Bilal"]
        assert ranking.caller_rank is None

    async def test_outsider_is_denied(self, service, world):
        with pytest.raises(AuthorizationError):
            await service.get_ranking(world.group.id, world.outsider)

    async def test_unknown_group(self, service, world):
        with pytest.raises(NotFoundError):
            await service.get_ranking(999, world.admin)


@pytest_asyncio.fixture
async def activity(seeder, world):
    """
    Activity up to Wednesday 2024-03-20.

    - Amina: a completed program on Mar 18
    - Bilal: entry Mar 1, mastery update Mar 5, present Mar 12, absent Mar 19
    - Chadia: joined, only an unchecked completion
    """
    chadia = await seeder.user("Chadia")
    await seeder.add(
        GroupMember(group_id=world.group.id, user_id=chadia.id, role=GroupRole.MEMBER.value)
    )
    present, absent = await seeder.add(
        GroupSession(
            group_id=world.group.id,
            session_date=date(2024, 3, 12),
            week_start=date(2024, 3, 10),
            iso_week=11,
        ),
        GroupSession(
            group_id=world.group.id,
            session_date=date(2024, 3, 19),
            week_start=date(2024, 3, 17),
            iso_week=12,
        ),
    )
    await seeder.add(
        DailyActivityCompletion(
            learner_id=world.amina.id,
            program=ActivityProgram.READING.value,
            completion_date=date(2024, 3, 18),
            completed=True,
        ),
        DailyActivityCompletion(
            learner_id=chadia.id,
            program=ActivityProgram.READING.value,
            completion_date=date(2024, 3, 19),
            completed=False,
        ),
        memorized(world.bilal, 1, 1, 7),
        MasteryRecord(
            learner_id=world.bilal.id,
            chapter_number=1,
            status="V",
            updated_at=datetime(2024, 3, 5, 9, tzinfo=timezone.utc),
        ),
        AttendanceRecord(session_id=present.id, learner_id=world.bilal.id, present=True),
        AttendanceRecord(session_id=absent.id, learner_id=world.bilal.id, present=False),
    )
    return SimpleNamespace(chadia=chadia, last_session=absent)


class TestInactivity:
    async def test_members_idle_past_threshold(self, service, world, activity):
        idle = await service.get_inactive(world.group.id, world.supervisor, now=NOW)

        assert [(i.name, i.days_since_activity) for i in idle] == [
            ("Chadia", None),
            ("Bilal", 8),
        ]
        assert idle[1].last_activity_date == date(2024, 3, 12)

    async def test_threshold_override(self, service, world, activity):
        idle = await service.get_inactive(
            world.group.id, world.supervisor, threshold_days=10, now=NOW
        )

        assert [i.name for i in idle] == ["Chadia"]

    async def test_recitation_comment_counts_as_activity(
        self, service, seeder, world, activity
    ):
        await seeder.add(
            RecitationComment(
                session_id=activity.last_session.id,
                learner_id=activity.chadia.id,
                chapter_number=1,
                comment="First recitation",
                created_at=datetime(2024, 3, 17, 10, tzinfo=timezone.utc),
            )
        )

        idle = await service.get_inactive(world.group.id, world.supervisor, now=NOW)

        assert [i.name for i in idle] == ["Bilal"]

    async def test_admin_may_list(self, service, world, activity):
        idle = await service.get_inactive(world.group.id, world.admin, now=NOW)

        assert len(idle) == 2

    async def test_member_is_denied(self, service, world):
        with pytest.raises(AuthorizationError):
            await service.get_inactive(world.group.id, world.amina, now=NOW)
