"""
Integration tests for the learner profile and statistics visibility.
"""

import asyncio
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio

from hifz.db.models_progress import AttendanceRecord, GroupSession, MasteryRecord, RecitationComment
from hifz.enums.progress import MasterySource, MasteryStatus, UserRole
from hifz.middleware.error_handling import AuthorizationError, NotFoundError
from hifz.services.progress.permissions import can_view_learner, require_visibility
from hifz.services.progress.profile_service import LearnerProfileService

pytestmark = pytest.mark.integration

NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(session_factory):
    return LearnerProfileService(session_factory)


@pytest_asyncio.fixture
async def history(seeder, world):
    """
    Two sessions for Amina's group: absent on Feb 27, present on Mar 5.

    One comment per session, a recent validation, an old one and an
    in-progress record.
    """
    amina = world.amina
    first, second = await seeder.add(
        GroupSession(
            group_id=world.group.id,
            session_date=date(2024, 2, 27),
            week_start=date(2024, 2, 25),
            iso_week=9,
        ),
        GroupSession(
            group_id=world.group.id,
            session_date=date(2024, 3, 5),
            week_start=date(2024, 3, 3),
            iso_week=10,
        ),
    )
    await seeder.add(
        AttendanceRecord(session_id=first.id, learner_id=amina.id, present=False),
        AttendanceRecord(session_id=second.id, learner_id=amina.id, present=True),
        RecitationComment(
            session_id=first.id,
            learner_id=amina.id,
            chapter_number=1,
            comment="Hesitant on verse 5",
            created_at=datetime(2024, 2, 27, 10, tzinfo=timezone.utc),
        ),
        RecitationComment(
            session_id=second.id,
            learner_id=amina.id,
            chapter_number=1,
            comment="Solid",
            status=MasteryStatus.VALIDATED.value,
            created_at=datetime(2024, 3, 5, 10, tzinfo=timezone.utc),
        ),
        MasteryRecord(
            learner_id=amina.id,
            chapter_number=1,
            status="V",
            validated_week=10,
            validated_at=datetime(2024, 3, 5, 10, tzinfo=timezone.utc),
        ),
        MasteryRecord(
            learner_id=amina.id,
            chapter_number=112,
            status="S",
            validated_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
        ),
        MasteryRecord(learner_id=amina.id, chapter_number=2, status="AM"),
    )
    return amina


class TestLearnerProfile:
    async def test_mastery_and_coverage(self, service, history):
        profile = await service.get_profile(history.id, now=NOW)

        assert profile.name == "Amina"
        assert profile.mastery.source == MasterySource.EXPLICIT
        assert profile.mastery.validated_chapter_numbers == [1, 112]
        assert profile.mastery.in_progress_chapters == 1
        assert profile.mastery.verses_validated == 11
        assert profile.coverage.total_verses == 0

    async def test_session_attendance(self, service, history):
        attendance = (await service.get_profile(history.id, now=NOW)).attendance

        assert attendance.sessions_total == 2
        assert attendance.present_count == 1
        assert attendance.global_rate == pytest.approx(0.5)
        assert attendance.month_rate == pytest.approx(1.0)
        assert attendance.consecutive_present == 1

    async def test_recent_recitations_newest_first(self, service, history):
        recitations = (await service.get_profile(history.id, now=NOW)).recent_recitations

        assert [r.comment for r in recitations] == ["Solid", "Hesitant on verse 5"]
        assert [r.session_number for r in recitations] == [2, 1]
        assert recitations[0].status == MasteryStatus.VALIDATED

    async def test_recent_recitations_limit(self, service, history):
        recitations = await service.recent_recitations(history.id, limit=1)

        assert [r.comment for r in recitations] == ["Solid"]

    async def test_limited_recitations_keep_session_numbers(self, service, history):
        [latest] = await service.recent_recitations(history.id, limit=1)

        assert latest.session_number == 2

    async def test_recitations_numbered_within_their_group(
        self, service, seeder, history
    ):
        other = await seeder.group("Friday circle", members=[history])
        session = await seeder.add(
            GroupSession(
                group_id=other.id,
                session_date=date(2024, 3, 8),
                week_start=date(2024, 3, 3),
                iso_week=10,
            )
        )
        await seeder.add(
            RecitationComment(
                session_id=session.id,
                learner_id=history.id,
                chapter_number=114,
                comment="Clear",
                created_at=datetime(2024, 3, 8, 10, tzinfo=timezone.utc),
            )
        )

        recitations = await service.recent_recitations(history.id, limit=10)

        assert [(r.comment, r.session_number) for r in recitations] == [
            ("Clear", 1),
            ("Solid", 2),
            ("Hesitant on verse 5", 1),
        ]

    async def test_recitations_load_alongside_the_snapshot(
        self, service, history, monkeypatch
    ):
        recent_started = asyncio.Event()
        load_learner = service.loader.load_learner
        load_recent_comments = service.loader.load_recent_comments

        async def signalling_recent_comments(learner_id, limit):
            recent_started.set()
            return await load_recent_comments(learner_id, limit)

        async def waiting_load_learner(learner_id):
            # Times out unless the recitation read is already underway
            await asyncio.wait_for(recent_started.wait(), timeout=5)
            return await load_learner(learner_id)

        monkeypatch.setattr(service.loader, "load_learner", waiting_load_learner)
        monkeypatch.setattr(service.loader, "load_recent_comments", signalling_recent_comments)

        profile = await service.get_profile(history.id, now=NOW)

        assert [r.comment for r in profile.recent_recitations] == ["Solid", "Hesitant on verse 5"]

    async def test_recent_validations_skip_old_ones(self, service, history):
        validations = (await service.get_profile(history.id, now=NOW)).recent_validations

        assert [v.chapter_number for v in validations] == [1]
        assert validations[0].validated_week == 10

    async def test_learner_without_history(self, service, world):
        profile = await service.get_profile(world.bilal.id, now=NOW)

        assert profile.mastery.source == MasterySource.NONE
        assert profile.attendance.sessions_total == 0
        assert profile.recent_recitations == []
        assert profile.recent_validations == []

    async def test_unknown_learner(self, service):
        with pytest.raises(NotFoundError):
            await service.get_profile(999, now=NOW)


class TestVisibility:
    async def test_learner_sees_themselves(self, db_session, world):
        assert await can_view_learner(db_session, world.amina, world.amina)

    async def test_fellow_member_sees_public_stats(self, db_session, world):
        assert await can_view_learner(db_session, world.bilal, world.amina)

    async def test_fellow_member_cannot_see_private_stats(self, db_session, seeder, world):
        private = await seeder.user("Hafsa", private_stats=True)
        await seeder.group("Private circle", members=[private, world.bilal])

        assert not await can_view_learner(db_session, world.bilal, private)

    async def test_supervisor_sees_private_stats(self, db_session, seeder, world):
        private = await seeder.user("Hafsa", private_stats=True)
        await seeder.group("Private circle", members=[private], supervisors=[world.supervisor])

        assert await can_view_learner(db_session, world.supervisor, private)

    async def test_outsider_is_denied(self, db_session, world):
        assert not await can_view_learner(db_session, world.outsider, world.amina)
        with pytest.raises(AuthorizationError):
            await require_visibility(db_session, world.outsider, world.amina.id)

    @pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.MANAGER], ids=["admin", "manager"])
    async def test_global_viewers(self, db_session, seeder, world, role):
        viewer = await seeder.user(f"Viewer{role.value}", role=role)

        assert await can_view_learner(db_session, viewer, world.amina)

    async def test_unknown_learner(self, db_session, world):
        with pytest.raises(NotFoundError):
            await require_visibility(db_session, world.admin, 999)
