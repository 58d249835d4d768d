"""
Integration tests for the weekly session resolver.

Tests that a group never gets two sessions for one Sunday-anchored week:
- Reuse across days of the same week
- Concurrent find-or-create
- Recovery from a lost creation race (unique constraint violation)
- Session number resolution with out-of-range fallback
"""

import asyncio
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from hifz.db.models_progress import GroupSession
from hifz.services.progress.session_resolver import WeeklySessionResolver

pytestmark = pytest.mark.integration

TUESDAY = datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)
THURSDAY = datetime(2024, 3, 7, 18, 0, tzinfo=timezone.utc)
NEXT_MONDAY = datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)


async def count_sessions(session_factory, group_id: int) -> int:
    async with session_factory() as db:
        result = await db.execute(
            select(func.count(GroupSession.id)).where(GroupSession.group_id == group_id)
        )
        return result.scalar_one()


@pytest.fixture
def resolver(session_factory):
    return WeeklySessionResolver(session_factory)


class TestResolveWeekSession:
    async def test_creates_session_dated_today(self, resolver, world):
        session = await resolver.resolve_week_session(
            world.group.id, now=TUESDAY, created_by=world.supervisor.id
        )

        assert session.session_date == date(2024, 3, 5)
        assert session.week_start == date(2024, 3, 3)
        assert session.iso_week == 10
        assert session.created_by == world.supervisor.id

    async def test_same_week_reuses_session(self, resolver, session_factory, world):
        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)
        second = await resolver.resolve_week_session(world.group.id, now=THURSDAY)

        assert second.id == first.id
        assert second.session_date == date(2024, 3, 5)
        assert await count_sessions(session_factory, world.group.id) == 1

    async def test_next_week_creates_new_session(self, resolver, session_factory, world):
        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)
        second = await resolver.resolve_week_session(world.group.id, now=NEXT_MONDAY)

        assert second.id != first.id
        assert second.week_start == date(2024, 3, 10)
        assert await count_sessions(session_factory, world.group.id) == 2

    async def test_groups_are_independent(self, resolver, seeder, session_factory, world):
        other = await seeder.group("Evening circle")

        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)
        second = await resolver.resolve_week_session(other.id, now=TUESDAY)

        assert first.id != second.id

    async def test_concurrent_calls_create_one_session(self, resolver, session_factory, world):
        results = await asyncio.gather(
            *(resolver.resolve_week_session(world.group.id, now=TUESDAY) for _ in range(4))
        )

        assert len({session.id for session in results}) == 1
        assert await count_sessions(session_factory, world.group.id) == 1

    async def test_lost_race_reads_back_winner(
        self, resolver, session_factory, world, monkeypatch
    ):
        """When the insert hits the unique constraint the existing row is returned."""
        winner = await resolver.resolve_week_session(world.group.id, now=TUESDAY)

        original = WeeklySessionResolver.find_week_session
        calls = []

        async def miss_first_lookup(db, group_id, day):
            calls.append(day)
            if len(calls) == 1:
                return None
            return await original(db, group_id, day)

        monkeypatch.setattr(
            WeeklySessionResolver, "find_week_session", staticmethod(miss_first_lookup)
        )

        session = await resolver.resolve_week_session(world.group.id, now=THURSDAY)

        assert session.id == winner.id
        assert len(calls) == 2
        assert await count_sessions(session_factory, world.group.id) == 1


class TestResolveByNumber:
    async def test_number_maps_to_chronological_session(
        self, resolver, session_factory, world
    ):
        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)
        second = await resolver.resolve_week_session(world.group.id, now=NEXT_MONDAY)

        async with session_factory() as db:
            assert (await resolver.resolve_by_number(db, world.group.id, 1)).id == first.id
            assert (await resolver.resolve_by_number(db, world.group.id, 2)).id == second.id
            assert await resolver.session_number(db, second) == 2

    async def test_out_of_range_number_falls_back_to_current_week(
        self, resolver, session_factory, world
    ):
        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)

        async with session_factory() as db:
            session = await resolver.resolve_by_number(
                db, world.group.id, 7, now=NEXT_MONDAY
            )

        assert session.id != first.id
        assert session.week_start == date(2024, 3, 10)
        assert await count_sessions(session_factory, world.group.id) == 2

    async def test_missing_number_uses_current_week(self, resolver, session_factory, world):
        first = await resolver.resolve_week_session(world.group.id, now=TUESDAY)

        async with session_factory() as db:
            session = await resolver.resolve_by_number(db, world.group.id, None, now=THURSDAY)

        assert session.id == first.id
