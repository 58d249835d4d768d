"""
Integration Test Fixtures

Provides fixtures for integration tests running against a real database.
Each test gets its own SQLite file (aiosqlite driver) with the schema
created and the chapter reference table seeded, so tests never share state
and never touch a configured PostgreSQL database.

A file database rather than an in-memory one: the record loader and the
weekly session resolver open several connections at once, and every
connection must see the same data.

Note: hifz.main is imported inside the client fixture so the app is only
built after the parent conftest has set the test environment.
"""

from types import SimpleNamespace
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from hifz.db.base import Base, get_db, get_session_factory
from hifz.db.models_progress import Chapter, Group, GroupMember, User
from hifz.enums.progress import GroupRole, UserRole
from hifz.services.progress.chapters import reference_chapters


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with tables and chapter reference data."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'hifz-test.db'}", echo=False
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    seed_maker = async_sessionmaker(test_engine, expire_on_commit=False)
    async with seed_maker() as session:
        session.add_all(
            Chapter(
                number=chapter.number,
                verse_count=chapter.verse_count,
                page_start=chapter.page_start,
                page_end=chapter.page_end,
            )
            for chapter in reference_chapters()
        )
        await session.commit()

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session standing in for the request session.

    Tests commit after each service write: reads made through the record
    loader use other connections and only see committed rows.
    """
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# =============================================================================
# Data
# =============================================================================


class Seeder:
    """Inserts rows in short committed transactions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add(self, *rows):
        async with self.session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return rows[0] if len(rows) == 1 else rows

    async def user(
        self, name: str, role: UserRole = UserRole.USER, private_stats: bool = False
    ) -> User:
        return await self.add(
            User(
                name=name,
                email=f"{name.lower()}@example.org",
                role=role.value,
                private_stats=private_stats,
            )
        )

    async def group(self, name: str, members=(), supervisors=()) -> Group:
        group = await self.add(Group(name=name))
        memberships = [
            GroupMember(group_id=group.id, user_id=user.id, role=GroupRole.MEMBER.value)
            for user in members
        ] + [
            GroupMember(group_id=group.id, user_id=user.id, role=GroupRole.SUPERVISOR.value)
            for user in supervisors
        ]
        if memberships:
            await self.add(*memberships)
        return group


@pytest.fixture
def seeder(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


@pytest_asyncio.fixture
async def world(seeder: Seeder) -> SimpleNamespace:
    """
    One study group and the people around it.

    - supervisor: SUPERVISOR of the group
    - amina, bilal: MEMBERs of the group
    - outsider: plain user in no group
    - admin: application administrator in no group
    """
    supervisor = await seeder.user("Sara")
    amina = await seeder.user("Amina")
    bilal = await seeder.user("Bilal")
    outsider = await seeder.user("Omar")
    admin = await seeder.user("Root", role=UserRole.ADMIN)
    group = await seeder.group("Tuesday circle", members=[amina, bilal], supervisors=[supervisor])
    return SimpleNamespace(
        group=group,
        supervisor=supervisor,
        amina=amina,
        bilal=bilal,
        outsider=outsider,
        admin=admin,
    )


# =============================================================================
# HTTP Client
# =============================================================================


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    Async HTTP client bound to the test database.

    Overrides get_db and get_session_factory so no request reaches the
    configured database.
    """
    from hifz.main import app

    async def get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def as_user(user: User) -> dict[str, str]:
    """Identity header for requests made on behalf of a user."""
    return {"X-User-Id": str(user.id)}


@pytest.fixture
def auth():
    return as_user
