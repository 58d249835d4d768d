"""
Group Insights

Views across a study group's members:

- rank_members: memorization volume per member, highest first
- inactive_learners: members without activity for a number of days

Both cover MEMBER-role users only; supervisors are not learners of the group.

Usage:
    service = GroupInsightsService(db, async_session_maker)
    ranking = await service.get_ranking(group_id, caller)
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Iterable, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.config import settings
from hifz.db.models_progress import User
from hifz.models.progress import GroupRanking, InactiveLearner, RankedMember
from hifz.services.progress.permissions import MEMBER_OR_ADMIN, SUPERVISOR_OR_ADMIN, require_role
from hifz.services.progress.records import RecordLoader
from hifz.services.progress.verse_sets import (
    TOTAL_VERSES,
    VERSES_PER_PAGE,
    build_coverage,
    round_half_up,
)
from hifz.services.progress.weeks import DateLike, to_date

logger = logging.getLogger(__name__)

JUZ_COUNT = 30


# ===========================================
# Ranking
# ===========================================


def memorized_verses_by_learner(entries: Iterable) -> dict[int, int]:
    """Distinct memorized verses per learner."""
    totals: dict[int, int] = defaultdict(int)
    for (learner_id, _chapter), covered in build_coverage(entries).items():
        totals[learner_id] += len(covered)
    return dict(totals)


def rank_members(
    members: Iterable,
    entries: Iterable,
    verses_per_page: int = VERSES_PER_PAGE,
    total_verses: int = TOTAL_VERSES,
) -> list[RankedMember]:
    """
    Order members by distinct memorized verses, highest first.

    Ties keep alphabetical order and still get distinct, sequential ranks.
    """
    verses = memorized_verses_by_learner(entries)
    ordered = sorted(members, key=lambda m: (-verses.get(m.id, 0), m.name, m.id))

    ranked = []
    for rank, member in enumerate(ordered, start=1):
        count = verses.get(member.id, 0)
        share = count / total_verses if total_verses else 0.0
        ranked.append(
            RankedMember(
                rank=rank,
                user_id=member.id,
                name=member.name,
                memorized_verses=count,
                memorized_pages=round_half_up(count / verses_per_page),
                memorized_juz=round(share * JUZ_COUNT, 1),
                percentage=round(share * 100, 2),
            )
        )
    return ranked


# ===========================================
# Inactivity
# ===========================================


def inactive_learners(
    members: Iterable,
    last_activity: Mapping[int, date],
    today: date,
    threshold_days: int,
) -> list[InactiveLearner]:
    """
    Members idle for at least `threshold_days` whole days.

    Members who never recorded anything come first, then the longest idle.
    """
    idle = []
    for member in members:
        last = last_activity.get(member.id)
        days = (today - last).days if last is not None else None
        if days is not None and days < threshold_days:
            continue
        idle.append(
            InactiveLearner(
                user_id=member.id,
                name=member.name,
                last_activity_date=last,
                days_since_activity=days,
            )
        )

    def order(learner: InactiveLearner):
        never = learner.days_since_activity is None
        return (not never, -(learner.days_since_activity or 0), learner.name)

    return sorted(idle, key=order)


# ===========================================
# Service
# ===========================================


class GroupInsightsService:
    """Group-wide ranking and inactivity alerts."""

    def __init__(self, db: AsyncSession, session_factory: async_sessionmaker[AsyncSession]):
        self.db = db
        self.loader = RecordLoader(session_factory)

    async def get_ranking(self, group_id: int, caller: User) -> GroupRanking:
        """
        Raises:
            NotFoundError: If the group does not exist.
            AuthorizationError: If the caller is neither in the group nor an admin.
        """
        await require_role(self.db, caller, group_id, MEMBER_OR_ADMIN)
        snapshot = await self.loader.load_group(group_id)

        members = rank_members(
            snapshot.members,
            snapshot.entries,
            verses_per_page=settings.VERSES_PER_PAGE,
            total_verses=settings.TOTAL_VERSES,
        )
        caller_rank = next((m.rank for m in members if m.user_id == caller.id), None)
        return GroupRanking(
            group_id=group_id,
            group_name=snapshot.group.name,
            members=members,
            caller_rank=caller_rank,
        )

    async def get_inactive(
        self,
        group_id: int,
        caller: User,
        threshold_days: Optional[int] = None,
        now: Optional[DateLike] = None,
    ) -> list[InactiveLearner]:
        """
        Raises:
            NotFoundError: If the group does not exist.
            AuthorizationError: If the caller is not a supervisor or an admin.
        """
        await require_role(self.db, caller, group_id, SUPERVISOR_OR_ADMIN)
        threshold = threshold_days or settings.INACTIVITY_THRESHOLD_DAYS
        today = to_date(now if now is not None else datetime.now(timezone.utc))

        snapshot = await self.loader.load_group(group_id)
        last_activity = await self.loader.load_last_activity([m.id for m in snapshot.members])

        idle = inactive_learners(snapshot.members, last_activity, today, threshold)
        if idle:
            logger.info(
                f"Group {group_id}: {len(idle)} of {len(snapshot.members)} members "
                f"inactive for {threshold}+ days"
            )
        return idle
