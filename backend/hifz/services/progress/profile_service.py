"""
Learner Profile Service

Aggregates one learner's mastery, coverage, session attendance, latest
recitation comments and recent validations for the profile page.

Usage:
    service = LearnerProfileService(async_session_maker)
    profile = await service.get_profile(learner_id)
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.config import settings
from hifz.db.models_progress import GroupSession
from hifz.enums.progress import VALIDATED_STATUSES
from hifz.models.progress import CommentView, LearnerProfile, ValidationView
from hifz.services.progress.attendance import session_attendance_summary
from hifz.services.progress.mastery_reconciler import (
    comment_view,
    memorization_only,
    number_sessions,
    parse_status,
    reconcile_mastery,
)
from hifz.services.progress.records import LearnerSnapshot, RecordLoader
from hifz.services.progress.verse_sets import chapter_coverage, summarize_coverage
from hifz.services.progress.weeks import add_months, ensure_utc, to_date

logger = logging.getLogger(__name__)


def recent_validations(
    snapshot: LearnerSnapshot, now: datetime, months: int
) -> list[ValidationView]:
    """Validated chapters whose validation falls in the last `months` months."""
    cutoff = add_months(to_date(now), -months)
    views = []
    for record in snapshot.mastery_records:
        status = parse_status(record.status)
        if status not in VALIDATED_STATUSES or record.validated_at is None:
            continue
        validated_at = ensure_utc(record.validated_at)
        if to_date(validated_at) < cutoff:
            continue
        views.append(
            ValidationView(
                chapter_number=record.chapter_number,
                status=status,
                validated_week=record.validated_week,
                validated_at=validated_at,
            )
        )
    return sorted(views, key=lambda v: v.validated_at, reverse=True)


class LearnerProfileService:
    """Builds the learner profile from concurrently loaded records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.loader = RecordLoader(session_factory)

    async def recent_recitations(self, learner_id: int, limit: int) -> list[CommentView]:
        """Latest comments about the learner, newest first, with session numbers."""
        comments, sessions = await self.loader.load_recent_comments(learner_id, limit)
        if not comments:
            return []

        sessions_by_group: dict[int, list[GroupSession]] = defaultdict(list)
        for session in sessions:
            sessions_by_group[session.group_id].append(session)
        numbers: dict[int, int] = {}
        for group_sessions in sessions_by_group.values():
            numbers.update(number_sessions(group_sessions))
        sessions_by_id = {session.id: session for session in sessions}

        return [
            comment_view(comment, sessions_by_id[comment.session_id], numbers[comment.session_id])
            for comment in comments
        ]

    async def get_profile(
        self, learner_id: int, now: Optional[datetime] = None
    ) -> LearnerProfile:
        """
        Raises:
            NotFoundError: If the learner does not exist.
        """
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        snapshot, recitations = await asyncio.gather(
            self.loader.load_learner(learner_id),
            self.recent_recitations(learner_id, settings.RECENT_RECITATIONS_LIMIT),
        )

        coverage = summarize_coverage(
            chapter_coverage(memorization_only(snapshot.entries)),
            snapshot.verse_counts,
            page_map=snapshot.page_map,
            verses_per_page=settings.VERSES_PER_PAGE,
            total_verses=settings.TOTAL_VERSES,
        )
        profile = LearnerProfile(
            learner_id=snapshot.learner.id,
            name=snapshot.learner.name,
            mastery=reconcile_mastery(
                snapshot.mastery_records, snapshot.entries, snapshot.verse_counts
            ),
            coverage=coverage,
            attendance=session_attendance_summary(snapshot.attendance, to_date(now)),
            recent_recitations=recitations,
            recent_validations=recent_validations(
                snapshot, now, settings.RECENT_VALIDATIONS_MONTHS
            ),
        )
        logger.debug(
            f"Profile for learner {learner_id}: {profile.mastery.validated_chapters} "
            f"validated chapters, {profile.attendance.sessions_total} sessions"
        )
        return profile
