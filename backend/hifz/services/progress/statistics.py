"""
Statistics Aggregator

Sole entry point for a learner's statistics. One call:

1. loads the learner snapshot concurrently (RecordLoader),
2. resolves the current and previous period bounds,
3. derives coverage, reconciled mastery, period activity, rates, program
   and objective completion, streaks and completion cycles from that
   snapshot,
4. builds the rolling evolution series over the last EVOLUTION_WEEKS weeks,
5. compares completed activities against the previous period.

Every figure is recomputed from raw rows on each call; nothing is cached.

Usage:
    from hifz.services.progress.statistics import StatisticsService

    service = StatisticsService(async_session_maker)
    report = await service.get_statistics(learner_id, TimeScope.MONTH)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz.config import settings
from hifz.enums.progress import ActivityProgram, TimeScope
from hifz.models.progress import (
    EvolutionPoint,
    PeriodActivity,
    PeriodInfo,
    RateStats,
    StatisticsReport,
    StreakData,
)
from hifz.services.progress.attendance import (
    attendance_rate,
    compare_trend,
    completion_dates,
    current_daily_streak,
    longest_daily_streak,
    objective_completion,
    program_completion,
    summarize_cycles,
    weekly_objective_streak,
    weekly_submission_rate,
)
from hifz.services.progress.mastery_reconciler import memorization_only, reconcile_mastery
from hifz.services.progress.records import LearnerSnapshot, RecordLoader
from hifz.services.progress.verse_sets import (
    chapter_coverage,
    program_key,
    summarize_coverage,
    verses_logged_by_program,
)
from hifz.services.progress.weeks import (
    PeriodBounds,
    ensure_utc,
    iso_week_number,
    period_bounds,
    previous_period_bounds,
    to_date,
    week_start,
    weeks_in_period,
)

logger = logging.getLogger(__name__)


def completed_in(completions, bounds: PeriodBounds) -> list:
    return [c for c in completions if c.completed and bounds.contains(c.completion_date)]


def entries_in(entries, bounds: PeriodBounds) -> list:
    return [e for e in entries if bounds.contains(e.entry_date)]


def period_activity(snapshot: LearnerSnapshot, bounds: PeriodBounds) -> PeriodActivity:
    """Completions and distinct verses per program inside the period."""
    completions = completed_in(snapshot.completions, bounds)
    entries = entries_in(snapshot.entries, bounds)

    completions_by_program = {program.value: 0 for program in ActivityProgram}
    for completion in completions:
        key = program_key(completion.program)
        completions_by_program[key] = completions_by_program.get(key, 0) + 1

    verses_by_program = verses_logged_by_program(entries)
    return PeriodActivity(
        completions_by_program=completions_by_program,
        verses_by_program=verses_by_program,
        total_completions=len(completions),
        total_verses=sum(verses_by_program.values()),
        entries_count=len(entries),
    )


def evolution_series(
    snapshot: LearnerSnapshot, today, weeks: int
) -> list[EvolutionPoint]:
    """
    Weekly aggregation repeated for each of the last `weeks` Sunday weeks.

    The series is ordered oldest first and ends with the current week.
    """
    current = week_start(today)
    points = []
    for offset in range(weeks - 1, -1, -1):
        start = current - timedelta(weeks=offset)
        bounds = PeriodBounds(TimeScope.WEEK, start, start + timedelta(days=7))
        verses = verses_logged_by_program(entries_in(snapshot.entries, bounds))
        points.append(
            EvolutionPoint(
                week_start=start,
                iso_week=iso_week_number(start),
                completed_activities=len(completed_in(snapshot.completions, bounds)),
                verses_by_program=verses,
                total_verses=sum(verses.values()),
            )
        )
    return points


class StatisticsService:
    """
    Builds statistics reports for one learner.

    Takes a session factory rather than a session: the record loader opens
    one session per concurrent fetch.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        evolution_weeks: Optional[int] = None,
    ):
        self.loader = RecordLoader(session_factory)
        self.evolution_weeks = evolution_weeks or settings.EVOLUTION_WEEKS

    async def get_statistics(
        self,
        learner_id: int,
        scope: TimeScope = TimeScope.WEEK,
        year: Optional[int] = None,
        month: Optional[int] = None,
        week_offset: int = 0,
        now: Optional[datetime] = None,
    ) -> StatisticsReport:
        """
        Build the report for a learner and scope.

        Args:
            learner_id: Learner whose records are aggregated.
            scope: Time scope of the period figures.
            year: Calendar year (month and year scopes).
            month: Calendar month 1-12 (month scope).
            week_offset: Weeks relative to the current one (week scope).
            now: Reference instant; defaults to the current UTC time.

        Raises:
            NotFoundError: If the learner does not exist.
            ValidationError: On an invalid year or month.
        """
        now = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        today = to_date(now)

        # Raises on an invalid year or month before any read
        period_bounds(scope, today, year=year, month=month, week_offset=week_offset)
        snapshot = await self.loader.load_learner(learner_id)
        return self.build_report(
            snapshot, scope, now, year=year, month=month, week_offset=week_offset
        )

    def build_report(
        self,
        snapshot: LearnerSnapshot,
        scope: TimeScope,
        now: datetime,
        year: Optional[int] = None,
        month: Optional[int] = None,
        week_offset: int = 0,
    ) -> StatisticsReport:
        """Derive the whole report from an already-loaded snapshot."""
        today = to_date(now)
        bounds = period_bounds(
            scope,
            today,
            year=year,
            month=month,
            week_offset=week_offset,
            earliest=snapshot.earliest_record_date,
        )
        previous = previous_period_bounds(bounds)
        degenerate = previous == bounds

        # Coverage and mastery are all-time figures
        memorization = memorization_only(snapshot.entries)
        coverage = summarize_coverage(
            chapter_coverage(memorization),
            snapshot.verse_counts,
            page_map=snapshot.page_map,
            verses_per_page=settings.VERSES_PER_PAGE,
            total_verses=settings.TOTAL_VERSES,
        )
        mastery = reconcile_mastery(
            snapshot.mastery_records, snapshot.entries, snapshot.verse_counts
        )

        activity = period_activity(snapshot, bounds)
        previous_activity = period_activity(snapshot, previous)

        dates = completion_dates(snapshot.completions)
        total_weeks = weeks_in_period(
            bounds,
            today,
            first_record=snapshot.first_completion_date,
            adoption=snapshot.adoption_date,
        )
        rate, active = attendance_rate(dates, bounds, total_weeks)
        submission, submitted = weekly_submission_rate(snapshot.entries, bounds, total_weeks)

        active_objectives = [o.id for o in snapshot.objectives if o.is_active]
        streaks = StreakData(
            current_daily=current_daily_streak(dates, today),
            longest_daily=longest_daily_streak(dates),
            weekly_objectives=weekly_objective_streak(
                snapshot.objective_completions, active_objectives, today
            ),
            last_activity_date=max(dates) if dates else None,
        )

        trend = compare_trend(
            activity.total_completions,
            previous_activity.total_completions,
            degenerate=degenerate,
        )

        logger.debug(
            f"Statistics for learner {snapshot.learner.id} scope={scope.value} "
            f"[{bounds.start}, {bounds.end}) weeks={total_weeks} trend={trend.direction.value}"
        )

        return StatisticsReport(
            learner_id=snapshot.learner.id,
            period=PeriodInfo(
                scope=bounds.scope,
                start=bounds.start,
                end=bounds.end,
                previous_start=previous.start,
                previous_end=previous.end,
            ),
            coverage=coverage,
            mastery=mastery,
            activity=activity,
            rates=RateStats(
                attendance_rate=rate,
                active_weeks=active,
                submission_rate=submission,
                submitted_weeks=submitted,
                total_weeks=total_weeks,
            ),
            program_completion=program_completion(snapshot.completions, bounds),
            objective_completion=objective_completion(
                snapshot.objectives, snapshot.objective_completions, bounds, total_weeks
            ),
            streaks=streaks,
            trend=trend,
            evolution=evolution_series(snapshot, today, self.evolution_weeks),
            cycles=summarize_cycles(snapshot.cycles, now),
            generated_at=now,
        )
