"""
Attendance & Streak Engine

Pure functions over already-fetched records:

- Daily completion streaks (current and longest)
- Weekly objective streak
- Attendance and weekly submission rates for a period
- Per-program daily completion and per-objective weekly completion
- Current-vs-previous trend comparison
- Completion cycle statistics
- Session attendance summary for the learner profile

All rates are ratios in [0, 1]; a period with no weeks yields 0.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from hifz.enums.progress import DAILY_PROGRAMS, ActivityProgram, CycleType, TrendDirection
from hifz.models.progress import (
    AttendanceSummary,
    CycleStats,
    ObjectiveCompletion,
    ProgramCompletion,
    TrendComparison,
)
from hifz.services.progress.verse_sets import program_key
from hifz.services.progress.weeks import (
    FAR_PAST,
    PeriodBounds,
    ensure_utc,
    iso_year_week,
    to_date,
    week_start,
)


@dataclass(frozen=True)
class AttendanceMark:
    """Presence of a learner at one dated session."""

    session_date: date
    present: bool
    excused: bool = False


# ===========================================
# Daily Streaks
# ===========================================


def completion_dates(completions: Iterable) -> set[date]:
    """Distinct days with at least one completed daily activity."""
    return {to_date(c.completion_date) for c in completions if c.completed}


def current_daily_streak(dates: Iterable[date], today: date) -> int:
    """
    Consecutive completion days ending today.

    The walk starts at today, or at yesterday when today has no completion
    yet, and stops at the first missing day.
    """
    days = set(dates)
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_daily_streak(dates: Iterable[date]) -> int:
    """Longest run of consecutive completion days ever achieved."""
    sorted_dates = sorted(set(dates))
    if not sorted_dates:
        return 0

    longest = 1
    current = 1
    for i in range(1, len(sorted_dates)):
        if sorted_dates[i] == sorted_dates[i - 1] + timedelta(days=1):
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


# ===========================================
# Weekly Objectives
# ===========================================


def weekly_objective_streak(
    completions: Iterable,
    active_objective_ids: Iterable[int],
    today: date,
) -> int:
    """
    Consecutive fully completed weeks.

    A week is fully completed when the distinct completed active objectives
    of that week match the learner's current count of active objectives, so
    adding or retiring an objective re-evaluates past weeks. The walk starts
    at the current week, or the previous one when the current week is not
    complete yet.
    """
    active = set(active_objective_ids)
    if not active:
        return 0

    done_by_week: dict[date, set[int]] = defaultdict(set)
    for completion in completions:
        if completion.completed and completion.objective_id in active:
            done_by_week[week_start(completion.week_start)].add(completion.objective_id)

    def is_full(week: date) -> bool:
        return len(done_by_week.get(week, ())) == len(active)

    cursor = week_start(today)
    if not is_full(cursor):
        cursor -= timedelta(days=7)

    streak = 0
    while is_full(cursor):
        streak += 1
        cursor -= timedelta(days=7)
    return streak


# ===========================================
# Rates
# ===========================================


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def active_weeks(dates: Iterable[date], bounds: PeriodBounds) -> set[date]:
    """Sunday-anchored weeks inside the period with any completion."""
    return {week_start(day) for day in dates if bounds.contains(day)}


def attendance_rate(
    dates: Iterable[date], bounds: PeriodBounds, total_weeks: int
) -> tuple[float, int]:
    """
    Share of weeks in the period with at least one completed day.

    Returns:
        (rate, active week count)
    """
    count = len(active_weeks(dates, bounds))
    return _ratio(count, total_weeks), count


def weekly_submission_rate(
    entries: Iterable, bounds: PeriodBounds, total_weeks: int
) -> tuple[float, int]:
    """
    Share of weeks in the period with a memorization entry.

    Weeks are keyed by ISO (year, week) pairs. A Sunday-anchored period
    spans one more ISO week than it holds Sunday weeks, so the count is
    capped at total_weeks.

    Returns:
        (rate, submitted week count)
    """
    weeks = {
        iso_year_week(entry.entry_date)
        for entry in entries
        if program_key(entry.program) == ActivityProgram.MEMORIZATION.value
        and bounds.contains(entry.entry_date)
    }
    submitted = min(len(weeks), total_weeks)
    return _ratio(submitted, total_weeks), submitted


def program_completion(completions: Iterable, bounds: PeriodBounds) -> list[ProgramCompletion]:
    """Completed days over days in the period, for each daily program."""
    days_by_program: dict[str, set[date]] = defaultdict(set)
    for completion in completions:
        day = to_date(completion.completion_date)
        if completion.completed and bounds.contains(day):
            days_by_program[program_key(completion.program)].add(day)

    # An all-time window without records spans no days
    total_days = 0 if bounds.start == FAR_PAST else bounds.days
    return [
        ProgramCompletion(
            program=program,
            completed_days=len(days_by_program[program.value]),
            total_days=total_days,
            rate=_ratio(len(days_by_program[program.value]), total_days),
        )
        for program in DAILY_PROGRAMS
    ]


def objective_completion(
    objectives: Iterable,
    completions: Iterable,
    bounds: PeriodBounds,
    total_weeks: int,
) -> list[ObjectiveCompletion]:
    """
    Completed weeks over weeks in the period, for each active objective.

    Objectives are listed in creation order.
    """
    weeks_by_objective: dict[int, set[date]] = defaultdict(set)
    for completion in completions:
        week = week_start(completion.week_start)
        if completion.completed and bounds.contains(week):
            weeks_by_objective[completion.objective_id].add(week)

    active = sorted((o for o in objectives if o.is_active), key=lambda o: o.id)
    stats = []
    for objective in active:
        done = min(len(weeks_by_objective[objective.id]), total_weeks)
        stats.append(
            ObjectiveCompletion(
                objective_id=objective.id,
                name=objective.name,
                program=ActivityProgram(objective.program) if objective.program else None,
                is_custom=objective.is_custom,
                completed_weeks=done,
                total_weeks=total_weeks,
                rate=_ratio(done, total_weeks),
            )
        )
    return stats


# ===========================================
# Trend
# ===========================================


def compare_trend(current: int, previous: int, degenerate: bool = False) -> TrendComparison:
    """
    Classify the change between two periods.

    Direction uses strict inequality. The percentage delta is 0 when the
    previous count is 0, whatever the current count.
    """
    if current > previous:
        direction = TrendDirection.UP
    elif current < previous:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    delta = (current - previous) / previous * 100 if previous != 0 else 0.0
    return TrendComparison(
        direction=direction,
        current=current,
        previous=previous,
        delta_percent=delta,
        degenerate=degenerate,
    )


# ===========================================
# Completion Cycles
# ===========================================


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return (ensure_utc(later) - ensure_utc(earlier)).days


def summarize_cycles(cycles: Iterable, now: datetime) -> list[CycleStats]:
    """
    Statistics per cycle type, one entry for every CycleType.

    Days since the last full pass come from the most recent cycle; the
    average days-to-complete covers every cycle but the most recent one and
    skips cycles without a recorded duration.
    """
    by_type: dict[str, list] = defaultdict(list)
    for cycle in cycles:
        by_type[program_key(cycle.cycle_type)].append(cycle)

    stats = []
    for cycle_type in CycleType:
        history = sorted(
            by_type.get(cycle_type.value, []),
            key=lambda c: ensure_utc(c.completed_at),
            reverse=True,
        )
        if not history:
            stats.append(CycleStats(cycle_type=cycle_type))
            continue

        latest = history[0]
        durations = [c.days_to_complete for c in history[1:] if c.days_to_complete is not None]
        stats.append(
            CycleStats(
                cycle_type=cycle_type,
                total_cycles=len(history),
                last_completed_at=ensure_utc(latest.completed_at),
                days_since_last=days_between(latest.completed_at, now),
                average_days=sum(durations) / len(durations) if durations else None,
                last_unit_count=latest.unit_count,
            )
        )
    return stats


def days_since_previous_cycle(
    previous: Optional[datetime], completed_at: datetime
) -> Optional[int]:
    """Days-to-complete of a new cycle; None for the first of its type."""
    if previous is None:
        return None
    return max(0, days_between(previous, completed_at))


# ===========================================
# Session Attendance
# ===========================================


def session_attendance_summary(
    marks: Iterable[AttendanceMark], today: date
) -> AttendanceSummary:
    """
    Attendance of a learner at group sessions.

    The consecutive-present count walks sessions from the most recent one
    and stops at the first absence.
    """
    ordered = sorted(marks, key=lambda m: m.session_date, reverse=True)
    this_year = [m for m in ordered if m.session_date.year == today.year]
    this_month = [m for m in this_year if m.session_date.month == today.month]

    consecutive = 0
    for mark in ordered:
        if not mark.present:
            break
        consecutive += 1

    def rate(items: list[AttendanceMark]) -> float:
        return _ratio(sum(1 for m in items if m.present), len(items))

    return AttendanceSummary(
        sessions_total=len(ordered),
        present_count=sum(1 for m in ordered if m.present),
        global_rate=rate(ordered),
        year_rate=rate(this_year),
        month_rate=rate(this_month),
        consecutive_present=consecutive,
    )
