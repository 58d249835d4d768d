"""
Progress Tracking API Models (Pydantic)

Request/response schemas for:
- Group mastery matrix, mastery updates and recitation comments
- Weekly group sessions and attendance
- Learner activity logs (progress entries, daily completions, weekly
  objectives, completion cycles)
- Statistics report and learner profile
- Group ranking and inactivity alerts

ARCHITECTURE NOTE:
    This file contains PYDANTIC models for API validation.
    There is a corresponding SQLAlchemy file: hifz/db/models_progress.py

    Data flows: API Request → Pydantic → Service → SQLAlchemy → Database

API Contract:
    Request models use StrictRequest (extra="forbid") to reject unknown fields.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from hifz.enums.progress import (
    ActivityProgram,
    CycleType,
    MasterySource,
    MasteryStatus,
    TimeScope,
    TrendDirection,
)
from hifz.models.base import StrictRequest, StrictResponse


# ===========================================
# Derived Figures
# ===========================================


class CoverageSummary(BaseModel):
    """
    Counts derived from a learner's deduplicated verse coverage.

    A chapter is complete when every one of its verses is covered and in
    progress when some but not all are.
    """

    total_verses: int = 0
    complete_chapters: int = 0
    in_progress_chapters: int = 0
    complete_chapter_numbers: list[int] = Field(default_factory=list)
    pages: int = 0
    percentage: float = Field(0.0, description="Share of all verses covered (0-100)")


class MasterySummary(BaseModel):
    """
    Reconciled mastery of one learner.

    `source` tells which whole source the counts were taken from: explicit
    supervisor records, coverage of memorization logs, or none.
    """

    source: MasterySource = MasterySource.NONE
    validated_chapters: int = 0
    in_progress_chapters: int = 0
    validated_chapter_numbers: list[int] = Field(default_factory=list)
    verses_validated: int = 0
    verses_from_mastery: int = 0
    verses_from_coverage: int = 0


class TrendComparison(BaseModel):
    """Current vs previous period for one scalar count."""

    direction: TrendDirection = TrendDirection.STABLE
    current: int = 0
    previous: int = 0
    delta_percent: float = Field(
        0.0, description="(current - previous) / previous * 100, 0 when previous is 0"
    )
    degenerate: bool = Field(
        False, description="Previous window equals the current one (week, all-time)"
    )


class StreakData(BaseModel):
    current_daily: int = 0
    longest_daily: int = 0
    weekly_objectives: int = 0
    last_activity_date: Optional[date] = None


class CycleStats(BaseModel):
    """Full-pass statistics for one cycle type."""

    cycle_type: CycleType
    total_cycles: int = 0
    last_completed_at: Optional[datetime] = None
    days_since_last: Optional[int] = None
    average_days: Optional[float] = Field(
        None, description="Mean days-to-complete, most recent cycle excluded"
    )
    last_unit_count: Optional[int] = None


class PeriodActivity(BaseModel):
    """Activity logged inside the selected period."""

    completions_by_program: dict[str, int] = Field(default_factory=dict)
    verses_by_program: dict[str, int] = Field(default_factory=dict)
    total_completions: int = 0
    total_verses: int = 0
    entries_count: int = 0


class RateStats(BaseModel):
    attendance_rate: float = 0.0
    active_weeks: int = 0
    submission_rate: float = 0.0
    submitted_weeks: int = 0
    total_weeks: int = 0


class EvolutionPoint(BaseModel):
    """One Sunday-anchored week of the rolling evolution series."""

    week_start: date
    iso_week: int
    completed_activities: int = 0
    verses_by_program: dict[str, int] = Field(default_factory=dict)
    total_verses: int = 0


class ProgramCompletion(BaseModel):
    """Days a daily program was checked off within the period."""

    program: ActivityProgram
    completed_days: int = 0
    total_days: int = 0
    rate: float = 0.0


class ObjectiveCompletion(BaseModel):
    """Weeks an active weekly objective was completed within the period."""

    objective_id: int
    name: str
    program: Optional[ActivityProgram] = None
    is_custom: bool = False
    completed_weeks: int = 0
    total_weeks: int = 0
    rate: float = 0.0


class PeriodInfo(BaseModel):
    scope: TimeScope
    start: date
    end: date = Field(..., description="Exclusive end")
    previous_start: date
    previous_end: date


class StatisticsReport(StrictResponse):
    """Everything the statistics dashboard shows for one learner and scope."""

    learner_id: int
    period: PeriodInfo
    coverage: CoverageSummary
    mastery: MasterySummary
    activity: PeriodActivity
    rates: RateStats
    program_completion: list[ProgramCompletion] = Field(default_factory=list)
    objective_completion: list[ObjectiveCompletion] = Field(default_factory=list)
    streaks: StreakData
    trend: TrendComparison
    evolution: list[EvolutionPoint] = Field(default_factory=list)
    cycles: list[CycleStats] = Field(default_factory=list)
    generated_at: datetime


# ===========================================
# Group Mastery
# ===========================================


class RosterMember(StrictResponse):
    user_id: int
    name: str


class MasteryCell(StrictResponse):
    """
    Status of one chapter for one learner as shown on the group roster.

    `synthetic` cells come from full coverage without an explicit record
    and are never stored.
    """

    chapter_number: int
    status: MasteryStatus
    validated_week: Optional[int] = None
    synthetic: bool = False


class CommentView(StrictResponse):
    """Recitation comment annotated with its session's number and ISO week."""

    id: int
    session_id: int
    session_number: int
    session_date: date
    iso_week: int
    learner_id: int
    chapter_number: int
    verse_start: Optional[int] = None
    verse_end: Optional[int] = None
    status: Optional[MasteryStatus] = None
    comment: str
    created_at: datetime


class MasteryMatrixResponse(StrictResponse):
    group_id: int
    roster: list[RosterMember] = Field(default_factory=list)
    chapter_status_by_learner: dict[int, list[MasteryCell]] = Field(default_factory=dict)
    comments_by_learner_and_chapter: dict[int, dict[int, list[CommentView]]] = Field(
        default_factory=dict
    )
    next_session_number: int = 1
    total_sessions: int = 0


class MasteryUpdateRequest(StrictRequest):
    """
    Set or clear the explicit status of a chapter.

    A null status deletes the record.
    """

    learner_id: int = Field(..., description="Learner whose chapter is updated")
    chapter_number: int = Field(..., ge=1, le=114)
    status: Optional[MasteryStatus] = Field(None, description="Null clears the record")
    validated_week: Optional[int] = Field(None, ge=1, le=53)


class MasteryUpdateResponse(StrictResponse):
    success: bool = True
    deleted: bool = False


class MasteryCommentCreate(StrictRequest):
    learner_id: int
    chapter_number: int = Field(..., ge=1, le=114)
    comment: str = Field(..., description="Assessment text")
    session_number: Optional[int] = Field(
        None, ge=1, description="1-based session number; out of range uses this week"
    )
    verse_start: Optional[int] = Field(None, ge=1)
    verse_end: Optional[int] = Field(None, ge=1)
    status: Optional[MasteryStatus] = None


class CommentUpdateRequest(StrictRequest):
    comment: Optional[str] = None
    session_number: Optional[int] = Field(None, ge=1)


# ===========================================
# Sessions & Attendance
# ===========================================


class SessionResponse(StrictResponse):
    id: int
    group_id: int
    session_date: date
    week_start: date
    iso_week: int
    session_number: Optional[int] = None


class AttendanceEntry(StrictRequest):
    learner_id: int
    present: bool
    excused: bool = False
    note: Optional[str] = None


class AttendanceUpsert(StrictRequest):
    records: list[AttendanceEntry] = Field(..., min_length=1)


class AttendanceSummary(BaseModel):
    """Session attendance of one learner across all their groups."""

    sessions_total: int = 0
    present_count: int = 0
    global_rate: float = 0.0
    year_rate: float = 0.0
    month_rate: float = 0.0
    consecutive_present: int = 0


# ===========================================
# Learner Activity
# ===========================================


class ProgressEntryCreate(StrictRequest):
    program: ActivityProgram
    chapter_number: int
    verse_start: int
    verse_end: int
    entry_date: Optional[date] = Field(None, description="Defaults to today (UTC)")
    repetitions: Optional[int] = Field(None, ge=1)
    note: Optional[str] = None


class ProgressEntryResponse(StrictResponse):
    id: int
    learner_id: int
    program: ActivityProgram
    entry_date: date
    chapter_number: int
    verse_start: int
    verse_end: int
    repetitions: Optional[int] = None
    note: Optional[str] = None


class DailyCompletionUpsert(StrictRequest):
    program: ActivityProgram
    completion_date: Optional[date] = Field(None, description="Defaults to today (UTC)")
    completed: bool = True


class ObjectiveCompletionUpsert(StrictRequest):
    week_of: Optional[date] = Field(
        None, description="Any date of the target week; defaults to the current week"
    )
    completed: bool = True


class WeeklyObjectiveCreate(StrictRequest):
    name: str = Field(..., max_length=200)
    program: Optional[ActivityProgram] = Field(None, description="Program the objective tracks")


class WeeklyObjectiveView(StrictResponse):
    """Active objective with its completion flag for the requested week."""

    id: int
    name: str
    program: Optional[ActivityProgram] = None
    is_custom: bool
    week_start: date
    completed: bool = False


class CompletionCycleCreate(StrictRequest):
    cycle_type: CycleType
    completed_at: Optional[datetime] = Field(None, description="Defaults to now")
    unit_count: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class CompletionCycleResponse(StrictResponse):
    id: int
    learner_id: int
    cycle_type: CycleType
    completed_at: datetime
    days_to_complete: Optional[int] = None
    unit_count: Optional[int] = None
    notes: Optional[str] = None


# ===========================================
# Learner Profile
# ===========================================


class ValidationView(StrictResponse):
    chapter_number: int
    status: MasteryStatus
    validated_week: Optional[int] = None
    validated_at: Optional[datetime] = None


class LearnerProfile(StrictResponse):
    learner_id: int
    name: str
    mastery: MasterySummary
    coverage: CoverageSummary
    attendance: AttendanceSummary
    recent_recitations: list[CommentView] = Field(default_factory=list)
    recent_validations: list[ValidationView] = Field(default_factory=list)


# ===========================================
# Group Insights
# ===========================================


class RankedMember(StrictResponse):
    """One learner's memorization volume and place in the group."""

    rank: int
    user_id: int
    name: str
    memorized_verses: int = 0
    memorized_pages: int = 0
    memorized_juz: float = Field(0.0, description="Share of the 30 juz, one decimal")
    percentage: float = Field(0.0, description="Share of all verses memorized (0-100)")


class GroupRanking(StrictResponse):
    group_id: int
    group_name: str
    members: list[RankedMember] = Field(default_factory=list)
    caller_rank: Optional[int] = Field(None, description="Caller's rank when they are a member")


class InactiveLearner(StrictResponse):
    """
    Learner without any recorded activity for at least the threshold.

    `days_since_activity` is None for learners who never recorded anything.
    """

    user_id: int
    name: str
    last_activity_date: Optional[date] = None
    days_since_activity: Optional[int] = None
