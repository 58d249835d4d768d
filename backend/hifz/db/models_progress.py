"""
SQLAlchemy Database Models for Progress Tracking

These models hold the raw logs the statistics engine derives everything
from. Coverage, reconciled mastery, streaks and rates are never stored.

Tables:
- users, groups, group_members: identities and study-group membership
- chapters, verses: immutable reference data (verse counts, page map)
- progress_entries: verse ranges logged per activity program
- mastery_records: explicit per-chapter status set by a supervisor
- group_sessions: one dated meeting per group per Sunday-anchored week
- recitation_comments: supervisor assessments anchored to a session
- attendance_records: per-session presence
- daily_activity_completions: per-day program completion flags
- weekly_objectives, weekly_objective_completions: recurring weekly goals
- completion_cycles: append-only log of full revision/reading passes

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: hifz/models/progress.py

    Data flows: Service Layer → Pydantic → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hifz.db.base import Base
from hifz.enums.progress import GroupRole, UserRole


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ===========================================
# Identities & Groups
# ===========================================


class User(Base):
    """
    A learner, supervisor or administrator.

    Attributes:
        id: Primary key.
        name: Display name.
        email: Unique login email.
        role: Application-wide role (UserRole value).
        private_stats: When set, plain group members cannot see this user's
            statistics; supervisors and administrators still can.
        created_at: Account creation time.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(320), unique=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    private_stats: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class Group(Base):
    """A study group meeting weekly."""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    members: Mapped[List["GroupMember"]] = relationship(
        back_populates="group", cascade="all, delete-orphan"
    )


class GroupMember(Base):
    """
    Membership of a user in a group.

    Attributes:
        role: MEMBER (appears on the roster) or SUPERVISOR (manages
            sessions, comments and mastery; not listed on the roster).
    """

    __tablename__ = "group_members"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_member"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(20), default=GroupRole.MEMBER.value)

    group: Mapped["Group"] = relationship(back_populates="members")


# ===========================================
# Reference Data
# ===========================================


class Chapter(Base):
    """
    One of the 114 chapters. Seeded once, never mutated at runtime.

    Attributes:
        number: Ordinal number 1..114 (primary key).
        verse_count: Number of verses.
        page_start: First mushaf page of the chapter.
        page_end: Last mushaf page the chapter touches.
    """

    __tablename__ = "chapters"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100), default="")
    verse_count: Mapped[int] = mapped_column(Integer)
    page_start: Mapped[int] = mapped_column(Integer)
    page_end: Mapped[int] = mapped_column(Integer)


class Verse(Base):
    """Verse-to-page mapping used for exact page counts."""

    __tablename__ = "verses"

    chapter_number: Mapped[int] = mapped_column(
        ForeignKey("chapters.number"), primary_key=True
    )
    verse_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    page: Mapped[int] = mapped_column(Integer, index=True)


# ===========================================
# Learner Logs
# ===========================================


class ProgressEntry(Base):
    """
    A verse range a learner worked on under one activity program.

    Entries are never merged; overlapping ranges are deduplicated when
    coverage is derived.
    """

    __tablename__ = "progress_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    program: Mapped[str] = mapped_column(String(30), index=True)
    entry_date: Mapped[date] = mapped_column(Date, index=True)
    chapter_number: Mapped[int] = mapped_column(ForeignKey("chapters.number"))
    verse_start: Mapped[int] = mapped_column(Integer)
    verse_end: Mapped[int] = mapped_column(Integer)
    repetitions: Mapped[Optional[int]] = mapped_column(Integer)
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class MasteryRecord(Base):
    """
    Explicit mastery status of a chapter for a learner.

    Unique per (learner, chapter); upserted by supervisors and deleted when
    the status is cleared.
    """

    __tablename__ = "mastery_records"
    __table_args__ = (
        UniqueConstraint("learner_id", "chapter_number", name="uq_mastery_learner_chapter"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    chapter_number: Mapped[int] = mapped_column(ForeignKey("chapters.number"))
    status: Mapped[str] = mapped_column(String(10))
    validated_week: Mapped[Optional[int]] = mapped_column(Integer)
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class DailyActivityCompletion(Base):
    """Whether a learner completed a program on a given day."""

    __tablename__ = "daily_activity_completions"
    __table_args__ = (
        UniqueConstraint(
            "learner_id", "program", "completion_date", name="uq_daily_completion"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    program: Mapped[str] = mapped_column(String(30))
    completion_date: Mapped[date] = mapped_column(Date, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=True)


class WeeklyObjective(Base):
    """Recurring weekly goal, learner-defined (custom) or system default."""

    __tablename__ = "weekly_objectives"

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    program: Mapped[Optional[str]] = mapped_column(String(30))
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


class WeeklyObjectiveCompletion(Base):
    """Completion flag of an objective for one Sunday-anchored week."""

    __tablename__ = "weekly_objective_completions"
    __table_args__ = (
        UniqueConstraint("objective_id", "week_start", name="uq_objective_week"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    objective_id: Mapped[int] = mapped_column(
        ForeignKey("weekly_objectives.id", ondelete="CASCADE"), index=True
    )
    week_start: Mapped[date] = mapped_column(Date)
    completed: Mapped[bool] = mapped_column(Boolean, default=True)


class CompletionCycle(Base):
    """
    A completed full pass (revision or reading). Append-only.

    Attributes:
        days_to_complete: Days since the previous cycle of the same type;
            None for the first cycle.
        unit_count: Optional size of the pass (e.g. hizb count).
    """

    __tablename__ = "completion_cycles"

    id: Mapped[int] = mapped_column(primary_key=True)
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    cycle_type: Mapped[str] = mapped_column(String(20))
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    days_to_complete: Mapped[Optional[int]] = mapped_column(Integer)
    unit_count: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )


# ===========================================
# Group Sessions
# ===========================================


class GroupSession(Base):
    """
    A dated group meeting.

    The (group_id, week_start) unique constraint is what guarantees at most
    one session per group per Sunday-anchored week, including under
    concurrent creation.

    Attributes:
        session_date: Calendar date of the meeting.
        week_start: Sunday starting the meeting's week.
        iso_week: ISO-8601 week number used for display labels.
    """

    __tablename__ = "group_sessions"
    __table_args__ = (
        UniqueConstraint("group_id", "week_start", name="uq_group_session_week"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), index=True
    )
    session_date: Mapped[date] = mapped_column(Date)
    week_start: Mapped[date] = mapped_column(Date)
    iso_week: Mapped[int] = mapped_column(Integer)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    comments: Mapped[List["RecitationComment"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )
    attendance: Mapped[List["AttendanceRecord"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )


class RecitationComment(Base):
    """Supervisor assessment of a learner's recitation of a chapter."""

    __tablename__ = "recitation_comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("group_sessions.id", ondelete="CASCADE"), index=True
    )
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    chapter_number: Mapped[int] = mapped_column(ForeignKey("chapters.number"))
    verse_start: Mapped[Optional[int]] = mapped_column(Integer)
    verse_end: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[Optional[str]] = mapped_column(String(10))
    comment: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )

    session: Mapped["GroupSession"] = relationship(back_populates="comments")


class AttendanceRecord(Base):
    """Presence of a learner at a session. One per (session, learner)."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("session_id", "learner_id", name="uq_attendance_session_learner"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("group_sessions.id", ondelete="CASCADE"), index=True
    )
    learner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    present: Mapped[bool] = mapped_column(Boolean, default=False)
    excused: Mapped[bool] = mapped_column(Boolean, default=False)
    note: Mapped[Optional[str]] = mapped_column(Text)

    session: Mapped["GroupSession"] = relationship(back_populates="attendance")
