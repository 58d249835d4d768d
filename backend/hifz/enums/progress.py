"""
Progress Tracking Enums

Defines the closed vocabularies used by progress logging, mastery
validation, group roles and statistics scopes.
"""

from enum import Enum


class ActivityProgram(str, Enum):
    """
    Activity programs a learner can log verse ranges under.

    Only MEMORIZATION entries feed coverage and mastery; the other programs
    count towards period activity and daily completions.
    """

    MEMORIZATION = "MEMORIZATION"
    CONSOLIDATION = "CONSOLIDATION"
    REVISION = "REVISION"
    READING = "READING"
    TAFSIR = "TAFSIR"  # Exegesis reading


# Programs tracked by daily completion checkboxes; TAFSIR is a weekly objective
DAILY_PROGRAMS = (
    ActivityProgram.MEMORIZATION,
    ActivityProgram.CONSOLIDATION,
    ActivityProgram.REVISION,
    ActivityProgram.READING,
)


class MasteryStatus(str, Enum):
    """
    Supervisor assessment of a chapter for a learner.

    Codes are the ones printed on the group mastery sheets:
    - V: validated during a session
    - S: recited to a peer, awaiting the supervisor
    - X: assumed known before tracking started, pending validation
    - 50% / 51% / 90%: fractional progress tiers
    - AM: to memorize
    """

    VALIDATED = "V"
    RECITED_TO_PEER = "S"
    ASSUMED_KNOWN = "X"
    PARTIAL = "50%"
    FIRST_RETAKE = "51%"
    NEARLY_ACQUIRED = "90%"
    TO_MEMORIZE = "AM"


VALIDATED_STATUSES = frozenset({MasteryStatus.VALIDATED, MasteryStatus.RECITED_TO_PEER})

IN_PROGRESS_STATUSES = frozenset(
    {
        MasteryStatus.TO_MEMORIZE,
        MasteryStatus.PARTIAL,
        MasteryStatus.FIRST_RETAKE,
        MasteryStatus.NEARLY_ACQUIRED,
    }
)


class MasterySource(str, Enum):
    """Which data source a reconciled mastery summary was taken from."""

    EXPLICIT = "explicit"  # MasteryRecord rows
    COVERAGE = "coverage"  # Fully covered chapters from progress entries
    NONE = "none"


class TimeScope(str, Enum):
    """Time window selectable for statistics."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


class TrendDirection(str, Enum):
    """
    Direction of a current-vs-previous period comparison.

    Classified by strict inequality of the two counts.
    """

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class CycleType(str, Enum):
    """Kinds of full passes over the text."""

    REVISION = "REVISION"  # Full revision of memorized chapters
    READING = "READING"  # Full reading of the text


class UserRole(str, Enum):
    """Application-wide roles."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"


class GroupRole(str, Enum):
    """Roles inside a study group."""

    MEMBER = "MEMBER"
    SUPERVISOR = "SUPERVISOR"


class SortOrder(str, Enum):
    """Ordering of comment timelines by session date."""

    ASC = "asc"
    DESC = "desc"
