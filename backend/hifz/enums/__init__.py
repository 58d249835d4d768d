"""
Centralized enum definitions for the application.

All enums are organized by domain:
- progress.py: Activity programs, mastery statuses, scopes, roles

Usage:
    from hifz.enums import ActivityProgram, MasteryStatus, TimeScope

    # Or import from specific module
    from hifz.enums.progress import VALIDATED_STATUSES
"""

from hifz.enums.progress import (
    DAILY_PROGRAMS,
    IN_PROGRESS_STATUSES,
    VALIDATED_STATUSES,
    ActivityProgram,
    CycleType,
    GroupRole,
    MasterySource,
    MasteryStatus,
    SortOrder,
    TimeScope,
    TrendDirection,
    UserRole,
)

__all__ = [
    "ActivityProgram",
    "CycleType",
    "DAILY_PROGRAMS",
    "GroupRole",
    "IN_PROGRESS_STATUSES",
    "MasterySource",
    "MasteryStatus",
    "SortOrder",
    "TimeScope",
    "TrendDirection",
    "UserRole",
    "VALIDATED_STATUSES",
]
