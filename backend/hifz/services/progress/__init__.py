"""
Progress Coverage & Statistics Services

Pure derivations over raw logs plus the services that load, authorize and
write them.

Modules:
- chapters: chapter reference data and range validation
- verse_sets: verse ranges → deduplicated coverage and derived counts
- weeks: Sunday-anchored weeks, ISO weeks and period bounds
- mastery_reconciler: explicit vs coverage-derived mastery, comment timelines
- attendance: streaks, rates, trends, completion cycles
- records: concurrent snapshot loading
- session_resolver: one session per group per week
- statistics: statistics report aggregation
- mastery_service: group mastery sheet operations
- activity_service: learner activity writes
- profile_service: learner profile
- group_insights: group ranking and inactivity alerts
- permissions: capability checks

Usage:
    from hifz.services.progress import StatisticsService, GroupMasteryService
"""

from hifz.services.progress.activity_service import ActivityService
from hifz.services.progress.group_insights import GroupInsightsService
from hifz.services.progress.mastery_service import GroupMasteryService
from hifz.services.progress.profile_service import LearnerProfileService
from hifz.services.progress.records import RecordLoader
from hifz.services.progress.session_resolver import WeeklySessionResolver
from hifz.services.progress.statistics import StatisticsService

__all__ = [
    "ActivityService",
    "GroupInsightsService",
    "GroupMasteryService",
    "LearnerProfileService",
    "RecordLoader",
    "StatisticsService",
    "WeeklySessionResolver",
]
