"""API Routers package."""

from hifz.routers import activity as activity_router
from hifz.routers import groups as groups_router
from hifz.routers import health as health_router
from hifz.routers import mastery as mastery_router
from hifz.routers import statistics as statistics_router

__all__ = [
    "activity_router",
    "groups_router",
    "health_router",
    "mastery_router",
    "statistics_router",
]
