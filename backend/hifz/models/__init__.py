"""Pydantic models for the application."""

from hifz.models.base import StrictRequest, StrictResponse, SuccessResponse
from hifz.models.progress import (
    CoverageSummary,
    LearnerProfile,
    MasteryMatrixResponse,
    MasterySummary,
    StatisticsReport,
    TrendComparison,
)

__all__ = [
    "StrictRequest",
    "StrictResponse",
    "SuccessResponse",
    "CoverageSummary",
    "LearnerProfile",
    "MasteryMatrixResponse",
    "MasterySummary",
    "StatisticsReport",
    "TrendComparison",
]
