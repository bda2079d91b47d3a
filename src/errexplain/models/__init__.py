"""Data models and transfer objects."""

from .analysis import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    DEFAULT_SEVERITY,
    SEVERITIES,
    UNKNOWN_CATEGORY,
    AnalysisFields,
    DegradedAnalysis,
    ExtractedAnalysis,
    ExtractionStatus,
    ValidAnalysis,
)
from .submission import (
    AnalysisRecord,
    AnalyzeResult,
    HistoryResult,
    HistoryStats,
    SharedSubmission,
    ShareLink,
    TimelineBucket,
)
from .usage import QuotaDecision, RateStatus, UsageCounter
from .vote import VoteRecord, VoteTally, VoteType

__all__ = [
    # Analysis models
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "DEFAULT_SEVERITY",
    "SEVERITIES",
    "UNKNOWN_CATEGORY",
    "AnalysisFields",
    "ExtractionStatus",
    "ValidAnalysis",
    "DegradedAnalysis",
    "ExtractedAnalysis",
    # Submission models
    "AnalysisRecord",
    "AnalyzeResult",
    "HistoryResult",
    "HistoryStats",
    "SharedSubmission",
    "ShareLink",
    "TimelineBucket",
    # Usage models
    "UsageCounter",
    "QuotaDecision",
    "RateStatus",
    # Vote models
    "VoteType",
    "VoteRecord",
    "VoteTally",
]
