"""Data models for extracted error analyses."""

from dataclasses import dataclass
from enum import Enum

CATEGORIES: tuple[str, ...] = (
    "Syntax Error",
    "Runtime Error",
    "Logic Error",
    "Configuration Error",
    "Network Error",
    "Database Error",
)
DEFAULT_CATEGORY = "Runtime Error"
UNKNOWN_CATEGORY = "Unknown Error"  # Only produced by the fallback record

SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
DEFAULT_SEVERITY = "medium"


@dataclass(frozen=True)
class AnalysisFields:
    """The normalized, bounded analysis produced for one error message."""

    explanation: str
    causes: tuple[str, ...]
    solutions: tuple[str, ...]
    category: str  # One of CATEGORIES, or UNKNOWN_CATEGORY
    severity: str  # One of SEVERITIES
    example_code: str | None = None


class ExtractionStatus(Enum):
    """How an analysis was obtained from the completion text."""

    VALID = "valid"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class ValidAnalysis:
    """The completion text parsed and carried every required field."""

    fields: AnalysisFields
    status: ExtractionStatus = ExtractionStatus.VALID


@dataclass(frozen=True)
class DegradedAnalysis:
    """The completion text was unusable; ``fields`` is the fallback record."""

    fields: AnalysisFields
    reason: str
    status: ExtractionStatus = ExtractionStatus.DEGRADED


ExtractedAnalysis = ValidAnalysis | DegradedAnalysis
