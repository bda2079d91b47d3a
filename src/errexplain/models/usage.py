"""Data models for the daily quota ledger."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class UsageCounter:
    """Completed analyses for one client on one calendar date."""

    client_id: str
    date: str  # ISO date in the ledger's timezone
    usage_count: int


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""

    allowed: bool
    usage_count: int
    limit: int
    date: str
    resets_at: datetime

    @property
    def remaining(self) -> int:
        """Analyses left today. Never negative, even after an overshoot."""
        return max(0, self.limit - self.usage_count)


@dataclass(frozen=True)
class RateStatus:
    """Quota status reported to callers."""

    used: int
    remaining: int
    limit: int
    can_analyze: bool
    resets_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "used": self.used,
            "remaining": self.remaining,
            "limit": self.limit,
            "canAnalyze": self.can_analyze,
            "resetsAt": self.resets_at.isoformat(),
        }
