"""Data models for solution votes."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class VoteType(StrEnum):
    """Allowed vote values."""

    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"


@dataclass(frozen=True)
class VoteRecord:
    """One fingerprint's vote on one solution of a shared analysis."""

    share_id: str
    solution_index: int
    user_fingerprint: str
    vote_type: VoteType


@dataclass(frozen=True)
class VoteTally:
    """Vote counts for one solution, computed from stored votes."""

    helpful: int
    not_helpful: int

    @property
    def total(self) -> int:
        return self.helpful + self.not_helpful

    def to_dict(self) -> dict[str, Any]:
        return {
            "helpful": self.helpful,
            "notHelpful": self.not_helpful,
            "total": self.total,
        }
