"""Tests for data models."""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import UTC, date, datetime
from typing import Any

import pytest

from errexplain.models.analysis import (
    AnalysisFields,
    DegradedAnalysis,
    ExtractionStatus,
    ValidAnalysis,
)
from errexplain.models.submission import (
    AnalysisRecord,
    AnalyzeResult,
    SharedSubmission,
    ShareLink,
    TimelineBucket,
)
from errexplain.models.usage import QuotaDecision, RateStatus
from errexplain.models.vote import VoteTally, VoteType

CREATED = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


def _document(**overrides: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "id": "rec-1",
        "clientId": "client-1",
        "errorMessage": "TypeError: x is undefined",
        "language": "JavaScript",
        "explanation": "x was never assigned",
        "causes": ["a"],
        "solutions": ["b", "c"],
        "category": "Runtime Error",
        "severity": "high",
        "exampleCode": "",
        "shareId": "share-1",
        "isShared": False,
        "isPrivate": False,
        "createdAt": CREATED.isoformat(),
    }
    doc.update(overrides)
    return doc


class TestAnalysisModels:
    """Test the extraction result sum type."""

    def test_status_tags(self) -> None:
        """Test each variant carries its status."""
        fields = AnalysisFields("e", ("c",), ("s",), "Runtime Error", "medium")
        assert ValidAnalysis(fields).status == ExtractionStatus.VALID
        assert DegradedAnalysis(fields, reason="no json").status == ExtractionStatus.DEGRADED

    def test_fields_are_frozen(self) -> None:
        """Test analysis fields cannot be mutated."""
        fields = AnalysisFields("e", ("c",), ("s",), "Runtime Error", "medium")
        with pytest.raises(FrozenInstanceError):
            fields.severity = "low"  # type: ignore[misc]


class TestAnalysisRecord:
    """Test AnalysisRecord conversion."""

    def test_from_document(self) -> None:
        """Test a stored document becomes a record."""
        record = AnalysisRecord.from_document(_document())

        assert record.id == "rec-1"
        assert record.client_id == "client-1"
        assert record.solutions == ("b", "c")
        assert record.example_code is None
        assert record.created_at == CREATED
        assert record.shared_at is None

    def test_from_document_without_created_at(self) -> None:
        """Test a document without a creation time is rejected."""
        doc = _document()
        del doc["createdAt"]
        with pytest.raises(ValueError, match="rec-1"):
            AnalysisRecord.from_document(doc)

    def test_history_dict(self) -> None:
        """Test the owner-facing shape."""
        result = AnalysisRecord.from_document(_document(isShared=True)).to_history_dict()

        assert result["timestamp"] == CREATED.isoformat()
        assert result["isShared"] is True
        assert result["causes"] == ["a"]
        assert "clientId" not in result

    def test_shared_view_has_no_client(self) -> None:
        """Test the public view never carries the client identifier."""
        record = AnalysisRecord.from_document(
            _document(isShared=True, sharedAt=CREATED.isoformat())
        )
        result = SharedSubmission.from_record(record).to_dict()

        assert "client-1" not in str(result)
        assert result["sharedAt"] == CREATED.isoformat()
        assert result["analysis"]["solutions"] == ["b", "c"]


class TestResultShapes:
    """Test caller-facing dict shapes."""

    def test_analyze_result_without_warning(self) -> None:
        """Test the warning key is omitted when there is none."""
        result = AnalyzeResult(
            id="rec-1",
            share_id="share-1",
            explanation="e",
            causes=("c",),
            solutions=("s",),
            category="Runtime Error",
            severity="low",
            example_code=None,
            remaining_quota=4,
        ).to_dict()

        assert result["remainingQuota"] == 4
        assert "languageWarning" not in result

    def test_analyze_result_with_warning(self) -> None:
        """Test the warning is included when set."""
        result = AnalyzeResult(
            id="rec-1",
            share_id="share-1",
            explanation="e",
            causes=("c",),
            solutions=("s",),
            category="Runtime Error",
            severity="low",
            example_code=None,
            remaining_quota=0,
            language_warning="Looks like Python",
        ).to_dict()
        assert result["languageWarning"] == "Looks like Python"

    def test_share_link(self) -> None:
        """Test the share link shape."""
        link = ShareLink(share_id="abc", share_url="http://localhost:3000/shared/abc")
        assert link.to_dict() == {
            "shareId": "abc",
            "shareUrl": "http://localhost:3000/shared/abc",
        }

    def test_timeline_bucket(self) -> None:
        """Test a timeline bucket shape."""
        bucket = TimelineBucket(day=date(2025, 3, 14), label="Fri", count=2)
        assert bucket.to_dict() == {"date": "2025-03-14", "label": "Fri", "count": 2}


class TestUsageModels:
    """Test quota models."""

    def test_remaining_never_negative(self) -> None:
        """Test an overshoot reports zero remaining."""
        decision = QuotaDecision(
            allowed=False, usage_count=7, limit=5, date="2025-03-14", resets_at=CREATED
        )
        assert decision.remaining == 0

    def test_rate_status_to_dict(self) -> None:
        """Test the rate status shape."""
        status = RateStatus(used=2, remaining=3, limit=5, can_analyze=True, resets_at=CREATED)
        assert status.to_dict() == {
            "used": 2,
            "remaining": 3,
            "limit": 5,
            "canAnalyze": True,
            "resetsAt": CREATED.isoformat(),
        }


class TestVoteModels:
    """Test vote models."""

    def test_vote_type_values(self) -> None:
        """Test the stored vote values."""
        assert VoteType("helpful") is VoteType.HELPFUL
        assert VoteType.NOT_HELPFUL == "not_helpful"

    def test_unknown_vote_type(self) -> None:
        """Test unknown vote values are rejected."""
        with pytest.raises(ValueError):
            VoteType("love")

    def test_tally(self) -> None:
        """Test the tally total and shape."""
        tally = VoteTally(helpful=3, not_helpful=1)
        assert tally.total == 4
        assert tally.to_dict() == {"helpful": 3, "notHelpful": 1, "total": 4}
