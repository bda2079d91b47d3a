"""Data models for persisted submissions, history and sharing."""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass(frozen=True)
class AnalysisRecord:
    """One analyzed error as stored in the submissions collection.

    ``id`` and ``created_at`` are assigned by the document store. ``share_id``
    is assigned on creation but only grants access once ``is_shared`` is set.
    """

    id: str
    client_id: str
    error_message: str
    language: str
    explanation: str
    causes: tuple[str, ...]
    solutions: tuple[str, ...]
    category: str
    severity: str
    example_code: str | None
    share_id: str
    created_at: datetime
    is_shared: bool = False
    is_private: bool = False
    shared_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "AnalysisRecord":
        """Build a record from a stored document."""
        created_at = _parse_timestamp(doc.get("createdAt"))
        if created_at is None:
            raise ValueError(f"Document {doc.get('id')} has no createdAt")
        return cls(
            id=str(doc["id"]),
            client_id=str(doc["clientId"]),
            error_message=str(doc.get("errorMessage", "")),
            language=str(doc.get("language", "")),
            explanation=str(doc.get("explanation", "")),
            causes=tuple(str(c) for c in doc.get("causes") or ()),
            solutions=tuple(str(s) for s in doc.get("solutions") or ()),
            category=str(doc.get("category") or ""),
            severity=str(doc.get("severity") or ""),
            example_code=doc.get("exampleCode") or None,
            share_id=str(doc.get("shareId", "")),
            created_at=created_at,
            is_shared=bool(doc.get("isShared", False)),
            is_private=bool(doc.get("isPrivate", False)),
            shared_at=_parse_timestamp(doc.get("sharedAt")),
        )

    def to_history_dict(self) -> dict[str, Any]:
        """Shape returned to the owner by the history listing."""
        return {
            "id": self.id,
            "errorMessage": self.error_message,
            "language": self.language,
            "category": self.category,
            "severity": self.severity,
            "timestamp": self.created_at.isoformat(),
            "isShared": self.is_shared,
            "shareId": self.share_id,
            "explanation": self.explanation,
            "causes": list(self.causes),
            "solutions": list(self.solutions),
            "exampleCode": self.example_code,
        }


@dataclass(frozen=True)
class SharedSubmission:
    """Public view of a shared record. Carries no client identifier."""

    id: str
    share_id: str
    error_message: str
    language: str
    explanation: str
    causes: tuple[str, ...]
    solutions: tuple[str, ...]
    category: str
    severity: str
    example_code: str | None
    timestamp: datetime
    shared_at: datetime | None

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "SharedSubmission":
        return cls(
            id=record.id,
            share_id=record.share_id,
            error_message=record.error_message,
            language=record.language,
            explanation=record.explanation,
            causes=record.causes,
            solutions=record.solutions,
            category=record.category,
            severity=record.severity,
            example_code=record.example_code,
            timestamp=record.created_at,
            shared_at=record.shared_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "shareId": self.share_id,
            "errorMessage": self.error_message,
            "language": self.language,
            "category": self.category,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
            "sharedAt": self.shared_at.isoformat() if self.shared_at else None,
            "analysis": {
                "explanation": self.explanation,
                "causes": list(self.causes),
                "solutions": list(self.solutions),
                "severity": self.severity,
                "category": self.category,
                "exampleCode": self.example_code,
            },
        }


@dataclass(frozen=True)
class ShareLink:
    """Result of sharing a record."""

    share_id: str
    share_url: str

    def to_dict(self) -> dict[str, Any]:
        return {"shareId": self.share_id, "shareUrl": self.share_url}


@dataclass(frozen=True)
class TimelineBucket:
    """Number of records created on one day."""

    day: date
    label: str  # Abbreviated weekday, e.g. "Mon"
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.day.isoformat(), "label": self.label, "count": self.count}


@dataclass(frozen=True)
class HistoryStats:
    """Aggregates computed over exactly the records of a history listing."""

    total: int
    languages: dict[str, int]
    severity: dict[str, int]
    categories: dict[str, int]
    timeline: tuple[TimelineBucket, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "languages": dict(self.languages),
            "severity": dict(self.severity),
            "categories": dict(self.categories),
            "timeline": [b.to_dict() for b in self.timeline],
        }


@dataclass(frozen=True)
class HistoryResult:
    """A client's visible history, newest first, with its statistics."""

    records: tuple[AnalysisRecord, ...]
    stats: HistoryStats

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": [r.to_history_dict() for r in self.records],
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class AnalyzeResult:
    """Response of a successful analysis request."""

    id: str
    share_id: str
    explanation: str
    causes: tuple[str, ...]
    solutions: tuple[str, ...]
    category: str
    severity: str
    example_code: str | None
    remaining_quota: int
    degraded: bool = False
    language_warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "shareId": self.share_id,
            "explanation": self.explanation,
            "causes": list(self.causes),
            "solutions": list(self.solutions),
            "category": self.category,
            "severity": self.severity,
            "exampleCode": self.example_code,
            "remainingQuota": self.remaining_quota,
        }
        if self.language_warning:
            result["languageWarning"] = self.language_warning
        return result
