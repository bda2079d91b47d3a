"""Persistence of analysis records, history listing and sharing.

Visibility rules:
- History lists only the caller's own non-private records.
- The public share lookup returns a record only when it is shared AND not
  private. Every other state is ``NotFound``, indistinguishable from an id
  that never existed.
"""

from __future__ import annotations

import secrets
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from errexplain.config.schema import AnalysisConfig
from errexplain.interfaces.store import DocumentStore
from errexplain.models.analysis import SEVERITIES, AnalysisFields
from errexplain.models.submission import (
    AnalysisRecord,
    HistoryResult,
    HistoryStats,
    SharedSubmission,
    ShareLink,
    TimelineBucket,
)
from errexplain.utils.async_helpers import NotFound, Unauthorized
from errexplain.utils.logging import LogEventNames

log = structlog.get_logger()

TIMELINE_DAYS = 7


def build_history_stats(
    records: Iterable[AnalysisRecord],
    today: date,
    tz: ZoneInfo,
) -> HistoryStats:
    """Aggregate language/severity/category counts and a 7-day timeline.

    Args:
        records: Exactly the records being returned to the caller.
        today: Last day of the timeline, in ``tz``.
        tz: Timezone used to bucket ``created_at``.
    """
    records = list(records)
    languages = Counter(r.language for r in records)
    categories = Counter(r.category for r in records)

    severity = dict.fromkeys(SEVERITIES, 0)
    for r in records:
        severity[r.severity] = severity.get(r.severity, 0) + 1

    per_day = Counter(r.created_at.astimezone(tz).date() for r in records)
    days = [today - timedelta(days=offset) for offset in range(TIMELINE_DAYS - 1, -1, -1)]
    timeline = tuple(
        TimelineBucket(day=d, label=d.strftime("%a"), count=per_day.get(d, 0)) for d in days
    )

    return HistoryStats(
        total=len(records),
        languages=dict(languages),
        severity=severity,
        categories=dict(categories),
        timeline=timeline,
    )


class SubmissionStore:
    """Stores analysis records in the submissions collection."""

    def __init__(
        self,
        store: DocumentStore,
        config: AnalysisConfig,
        collection: str = "error_submissions",
        share_base_url: str = "http://localhost:3000",
        timezone: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._collection = collection
        self._share_base_url = share_base_url.rstrip("/")
        self._tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(UTC))

    def share_url(self, share_id: str) -> str:
        return f"{self._share_base_url}/shared/{share_id}"

    async def create_submission(
        self,
        client_id: str,
        error_message: str,
        language: str,
        fields: AnalysisFields,
        is_private: bool = False,
    ) -> AnalysisRecord:
        """Persist one analysis. The store assigns ``id`` and ``createdAt``.

        Raises:
            StoreError: If the write fails. Nothing is persisted in that case.
        """
        doc = await self._store.create(
            self._collection,
            {
                "clientId": client_id,
                "errorMessage": error_message[: self._config.max_error_length],
                "language": language[: self._config.max_language_length],
                "explanation": fields.explanation[: self._config.max_explanation_length],
                "causes": [c[: self._config.max_cause_length] for c in fields.causes],
                "solutions": [s[: self._config.max_solution_length] for s in fields.solutions],
                "category": fields.category,
                "severity": fields.severity,
                "exampleCode": (
                    fields.example_code[: self._config.max_example_code_length]
                    if fields.example_code
                    else None
                ),
                "isShared": False,
                "isPrivate": is_private,
                "shareId": secrets.token_urlsafe(16),
                "sharedAt": None,
            },
        )
        record = AnalysisRecord.from_document(doc)
        log.info(
            LogEventNames.SUBMISSION_CREATED,
            submission_id=record.id,
            is_private=record.is_private,
            category=record.category,
            severity=record.severity,
        )
        return record

    async def discard(self, submission_id: str) -> bool:
        """Remove a record written by a request that later failed."""
        removed = await self._store.delete(self._collection, submission_id)
        log.warning(LogEventNames.SUBMISSION_ROLLED_BACK, submission_id=submission_id)
        return removed

    async def get_owned(self, submission_id: str, client_id: str) -> AnalysisRecord:
        """Fetch a record and check that ``client_id`` owns it.

        Raises:
            NotFound: If no such record exists.
            Unauthorized: If another client owns the record.
        """
        doc = await self._store.get(self._collection, submission_id)
        if doc is None:
            raise NotFound("Error not found")

        record = AnalysisRecord.from_document(doc)
        if record.client_id != client_id:
            log.warning(LogEventNames.OWNERSHIP_MISMATCH, submission_id=submission_id)
            raise Unauthorized("Unauthorized")
        return record

    async def list_history(self, client_id: str, limit: int | None = None) -> HistoryResult:
        """The client's non-private records, newest first, with statistics."""
        docs = await self._store.list(
            self._collection,
            where={"clientId": client_id, "isPrivate": False},
            order_by="createdAt",
            descending=True,
            limit=limit or self._config.history_limit,
        )
        records = tuple(AnalysisRecord.from_document(d) for d in docs)
        today = self._clock().astimezone(self._tz).date()
        return HistoryResult(records=records, stats=build_history_stats(records, today, self._tz))

    async def delete_submission(self, submission_id: str, client_id: str) -> None:
        """Delete a record owned by ``client_id``.

        A second delete of the same id raises ``NotFound``.

        Raises:
            NotFound: If no such record exists.
            Unauthorized: If another client owns the record.
        """
        await self.get_owned(submission_id, client_id)
        if not await self._store.delete(self._collection, submission_id):
            raise NotFound("Error not found")
        log.info(LogEventNames.SUBMISSION_DELETED, submission_id=submission_id)

    async def share_submission(self, submission_id: str, client_id: str) -> ShareLink:
        """Mark a record as shared and return its existing share token.

        Raises:
            NotFound: If no such record exists.
            Unauthorized: If another client owns the record.
        """
        record = await self.get_owned(submission_id, client_id)
        await self._store.update(
            self._collection,
            submission_id,
            {"isShared": True, "sharedAt": self._clock().isoformat()},
        )
        log.info(
            LogEventNames.SUBMISSION_SHARED,
            submission_id=submission_id,
            is_private=record.is_private,
        )
        return ShareLink(share_id=record.share_id, share_url=self.share_url(record.share_id))

    async def lookup_shared(self, share_id: str) -> SharedSubmission:
        """Public lookup of a shared record.

        Raises:
            NotFound: Unless the record exists, is shared and is not private.
        """
        record = await self.find_visible(share_id)
        return SharedSubmission.from_record(record)

    async def find_visible(self, share_id: str) -> AnalysisRecord:
        docs = await self._store.list(
            self._collection,
            where={"shareId": share_id, "isShared": True, "isPrivate": False},
            limit=1,
        )
        if not docs:
            raise NotFound("Shared error not found")
        return AnalysisRecord.from_document(docs[0])
