"""Tests for submission persistence, history and sharing."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from errexplain.adapters.store.memory import MemoryDocumentStore
from errexplain.config.schema import AnalysisConfig
from errexplain.core.submission_store import SubmissionStore, build_history_stats
from errexplain.models.analysis import AnalysisFields
from errexplain.models.submission import AnalysisRecord
from errexplain.utils.async_helpers import NotFound, Unauthorized

FIELDS = AnalysisFields(
    explanation="The variable is undefined.",
    causes=("Data not loaded",),
    solutions=("Initialize the state", "Use optional chaining"),
    category="Runtime Error",
    severity="high",
    example_code="items.map(x => x)",
)


async def _create(
    submissions: SubmissionStore, client_id: str = "client-1", **kwargs: Any
) -> AnalysisRecord:
    return await submissions.create_submission(
        client_id, "TypeError: x", "JavaScript", FIELDS, **kwargs
    )


@pytest.fixture
def submissions(memory_store: MemoryDocumentStore, clock: Any) -> SubmissionStore:
    """Submission store over the in-memory backend."""
    return SubmissionStore(
        memory_store,
        AnalysisConfig(),
        share_base_url="https://errexplain.example.com/",
        clock=clock,
    )


class TestCreateSubmission:
    """Test create_submission()."""

    async def test_round_trip(self, submissions: SubmissionStore) -> None:
        """Test a created record can be read back by its owner."""
        created = await _create(submissions)
        loaded = await submissions.get_owned(created.id, "client-1")

        assert loaded == created
        assert loaded.causes == FIELDS.causes
        assert loaded.example_code == FIELDS.example_code
        assert loaded.created_at == datetime(2025, 3, 14, 12, 0, tzinfo=UTC)

    async def test_initial_sharing_state(self, submissions: SubmissionStore) -> None:
        """Test new records are unshared but already carry a share token."""
        record = await _create(submissions)
        assert not record.is_shared
        assert record.shared_at is None
        assert len(record.share_id) >= 16

    async def test_share_ids_are_unique(self, submissions: SubmissionStore) -> None:
        """Test every record gets its own share token."""
        first = await _create(submissions)
        second = await _create(submissions)
        assert first.id != second.id
        assert first.share_id != second.share_id

    async def test_fields_are_truncated(
        self, memory_store: MemoryDocumentStore, clock: Any
    ) -> None:
        """Test stored text respects the configured limits."""
        submissions = SubmissionStore(
            memory_store, AnalysisConfig(max_error_length=100), clock=clock
        )
        record = await submissions.create_submission(
            "client-1", "E" * 500, "L" * 80, FIELDS
        )
        assert len(record.error_message) == 100
        assert len(record.language) == 50

    async def test_discard(
        self, submissions: SubmissionStore, memory_store: MemoryDocumentStore
    ) -> None:
        """Test a discarded record is gone."""
        record = await _create(submissions)
        assert await submissions.discard(record.id)
        assert await memory_store.count("error_submissions") == 0


class TestOwnership:
    """Test ownership checks on delete and share."""

    async def test_get_missing(self, submissions: SubmissionStore) -> None:
        """Test an unknown id is NotFound."""
        with pytest.raises(NotFound, match="Error not found"):
            await submissions.get_owned("missing", "client-1")

    async def test_other_client_unauthorized(self, submissions: SubmissionStore) -> None:
        """Test another client cannot read, delete or share the record."""
        record = await _create(submissions)
        with pytest.raises(Unauthorized):
            await submissions.get_owned(record.id, "client-2")
        with pytest.raises(Unauthorized):
            await submissions.delete_submission(record.id, "client-2")
        with pytest.raises(Unauthorized):
            await submissions.share_submission(record.id, "client-2")

    async def test_delete_then_delete_again(self, submissions: SubmissionStore) -> None:
        """Test the second delete of the same id is NotFound."""
        record = await _create(submissions)
        await submissions.delete_submission(record.id, "client-1")
        with pytest.raises(NotFound):
            await submissions.delete_submission(record.id, "client-1")


class TestSharing:
    """Test share_submission() and lookup_shared()."""

    async def test_unshared_is_not_found(self, submissions: SubmissionStore) -> None:
        """Test a record that was never shared is not publicly visible."""
        record = await _create(submissions)
        with pytest.raises(NotFound, match="Shared error not found"):
            await submissions.lookup_shared(record.share_id)

    async def test_share_then_lookup(self, submissions: SubmissionStore, clock: Any) -> None:
        """Test sharing exposes the record without the client id."""
        record = await _create(submissions)
        clock.advance(minutes=5)

        link = await submissions.share_submission(record.id, "client-1")
        shared = await submissions.lookup_shared(link.share_id)

        assert link.share_id == record.share_id
        assert link.share_url == f"https://errexplain.example.com/shared/{record.share_id}"
        assert shared.id == record.id
        assert shared.shared_at == datetime(2025, 3, 14, 12, 5, tzinfo=UTC)
        data = shared.to_dict()
        assert "clientId" not in data
        assert data["analysis"]["solutions"] == list(FIELDS.solutions)

    async def test_share_is_idempotent(self, submissions: SubmissionStore) -> None:
        """Test sharing twice returns the same link."""
        record = await _create(submissions)
        first = await submissions.share_submission(record.id, "client-1")
        second = await submissions.share_submission(record.id, "client-1")
        assert first == second

    async def test_private_shared_is_not_found(self, submissions: SubmissionStore) -> None:
        """Test a private record stays hidden even when shared."""
        record = await submissions.create_submission(
            "client-1", "TypeError: x", "JavaScript", FIELDS, is_private=True
        )
        link = await submissions.share_submission(record.id, "client-1")
        with pytest.raises(NotFound):
            await submissions.lookup_shared(link.share_id)

    async def test_deleted_is_not_found(self, submissions: SubmissionStore) -> None:
        """Test a deleted record disappears from the public lookup."""
        record = await _create(submissions)
        link = await submissions.share_submission(record.id, "client-1")
        await submissions.delete_submission(record.id, "client-1")
        with pytest.raises(NotFound):
            await submissions.lookup_shared(link.share_id)


class TestHistory:
    """Test list_history()."""

    async def test_newest_first(self, submissions: SubmissionStore, clock: Any) -> None:
        """Test records are ordered by creation time, newest first."""
        ids = []
        for i in range(3):
            record = await submissions.create_submission(
                "client-1", f"Error number {i}", "Python", FIELDS
            )
            ids.append(record.id)
            clock.advance(minutes=1)

        history = await submissions.list_history("client-1")

        assert [r.id for r in history.records] == list(reversed(ids))

    async def test_excludes_private_and_other_clients(self, submissions: SubmissionStore) -> None:
        """Test only the caller's non-private records are listed."""
        visible = await _create(submissions)
        await submissions.create_submission(
            "client-1", "TypeError: y", "JavaScript", FIELDS, is_private=True
        )
        await _create(submissions, "client-2")

        history = await submissions.list_history("client-1")

        assert [r.id for r in history.records] == [visible.id]
        assert history.stats.total == 1

    async def test_limit(self, submissions: SubmissionStore) -> None:
        """Test the listing is capped."""
        for i in range(4):
            await submissions.create_submission("client-1", f"Error {i}", "Go", FIELDS)
        history = await submissions.list_history("client-1", limit=2)
        assert len(history.records) == 2
        assert history.stats.total == 2

    async def test_stats(self, submissions: SubmissionStore, clock: Any) -> None:
        """Test aggregates and the 7-day timeline."""
        await _create(submissions)
        clock.advance(days=-1)
        await submissions.create_submission(
            "client-1",
            "KeyError: 'x'",
            "Python",
            AnalysisFields("x", ("a",), ("b",), "Logic Error", "low"),
        )
        clock.advance(days=1)

        stats = (await submissions.list_history("client-1")).stats

        assert stats.total == 2
        assert stats.languages == {"JavaScript": 1, "Python": 1}
        assert stats.categories == {"Runtime Error": 1, "Logic Error": 1}
        assert stats.severity == {"low": 1, "medium": 0, "high": 1, "critical": 0}
        assert len(stats.timeline) == 7
        assert stats.timeline[0].day == date(2025, 3, 8)
        assert stats.timeline[0].label == "Sat"
        assert [b.count for b in stats.timeline] == [0, 0, 0, 0, 0, 1, 1]

    async def test_empty_history(self, submissions: SubmissionStore) -> None:
        """Test a client with no records."""
        history = await submissions.list_history("client-1")
        assert history.records == ()
        assert history.stats.total == 0
        assert sum(b.count for b in history.stats.timeline) == 0
        assert history.to_dict()["records"] == []


class TestBuildHistoryStats:
    """Test build_history_stats() directly."""

    def _record(self, created_at: datetime, language: str = "Python") -> AnalysisRecord:
        return AnalysisRecord(
            id="r",
            client_id="c",
            error_message="e",
            language=language,
            explanation="x",
            causes=("a",),
            solutions=("b",),
            category="Runtime Error",
            severity="medium",
            example_code=None,
            share_id="s",
            created_at=created_at,
        )

    def test_buckets_in_local_timezone(self) -> None:
        """Test records are bucketed by local date."""
        tz = ZoneInfo("America/Los_Angeles")
        # 2025-03-14 03:00 UTC is still 2025-03-13 in Los Angeles
        record = self._record(datetime(2025, 3, 14, 3, 0, tzinfo=UTC))
        stats = build_history_stats([record], date(2025, 3, 14), tz)
        assert stats.timeline[-1].count == 0
        assert stats.timeline[-2].count == 1

    def test_records_outside_window_are_not_in_timeline(self) -> None:
        """Test old records still count in totals but not the timeline."""
        record = self._record(datetime(2025, 1, 1, tzinfo=UTC))
        stats = build_history_stats([record], date(2025, 3, 14), ZoneInfo("UTC"))
        assert stats.total == 1
        assert sum(b.count for b in stats.timeline) == 0
