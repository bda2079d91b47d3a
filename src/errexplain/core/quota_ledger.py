"""Per-client daily usage quota.

The ledger counts completed analyses, not attempts: ``check_and_reserve``
runs before the completion call and ``commit`` only after the analysis has
been stored. A new (client, date) pair starts at zero simply because no
counter document exists for it yet.

In strict mode ``commit`` is an atomic increment-if-below-limit against the
store, so concurrent requests can never push a counter past the limit; the
request that loses the race gets ``QuotaExceeded`` at commit time. In soft
mode the increment is unconditional and overshoot by the degree of
concurrency is accepted.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from errexplain.config.schema import QuotaConfig
from errexplain.interfaces.store import DocumentStore
from errexplain.models.usage import QuotaDecision, RateStatus, UsageCounter
from errexplain.utils.async_helpers import QuotaExceeded
from errexplain.utils.logging import LogEventNames

log = structlog.get_logger()

USAGE_FIELD = "usageCount"


class QuotaLedger:
    """Tracks and enforces the daily analysis quota of each client."""

    def __init__(
        self,
        store: DocumentStore,
        config: QuotaConfig,
        collection: str = "daily_usage",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._collection = collection
        self._tz = ZoneInfo(config.timezone)
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def limit(self) -> int:
        return self._config.daily_limit

    def today(self, now: datetime | None = None) -> str:
        """ISO date of ``now`` in the ledger's timezone."""
        now = now or self._clock()
        return now.astimezone(self._tz).date().isoformat()

    def resets_at(self, now: datetime | None = None) -> datetime:
        """The next local midnight after ``now``, timezone-aware."""
        now = now or self._clock()
        local = now.astimezone(self._tz)
        next_day = local.date() + timedelta(days=1)
        return datetime(next_day.year, next_day.month, next_day.day, tzinfo=self._tz)

    async def get_counter(self, client_id: str, date: str) -> UsageCounter:
        """Read the counter; a missing document means zero usage."""
        docs = await self._store.list(
            self._collection,
            where={"clientId": client_id, "date": date},
            limit=1,
        )
        count = int(docs[0].get(USAGE_FIELD, 0)) if docs else 0
        return UsageCounter(client_id=client_id, date=date, usage_count=count)

    async def check_and_reserve(self, client_id: str, date: str | None = None) -> QuotaDecision:
        """Decide whether the client may start another analysis.

        Nothing is written. The decision pins the date so the later
        ``commit`` counts against the same day even across midnight.
        """
        now = self._clock()
        date = date or self.today(now)
        counter = await self.get_counter(client_id, date)
        decision = QuotaDecision(
            allowed=counter.usage_count < self.limit,
            usage_count=counter.usage_count,
            limit=self.limit,
            date=date,
            resets_at=self.resets_at(now),
        )
        log.debug(
            LogEventNames.QUOTA_CHECKED,
            date=date,
            used=decision.usage_count,
            limit=decision.limit,
            allowed=decision.allowed,
        )
        return decision

    async def ensure_allowed(self, client_id: str) -> QuotaDecision:
        """Like ``check_and_reserve`` but raises ``QuotaExceeded`` on denial."""
        decision = await self.check_and_reserve(client_id)
        if not decision.allowed:
            log.info(LogEventNames.QUOTA_EXCEEDED, used=decision.usage_count, limit=decision.limit)
            raise QuotaExceeded(
                f"Daily limit of {decision.limit} analyses reached. Try again tomorrow!",
                limit=decision.limit,
                used=decision.usage_count,
                resets_at=decision.resets_at,
            )
        return decision

    async def commit(self, client_id: str, date: str) -> int:
        """Record one completed analysis for (client, date).

        Returns:
            The new usage count.

        Raises:
            QuotaExceeded: In strict mode, if the counter reached the limit
                since the check (a concurrent request won the race).
            StoreError: If the counter cannot be written.
        """
        ceiling = self.limit if self._config.strict else None
        new_count = await self._store.increment(
            self._collection,
            where={"clientId": client_id, "date": date},
            field=USAGE_FIELD,
            amount=1,
            ceiling=ceiling,
        )

        if new_count is None:
            log.warning(LogEventNames.QUOTA_COMMIT_DENIED, date=date, limit=self.limit)
            raise QuotaExceeded(
                f"Daily limit of {self.limit} analyses reached. Try again tomorrow!",
                limit=self.limit,
                used=self.limit,
                resets_at=self.resets_at(),
            )

        log.debug(LogEventNames.QUOTA_COMMITTED, date=date, used=new_count, limit=self.limit)
        return new_count

    async def rate_status(self, client_id: str) -> RateStatus:
        """Current usage as reported to callers. Tolerates counters above the limit."""
        now = self._clock()
        counter = await self.get_counter(client_id, self.today(now))
        used = counter.usage_count
        return RateStatus(
            used=used,
            remaining=max(0, self.limit - used),
            limit=self.limit,
            can_analyze=used < self.limit,
            resets_at=self.resets_at(now),
        )
