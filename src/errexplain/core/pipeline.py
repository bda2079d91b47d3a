"""Error analysis pipeline orchestrator.

``ErrorAnalysisPipeline`` is the single entry point for every caller-facing
operation. The analyze flow is:

1. Validate the request (before any external call)
2. Check the client's daily quota; stop if it is used up
3. Extract an analysis through the completion service (one attempt)
4. Persist the record
5. Commit one unit of quota; undo step 4 if the commit fails

Upstream failures abort the request with nothing persisted and no quota
spent. Degraded extractions still succeed and still count.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from errexplain.config.schema import AppConfig
from errexplain.core.extraction import ExtractionEngine
from errexplain.core.language_classifier import LanguageClassifier
from errexplain.core.quota_ledger import QuotaLedger
from errexplain.core.submission_store import SubmissionStore
from errexplain.core.votes import VoteService
from errexplain.models.analysis import DegradedAnalysis
from errexplain.models.submission import AnalyzeResult, HistoryResult, SharedSubmission, ShareLink
from errexplain.utils.async_helpers import ErrExplainError, NotFound, StoreError, ValidationError
from errexplain.utils.logging import LogEventNames, bind_context, unbind_context
from errexplain.utils.security import SecretRedactor, validate_token

if TYPE_CHECKING:
    from errexplain.interfaces.llm import CompletionProvider
    from errexplain.interfaces.store import DocumentStore
    from errexplain.models.usage import RateStatus
    from errexplain.models.vote import VoteTally

log = structlog.get_logger()


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


def _require_token(value: Any, name: str) -> str:
    value = _require_text(value, name)
    if not validate_token(value):
        raise ValidationError(f"{name} is malformed")
    return value


class ErrorAnalysisPipeline:
    """Caller-facing operations over the quota ledger, extraction and storage.

    Every operation takes the client token explicitly; the pipeline keeps no
    per-client state between calls.

    Example:
        pipeline = ErrorAnalysisPipeline(config, store, provider)
        result = await pipeline.analyze("TypeError: ...", "JavaScript", "client-1")
        print(result.remaining_quota)
    """

    def __init__(
        self,
        config: AppConfig,
        store: DocumentStore,
        provider: CompletionProvider,
        clock: Callable[[], datetime] | None = None,
        classifier: LanguageClassifier | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._provider = provider
        clock = clock or (lambda: datetime.now(UTC))
        collections = config.storage.collections

        self.ledger = QuotaLedger(store, config.quota, collections.usage, clock=clock)
        self.engine = ExtractionEngine(provider, config.analysis, SecretRedactor())
        self.submissions = SubmissionStore(
            store,
            config.analysis,
            collections.submissions,
            share_base_url=config.sharing.base_url,
            timezone=config.quota.timezone,
            clock=clock,
        )
        self.votes = VoteService(store, self.submissions, collections.votes)
        self.classifier = classifier or LanguageClassifier()

    @property
    def store(self) -> DocumentStore:
        """The document store shared by every component."""
        return self._store

    async def analyze(
        self,
        error_message: str,
        language: str,
        client_id: str,
        is_private: bool = False,
    ) -> AnalyzeResult:
        """Analyze one error for one client.

        Raises:
            ValidationError: On missing or malformed input.
            QuotaExceeded: If the client's daily quota is used up.
            UpstreamUnavailable: If the completion service or store fails.
        """
        error_message = _require_text(error_message, "errorMessage")
        language = _require_text(language, "language")
        client_id = _require_token(client_id, "clientId")
        min_length = self._config.analysis.min_error_length
        if len(error_message.strip()) < min_length:
            log.info(LogEventNames.INPUT_REJECTED, reason="too_short")
            raise ValidationError(f"Please enter at least {min_length} characters.")

        bind_context(client_id=client_id)
        start = time.monotonic()
        try:
            log.info(
                LogEventNames.ANALYSIS_STARTED,
                language=language[: self._config.analysis.max_language_length],
                error_length=len(error_message),
                is_private=is_private,
            )

            decision = await self.ledger.ensure_allowed(client_id)
            warning = self.classifier.check_language_mismatch(error_message, language)

            try:
                extracted = await self.engine.extract(error_message, language)
            except ErrExplainError as e:
                log.error(LogEventNames.ANALYSIS_FAILED, stage="extract", error=str(e))
                raise

            record = await self.submissions.create_submission(
                client_id,
                error_message,
                language,
                extracted.fields,
                is_private=is_private,
            )

            try:
                used = await self.ledger.commit(client_id, decision.date)
            except ErrExplainError as e:
                log.error(LogEventNames.ANALYSIS_FAILED, stage="commit", error=str(e))
                await self._rollback(record.id)
                raise

            log.info(
                LogEventNames.ANALYSIS_COMPLETE,
                submission_id=record.id,
                degraded=isinstance(extracted, DegradedAnalysis),
                used=used,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
            )
            return AnalyzeResult(
                id=record.id,
                share_id=record.share_id,
                explanation=record.explanation,
                causes=record.causes,
                solutions=record.solutions,
                category=record.category,
                severity=record.severity,
                example_code=record.example_code,
                remaining_quota=max(0, self.ledger.limit - used),
                degraded=isinstance(extracted, DegradedAnalysis),
                language_warning=warning,
            )
        finally:
            unbind_context("client_id")

    async def _rollback(self, submission_id: str) -> None:
        try:
            await self.submissions.discard(submission_id)
        except StoreError as e:
            # The commit error is the one surfaced to the caller
            log.error("submission_rollback_failed", submission_id=submission_id, error=str(e))

    async def rate_status(self, client_id: str) -> RateStatus:
        client_id = _require_token(client_id, "clientId")
        return await self.ledger.rate_status(client_id)

    async def history(self, client_id: str) -> HistoryResult:
        client_id = _require_token(client_id, "clientId")
        return await self.submissions.list_history(client_id)

    async def delete_submission(self, submission_id: str, client_id: str) -> None:
        submission_id = _require_token(submission_id, "id")
        client_id = _require_token(client_id, "clientId")
        await self.submissions.delete_submission(submission_id, client_id)

    async def share_submission(self, submission_id: str, client_id: str) -> ShareLink:
        submission_id = _require_token(submission_id, "id")
        client_id = _require_token(client_id, "clientId")
        return await self.submissions.share_submission(submission_id, client_id)

    async def shared_submission(self, share_id: str) -> SharedSubmission:
        share_id = _require_text(share_id, "shareId")
        if not validate_token(share_id):
            raise NotFound("Shared error not found")
        return await self.submissions.lookup_shared(share_id)

    async def vote(
        self,
        share_id: str,
        solution_index: int,
        user_fingerprint: str,
        vote_type: str,
    ) -> VoteTally:
        share_id = _require_text(share_id, "shareId")
        user_fingerprint = _require_token(user_fingerprint, "userFingerprint")
        vote_type = _require_text(vote_type, "voteType")
        if not validate_token(share_id):
            raise NotFound("Shared error not found")
        return await self.votes.vote(share_id, solution_index, user_fingerprint, vote_type)

    def check_language_mismatch(self, error_message: str, language: str) -> str | None:
        return self.classifier.check_language_mismatch(error_message, language)

    async def close(self) -> None:
        """Close the completion provider and the document store."""
        close_provider = getattr(self._provider, "close", None)
        if close_provider is not None:
            await close_provider()
        await self._store.close()


def create_document_store(
    config: AppConfig,
    clock: Callable[[], datetime] | None = None,
) -> DocumentStore:
    """Create a document store based on configuration.

    Raises:
        ValueError: If provider is not supported
    """
    provider = config.storage.provider

    if provider == "memory":
        from errexplain.adapters.store.memory import MemoryDocumentStore

        return MemoryDocumentStore(clock=clock)

    if provider == "sqlite":
        from errexplain.adapters.store.sqlite import SQLiteDocumentStore

        return SQLiteDocumentStore(config.storage.sqlite, clock=clock)

    raise ValueError(f"Unsupported storage provider: {provider}")


def create_completion_provider(config: AppConfig) -> CompletionProvider:
    """Create a completion provider based on configuration.

    Raises:
        ValueError: If provider is not supported or its section is missing
    """
    provider = config.llm.provider

    if provider == "groq":
        if not config.llm.groq:
            raise ValueError("Groq configuration required when provider is 'groq'")
        from errexplain.adapters.llm.groq import GroqAdapter

        return GroqAdapter(config.llm.groq)

    if provider == "anthropic":
        if not config.llm.anthropic:
            raise ValueError("Anthropic configuration required when provider is 'anthropic'")
        from errexplain.adapters.llm.anthropic import AnthropicAdapter

        return AnthropicAdapter(config.llm.anthropic)

    raise ValueError(f"Unsupported LLM provider: {provider}")


def create_pipeline(
    config: AppConfig,
    clock: Callable[[], datetime] | None = None,
) -> ErrorAnalysisPipeline:
    """Build a pipeline with the store and provider named in ``config``."""
    return ErrorAnalysisPipeline(
        config,
        create_document_store(config, clock=clock),
        create_completion_provider(config),
        clock=clock,
    )
