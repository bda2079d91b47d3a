"""Helpful / not-helpful votes on the solutions of shared analyses."""

from __future__ import annotations

import hashlib

import structlog

from errexplain.core.submission_store import SubmissionStore
from errexplain.interfaces.store import DocumentStore
from errexplain.models.vote import VoteRecord, VoteTally, VoteType
from errexplain.utils.async_helpers import ValidationError
from errexplain.utils.logging import LogEventNames

log = structlog.get_logger()


def vote_document_id(share_id: str, solution_index: int, user_fingerprint: str) -> str:
    """Deterministic id for the (share, solution, fingerprint) triple."""
    key = f"{share_id}\x1f{solution_index}\x1f{user_fingerprint}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def parse_vote_type(value: str) -> VoteType:
    try:
        return VoteType(value)
    except ValueError as e:
        raise ValidationError("Invalid vote type") from e


class VoteService:
    """Records votes and computes tallies by counting vote documents.

    Each (share, solution, fingerprint) triple maps to one document id, so a
    repeat vote overwrites ``voteType`` instead of adding a document.
    Concurrent votes from one fingerprint are last-writer-wins.
    """

    def __init__(
        self,
        store: DocumentStore,
        submissions: SubmissionStore,
        collection: str = "solution_votes",
    ) -> None:
        self._store = store
        self._submissions = submissions
        self._collection = collection

    async def vote(
        self,
        share_id: str,
        solution_index: int,
        user_fingerprint: str,
        vote_type: str,
    ) -> VoteTally:
        """Record a vote and return the updated tally for that solution.

        Raises:
            ValidationError: On an unknown vote type or an out-of-range index.
            NotFound: If the share id is not publicly visible.
        """
        parsed_type = parse_vote_type(vote_type)
        if isinstance(solution_index, bool) or not isinstance(solution_index, int):
            raise ValidationError("solutionIndex must be an integer")

        record = await self._submissions.find_visible(share_id)
        if not 0 <= solution_index < len(record.solutions):
            raise ValidationError(
                f"solutionIndex must be between 0 and {len(record.solutions) - 1}"
            )

        vote = VoteRecord(
            share_id=share_id,
            solution_index=solution_index,
            user_fingerprint=user_fingerprint,
            vote_type=parsed_type,
        )
        await self._store.upsert(
            self._collection,
            vote_document_id(share_id, solution_index, user_fingerprint),
            {
                "shareId": vote.share_id,
                "solutionIndex": vote.solution_index,
                "userFingerprint": vote.user_fingerprint,
                "voteType": vote.vote_type.value,
            },
        )

        tally = await self.tally(share_id, solution_index)
        log.info(
            LogEventNames.VOTE_RECORDED,
            solution_index=solution_index,
            vote_type=parsed_type.value,
            helpful=tally.helpful,
            not_helpful=tally.not_helpful,
        )
        return tally

    async def tally(self, share_id: str, solution_index: int) -> VoteTally:
        """Count the stored votes for one solution."""
        where = {"shareId": share_id, "solutionIndex": solution_index}
        helpful = await self._store.count(
            self._collection, {**where, "voteType": VoteType.HELPFUL.value}
        )
        not_helpful = await self._store.count(
            self._collection, {**where, "voteType": VoteType.NOT_HELPFUL.value}
        )
        return VoteTally(helpful=helpful, not_helpful=not_helpful)
