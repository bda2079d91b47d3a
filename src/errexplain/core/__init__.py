"""Core pipeline components."""

from .extraction import ExtractionEngine, interpret_completion, parse_completion
from .language_classifier import (
    SUPPORTED_LANGUAGES,
    LanguageClassifier,
    check_language_mismatch,
    classify,
)
from .pipeline import (
    ErrorAnalysisPipeline,
    create_completion_provider,
    create_document_store,
    create_pipeline,
)
from .quota_ledger import QuotaLedger
from .submission_store import SubmissionStore, build_history_stats
from .votes import VoteService

__all__ = [
    "SUPPORTED_LANGUAGES",
    "ErrorAnalysisPipeline",
    "ExtractionEngine",
    "LanguageClassifier",
    "QuotaLedger",
    "SubmissionStore",
    "VoteService",
    "build_history_stats",
    "check_language_mismatch",
    "classify",
    "create_completion_provider",
    "create_document_store",
    "create_pipeline",
    "interpret_completion",
    "parse_completion",
]
