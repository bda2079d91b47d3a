"""Utility functions and helpers.

- async_helpers: Exception taxonomy, retry and timeout helpers
- security: Secret redaction, token validation
- logging: Structured logging with secret sanitization
- health: Health check utilities
"""

from errexplain.utils.async_helpers import (
    CompletionError,
    DocumentNotFoundError,
    ErrExplainError,
    NotFound,
    QuotaExceeded,
    RateLimitError,
    StoreError,
    TimeoutError,
    Unauthorized,
    UpstreamUnavailable,
    ValidationError,
)
from errexplain.utils.health import (
    HealthChecker,
    HealthReport,
    HealthStatus,
)
from errexplain.utils.logging import (
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from errexplain.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
    validate_token,
)

__all__ = [
    # Errors
    "CompletionError",
    "DocumentNotFoundError",
    "ErrExplainError",
    "NotFound",
    "QuotaExceeded",
    "RateLimitError",
    "StoreError",
    "TimeoutError",
    "Unauthorized",
    "UpstreamUnavailable",
    "ValidationError",
    # Health
    "HealthChecker",
    "HealthReport",
    "HealthStatus",
    # Logging
    "LogFormat",
    "LogLevel",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "unbind_context",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "validate_token",
]
