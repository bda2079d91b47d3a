"""Secret redaction and token validation.

Error messages pasted by users routinely carry credentials (connection
strings, API keys, bearer tokens). Everything sent to the completion service
and everything written to the log goes through ``SecretRedactor`` first.

Redaction is fail-closed: if a pattern fails to compile or execute, the
operation raises instead of passing the text through.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from errexplain.utils.async_helpers import ErrExplainError

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(ErrExplainError):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


# Opaque client tokens and vote fingerprints
MAX_TOKEN_LENGTH = 128
TOKEN_PATTERN = re.compile(r"^[\w.:@-]+$")


class SecretRedactor:
    """Detects and redacts secrets from text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(pasted_error)

    Attributes:
        placeholder: The string secrets are replaced with.
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        (
            r"(?i)(api[_-]?key|secret|token|password|passwd|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret assignment",
        ),
        (r"(?i)authorization:\s*bearer\s+[\w.~+/-]+=*", "Bearer token header"),
        (r"sk-ant-[\w-]{40,}", "Anthropic API key"),
        (r"sk-proj-[a-zA-Z0-9_-]{20,}", "OpenAI project API key"),
        (r"sk-[a-zA-Z0-9]{48}", "OpenAI legacy API key"),
        (r"gsk_[a-zA-Z0-9]{40,}", "Groq API key"),
        (r"gh[pousr]_[a-zA-Z0-9]{36}", "GitHub token"),
        (r"github_pat_[a-zA-Z0-9_]{22,}", "GitHub fine-grained PAT"),
        (r"xox[baprs]-[\w-]+", "Slack token"),
        (r"AKIA[0-9A-Z]{16}", "AWS access key ID"),
        (r"AIza[0-9A-Za-z\-_]{35}", "Google API key"),
        (r"sk_live_[a-zA-Z0-9]{24,}", "Stripe secret key"),
        (
            r"(?i)(postgres(?:ql)?|mysql|mariadb|mongodb(?:\+srv)?|redis|amqp)"
            r"://[^:\s]+:[^@\s]+@[^\s]+",
            "Database connection string",
        ),
        (r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY(?: BLOCK)?-----", "Private key"),
        (r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*", "JWT token"),
        (r"\b10\.\d{1,3}\.\d{1,3}\.\d{1,3}\b", "Private IP (10.x.x.x)"),
        (r"\b172\.(1[6-9]|2\d|3[01])\.\d{1,3}\.\d{1,3}\b", "Private IP (172.16-31.x.x)"),
        (r"\b192\.168\.\d{1,3}\.\d{1,3}\b", "Private IP (192.168.x.x)"),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        for pattern_str, name in all_patterns:
            try:
                self._pattern_names[re.compile(pattern_str)] = name
            except re.error as e:
                log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
                raise RedactionError(f"Failed to compile secret pattern '{name}': {e}") from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names)

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False

        try:
            return any(pattern.search(text) for pattern in self._pattern_names)
        except Exception as e:
            log.error("has_secrets_check_failed", error=str(e))
            raise RedactionError(f"Secret check failed: {e}") from e


def validate_token(token: str | None) -> bool:
    """Validate a client token or vote fingerprint.

    Tokens are self-declared and unauthenticated; this only bounds their
    shape so they are safe to use as lookup keys and log fields.

    Args:
        token: Candidate token.

    Returns:
        True if the token is non-empty, bounded and made of safe characters.
    """
    if not token or len(token) > MAX_TOKEN_LENGTH:
        return False
    return bool(TOKEN_PATTERN.fullmatch(token))


def sanitize_for_logging(text: str, max_length: int = 200) -> str:
    """Strip ANSI escapes and control characters and bound the length.

    Args:
        text: The text to sanitize.
        max_length: Maximum number of characters kept.

    Returns:
        A single-line-safe preview of the text.
    """
    if not text:
        return text

    text = re.sub(r"\x1b\[[0-9;]*m", "", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)

    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


def mask_config_value(key: str, value: str) -> str:
    """Mask sensitive config values for logging and health output.

    Args:
        key: The configuration key name.
        value: The configuration value.

    Returns:
        The masked value if the key indicates sensitivity, otherwise the original.
    """
    sensitive_keys = {"token", "key", "secret", "password", "credential"}

    if any(s in key.lower() for s in sensitive_keys):
        if len(value) > 8:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    return value
