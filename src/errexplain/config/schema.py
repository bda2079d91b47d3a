"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GroqConfig(BaseModel):
    """Groq (OpenAI-compatible chat completions) configuration."""

    api_key: str
    model: str = "llama-3.3-70b-versatile"
    base_url: str = "https://api.groq.com/openai/v1"
    timeout: float = Field(60.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Invalid base_url: {v}. Expected an http(s) URL")
        return v.rstrip("/")


class AnthropicConfig(BaseModel):
    """Anthropic-specific configuration."""

    api_key: str
    model: str = "claude-3-5-haiku-20241022"


class LLMConfig(BaseModel):
    """Completion service configuration."""

    provider: Literal["groq", "anthropic"]
    groq: GroqConfig | None = None
    anthropic: AnthropicConfig | None = None


class SQLiteConfig(BaseModel):
    """SQLite document store configuration."""

    path: Path = Path("errexplain.db")
    busy_timeout: float = Field(5.0, ge=0.0, description="Seconds to wait on a locked database")


class CollectionsConfig(BaseModel):
    """Names of the typed document collections."""

    submissions: str = "error_submissions"
    usage: str = "daily_usage"
    votes: str = "solution_votes"


class StorageConfig(BaseModel):
    """Document store configuration."""

    provider: Literal["memory", "sqlite"] = "sqlite"
    sqlite: SQLiteConfig = SQLiteConfig()
    collections: CollectionsConfig = CollectionsConfig()


class QuotaConfig(BaseModel):
    """Per-client daily quota configuration."""

    daily_limit: int = Field(5, ge=1)
    timezone: str = "UTC"
    strict: bool = Field(
        True,
        description="Commit with an atomic increment-if-below-limit instead of read-then-write",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the IANA timezone name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class AnalysisConfig(BaseModel):
    """Extraction and record normalization limits."""

    max_error_length: int = Field(10_000, ge=1)
    max_language_length: int = Field(50, ge=1)
    max_explanation_length: int = Field(5_000, ge=1)
    max_cause_length: int = Field(500, ge=1)
    max_solution_length: int = Field(2_000, ge=1)
    max_example_code_length: int = Field(5_000, ge=1)
    max_items: int = Field(5, ge=1, le=20)
    min_error_length: int = Field(8, ge=1)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(2_000, ge=100, le=8_192)
    completion_timeout: float = Field(60.0, gt=0, le=600)
    history_limit: int = Field(100, ge=1, le=1_000)
    redact_secrets: bool = True


class SharingConfig(BaseModel):
    """Public share link configuration."""

    base_url: str = "http://localhost:3000"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL."""
        return v.rstrip("/")


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/errexplain/errexplain.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class AppConfig(BaseSettings):
    """Root configuration for ErrExplain."""

    llm: LLMConfig
    storage: StorageConfig = StorageConfig()
    quota: QuotaConfig = QuotaConfig()
    analysis: AnalysisConfig = AnalysisConfig()
    sharing: SharingConfig = SharingConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="ERREXPLAIN_",
        env_file=".env",
        env_nested_delimiter="__",
    )
