"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    AnalysisConfig,
    AnthropicConfig,
    AppConfig,
    CollectionsConfig,
    GroqConfig,
    LLMConfig,
    LoggingConfig,
    QuotaConfig,
    SharingConfig,
    SQLiteConfig,
    StorageConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "AppConfig",
    # Top-level configs
    "LLMConfig",
    "StorageConfig",
    "QuotaConfig",
    "AnalysisConfig",
    "SharingConfig",
    "LoggingConfig",
    # Provider-specific configs
    "GroqConfig",
    "AnthropicConfig",
    "SQLiteConfig",
    "CollectionsConfig",
]
