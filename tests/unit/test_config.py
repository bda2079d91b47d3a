"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from errexplain.config.loader import load_config, substitute_env_vars, validate_config
from errexplain.config.schema import (
    AnalysisConfig,
    AppConfig,
    CollectionsConfig,
    GroqConfig,
    LLMConfig,
    QuotaConfig,
    SharingConfig,
    StorageConfig,
)

EXAMPLE_CONFIG = Path(__file__).parents[2] / "config" / "config.example.yaml"


class TestSubstituteEnvVars:
    """Test environment variable substitution."""

    def test_substitute_single_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting a single environment variable."""
        monkeypatch.setenv("TEST_VAR", "test_value")
        assert substitute_env_vars("Value is ${TEST_VAR}") == "Value is test_value"

    def test_substitute_multiple_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test substituting multiple environment variables."""
        monkeypatch.setenv("VAR1", "value1")
        monkeypatch.setenv("VAR2", "value2")
        assert substitute_env_vars("${VAR1} and ${VAR2}") == "value1 and value2"

    def test_missing_env_var_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that missing environment variables raise ValueError."""
        monkeypatch.delenv("MISSING", raising=False)
        with pytest.raises(ValueError, match="Environment variable MISSING not found"):
            substitute_env_vars("Value is ${MISSING}")

    def test_no_substitution_needed(self) -> None:
        """Test text without environment variables passes through unchanged."""
        assert substitute_env_vars("plain text without vars") == "plain text without vars"

    def test_comment_lines_are_not_substituted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test references inside full-line comments are left alone."""
        monkeypatch.delenv("UNSET_IN_COMMENT", raising=False)
        monkeypatch.setenv("TEST_VAR", "test_value")
        text = "# uses ${UNSET_IN_COMMENT}\n  # ${UNSET_IN_COMMENT}\nkey: ${TEST_VAR}\n"
        assert substitute_env_vars(text) == (
            "# uses ${UNSET_IN_COMMENT}\n  # ${UNSET_IN_COMMENT}\nkey: test_value\n"
        )


class TestGroqConfig:
    """Test GroqConfig validation."""

    def test_defaults(self) -> None:
        """Test default model and endpoint."""
        config = GroqConfig(api_key="gsk_x")
        assert config.model == "llama-3.3-70b-versatile"
        assert config.base_url == "https://api.groq.com/openai/v1"

    def test_trailing_slash_removed(self) -> None:
        """Test the base URL is normalized."""
        assert GroqConfig(api_key="k", base_url="http://localhost:8080/v1/").base_url == (
            "http://localhost:8080/v1"
        )

    def test_invalid_base_url(self) -> None:
        """Test a non-HTTP base URL is rejected."""
        with pytest.raises(ValidationError, match="Invalid base_url"):
            GroqConfig(api_key="k", base_url="ftp://example.com")


class TestQuotaConfig:
    """Test QuotaConfig validation."""

    def test_defaults(self) -> None:
        """Test default limit, timezone and strict mode."""
        config = QuotaConfig()
        assert config.daily_limit == 5
        assert config.timezone == "UTC"
        assert config.strict is True

    def test_unknown_timezone(self) -> None:
        """Test unknown timezone names are rejected."""
        with pytest.raises(ValidationError, match="Unknown timezone"):
            QuotaConfig(timezone="Mars/Olympus_Mons")

    def test_limit_must_be_positive(self) -> None:
        """Test a zero limit is rejected."""
        with pytest.raises(ValidationError):
            QuotaConfig(daily_limit=0)


class TestAnalysisConfig:
    """Test AnalysisConfig validation."""

    def test_defaults(self) -> None:
        """Test the default limits."""
        config = AnalysisConfig()
        assert config.max_error_length == 10_000
        assert config.max_items == 5
        assert config.temperature == 0.7
        assert config.max_output_tokens == 2_000
        assert config.redact_secrets is True

    @pytest.mark.parametrize(
        "overrides",
        [{"temperature": 2.5}, {"max_output_tokens": 50}, {"completion_timeout": 0}],
    )
    def test_out_of_range(self, overrides: dict[str, float]) -> None:
        """Test out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            AnalysisConfig(**overrides)


class TestSharingConfig:
    """Test SharingConfig validation."""

    def test_trailing_slash_removed(self) -> None:
        """Test the share base URL is normalized."""
        assert SharingConfig(base_url="https://example.com/").base_url == "https://example.com"


class TestAppConfig:
    """Test AppConfig defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Test sections other than llm have defaults."""
        config = AppConfig(llm=LLMConfig(provider="groq", groq=GroqConfig(api_key="k")))
        assert config.storage.provider == "sqlite"
        assert config.storage.collections.submissions == "error_submissions"
        assert config.logging.format == "json"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested settings can be set through prefixed environment variables."""
        monkeypatch.setenv("ERREXPLAIN_QUOTA__DAILY_LIMIT", "9")
        config = AppConfig(llm=LLMConfig(provider="groq", groq=GroqConfig(api_key="k")))
        assert config.quota.daily_limit == 9

    def test_unknown_provider(self) -> None:
        """Test an unsupported provider name is rejected."""
        with pytest.raises(ValidationError):
            LLMConfig(provider="openai")  # type: ignore[arg-type]


class TestLoadConfig:
    """Test load_config()."""

    def test_load_valid_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading a valid configuration file."""
        monkeypatch.setenv("TEST_GROQ_KEY", "gsk_from_env")
        path = tmp_path / "config.yaml"
        path.write_text(
            """
llm:
  provider: groq
  groq:
    api_key: ${TEST_GROQ_KEY}
storage:
  provider: memory
quota:
  daily_limit: 3
  timezone: Europe/Berlin
"""
        )

        config = load_config(path)

        assert config.llm.groq is not None
        assert config.llm.groq.api_key == "gsk_from_env"
        assert config.storage.provider == "memory"
        assert config.quota.daily_limit == 3
        assert config.quota.timezone == "Europe/Berlin"

    def test_load_example_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the shipped example configuration is valid."""
        monkeypatch.setenv("GROQ_API_KEY", "gsk_example")
        config = load_config(EXAMPLE_CONFIG)
        assert config.llm.provider == "groq"
        assert config.storage.sqlite.path == Path("data/errexplain.db")

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unset variable is a ValueError."""
        monkeypatch.delenv("UNSET_KEY_FOR_TEST", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  provider: groq\n  groq:\n    api_key: ${UNSET_KEY_FOR_TEST}\n")
        with pytest.raises(ValueError, match="UNSET_KEY_FOR_TEST"):
            load_config(path)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        """Test a YAML list at the root is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_config(path)

    def test_schema_error(self, tmp_path: Path) -> None:
        """Test schema violations surface as pydantic ValidationError."""
        path = tmp_path / "config.yaml"
        path.write_text("storage:\n  provider: memory\n")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_missing_provider_section(self, tmp_path: Path) -> None:
        """Test selecting a provider without its section is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  provider: anthropic\n")
        with pytest.raises(ValueError, match="anthropic config missing"):
            load_config(path)


class TestValidateConfig:
    """Test validate_config()."""

    def test_duplicate_collection_names(self) -> None:
        """Test collection names must be distinct."""
        config = AppConfig(
            llm=LLMConfig(provider="groq", groq=GroqConfig(api_key="k")),
            storage=StorageConfig(collections=CollectionsConfig(usage="error_submissions")),
        )
        with pytest.raises(ValueError, match="distinct"):
            validate_config(config)
