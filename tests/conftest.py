"""Shared test fixtures for ErrExplain."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import structlog

from errexplain.adapters.store.memory import MemoryDocumentStore
from errexplain.config.schema import AppConfig, GroqConfig, LLMConfig, StorageConfig
from errexplain.core.pipeline import ErrorAnalysisPipeline

JS_ERROR = "TypeError: Cannot read properties of undefined (reading 'map') at App.js:10"

VALID_ANALYSIS: dict[str, Any] = {
    "explanation": "The code calls .map on a value that is undefined.",
    "causes": [
        "The data has not loaded yet",
        "The API returned an unexpected shape",
        "A prop was not passed down",
    ],
    "solutions": [
        "Initialize the state with an empty array",
        "Guard the call with optional chaining",
        "Validate the API response before rendering",
    ],
    "category": "Runtime Error",
    "severity": "high",
    "exampleCode": "const items = undefined;\nitems.map(x => x);",
}


class FixedClock:
    """A controllable clock returning timezone-aware datetimes."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedProvider:
    """Completion provider that replays scripted replies or raises scripted errors."""

    def __init__(self, replies: Sequence[str | BaseException] = ()) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.calls: list[dict[str, Any]] = []
        self.default_reply = json.dumps(VALID_ANALYSIS)

    @property
    def model_name(self) -> str:
        return "scripted-model"

    async def complete(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        self.prompts.append(prompt)
        self.calls.append({"temperature": temperature, "max_output_tokens": max_output_tokens})
        reply = self.replies.pop(0) if self.replies else self.default_reply
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at midday UTC on a Friday."""
    return FixedClock(datetime(2025, 3, 14, 12, 0, tzinfo=UTC))


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration using the in-memory store and a Groq provider section."""
    return AppConfig(
        llm=LLMConfig(provider="groq", groq=GroqConfig(api_key="gsk_test_key")),
        storage=StorageConfig(provider="memory"),
    )


@pytest.fixture
def memory_store(clock: FixedClock) -> MemoryDocumentStore:
    """In-memory document store stamped by the fixed clock."""
    return MemoryDocumentStore(clock=clock)


@pytest.fixture
def provider() -> ScriptedProvider:
    """Completion provider returning a valid analysis by default."""
    return ScriptedProvider()


@pytest.fixture
def pipeline(
    app_config: AppConfig,
    memory_store: MemoryDocumentStore,
    provider: ScriptedProvider,
    clock: FixedClock,
) -> ErrorAnalysisPipeline:
    """Pipeline wired to the in-memory store and scripted provider."""
    return ErrorAnalysisPipeline(app_config, memory_store, provider, clock=clock)


@pytest.fixture
def make_provider() -> type[ScriptedProvider]:
    """Factory for scripted providers with custom replies."""
    return ScriptedProvider


@pytest.fixture
def valid_analysis() -> dict[str, Any]:
    """A well-formed completion payload."""
    return json.loads(json.dumps(VALID_ANALYSIS))


@pytest.fixture
def js_error() -> str:
    """A JavaScript runtime error."""
    return JS_ERROR


@pytest.fixture
def make_clock() -> type[FixedClock]:
    """Factory for clocks fixed at a custom instant."""
    return FixedClock


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop logging handlers and bound context installed by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()
