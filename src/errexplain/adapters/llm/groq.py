"""Groq completion adapter.

Talks to Groq's OpenAI-compatible ``/chat/completions`` endpoint over httpx.
One HTTP request per call; retries are not attempted here.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ...config.schema import GroqConfig
from ...utils.async_helpers import CompletionError, RateLimitError, TimeoutError
from ...utils.logging import LogEventNames

log = structlog.get_logger()

# Maximum completion length in characters
MAX_RESPONSE_LENGTH = 50000


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return max(0, int(float(value)))
    except ValueError:
        return None


class GroqAdapter:
    """Groq adapter implementing the CompletionProvider protocol.

    Example:
        config = GroqConfig(api_key="gsk_...")
        adapter = GroqAdapter(config)
        text = await adapter.complete(prompt, temperature=0.7, max_output_tokens=2000)
    """

    def __init__(
        self,
        config: GroqConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Groq adapter.

        Args:
            config: Groq-specific configuration.
            client: HTTP client to use. If None, one is created and owned
                by the adapter.
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        return self._config.model

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        payload: dict[str, Any] = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
            "stream": False,
        }
        headers = {"Authorization": f"Bearer {self._config.api_key}"}

        log.debug(
            LogEventNames.COMPLETION_REQUEST_START,
            provider="groq",
            model=self._config.model,
            prompt_length=len(prompt),
        )

        try:
            response = await self._client.post(
                f"{self._config.base_url}/chat/completions",
                json=payload,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            log.error("groq_timeout", error=str(e))
            raise TimeoutError(f"Groq request timed out: {e}") from e
        except httpx.HTTPError as e:
            log.error("groq_transport_error", error=str(e))
            raise CompletionError(f"Groq request failed: {e}") from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("retry-after"))
            log.warning("groq_rate_limit", retry_after=retry_after)
            raise RateLimitError("Groq rate limit exceeded", retry_after=retry_after)

        if response.status_code >= 400:
            log.error("groq_api_error", status_code=response.status_code)
            raise CompletionError(f"Groq API error: HTTP {response.status_code}")

        try:
            body = response.json()
            text = body["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionError(f"Unexpected Groq response shape: {e}") from e

        if not isinstance(text, str):
            raise CompletionError("Groq completion content is not text")
        if len(text) > MAX_RESPONSE_LENGTH:
            log.warning("groq_response_truncated", response_length=len(text))
            text = text[:MAX_RESPONSE_LENGTH]

        log.debug(
            LogEventNames.COMPLETION_REQUEST_COMPLETE,
            provider="groq",
            response_length=len(text),
        )
        return text

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()
