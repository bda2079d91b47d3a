"""Anthropic Claude completion adapter.

Sends the analysis prompt as a single user message and returns the joined
text blocks of the reply.
"""

from __future__ import annotations

import anthropic
import structlog

from ...config.schema import AnthropicConfig
from ...utils.async_helpers import CompletionError, RateLimitError, TimeoutError
from ...utils.logging import LogEventNames

log = structlog.get_logger()

# Maximum response length in characters
MAX_RESPONSE_LENGTH = 50000

SYSTEM_PROMPT = (
    "You are an expert software engineer who explains programming errors. "
    "You answer with a single JSON object and nothing else."
)


class AnthropicAdapter:
    """Anthropic adapter implementing the CompletionProvider protocol.

    Example:
        config = AnthropicConfig(api_key="sk-ant-...")
        adapter = AnthropicAdapter(config)
        text = await adapter.complete(prompt, temperature=0.7, max_output_tokens=2000)
    """

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key, max_retries=0)

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
        log.debug(
            LogEventNames.COMPLETION_REQUEST_START,
            provider="anthropic",
            model=self._config.model,
            prompt_length=len(prompt),
        )

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=max_output_tokens,
                temperature=min(temperature, 1.0),
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            log.warning("anthropic_rate_limit", error=str(e))
            raise RateLimitError(f"Anthropic rate limit exceeded: {e}") from e
        except anthropic.APITimeoutError as e:
            log.error("anthropic_timeout", error=str(e))
            raise TimeoutError(f"Anthropic request timed out: {e}") from e
        except anthropic.APIError as e:
            log.error("anthropic_api_error", error=str(e))
            raise CompletionError(f"Anthropic API error: {e}") from e

        response_text = ""
        for block in response.content:
            if hasattr(block, "text"):
                response_text += block.text

        if len(response_text) > MAX_RESPONSE_LENGTH:
            log.warning("anthropic_response_truncated", response_length=len(response_text))
            response_text = response_text[:MAX_RESPONSE_LENGTH]

        log.debug(
            LogEventNames.COMPLETION_REQUEST_COMPLETE,
            provider="anthropic",
            response_length=len(response_text),
        )
        return response_text

    async def close(self) -> None:
        """Close the underlying SDK client."""
        await self._client.close()
