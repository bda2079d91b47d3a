"""Abstract interface for completion service integrations."""

from typing import Protocol


class CompletionProvider(Protocol):
    """Abstract interface for a text completion service.

    Adapters (Groq, Anthropic) make exactly one request per call. Retrying
    is the caller's decision; the analysis pipeline never retries.
    """

    @property
    def model_name(self) -> str:
        """Return the model identifier being used."""
        ...

    async def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """
        Send one prompt and return the raw completion text.

        Security: The prompt MUST already be redacted using SecretRedactor.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature
            max_output_tokens: Upper bound on generated tokens

        Returns:
            Completion text. Untrusted and not guaranteed to be JSON.

        Raises:
            RateLimitError: If the provider rate limited the request
            TimeoutError: If the request timed out
            CompletionError: For any other transport or API failure
        """
        ...
