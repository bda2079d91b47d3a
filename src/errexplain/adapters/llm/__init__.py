"""Completion service adapters."""

from .anthropic import AnthropicAdapter
from .groq import GroqAdapter

__all__ = ["AnthropicAdapter", "GroqAdapter"]
