"""Concrete implementations of collaborator interfaces."""

from .llm.anthropic import AnthropicAdapter
from .llm.groq import GroqAdapter
from .store.memory import MemoryDocumentStore
from .store.sqlite import SQLiteDocumentStore

__all__ = [
    "AnthropicAdapter",
    "GroqAdapter",
    "MemoryDocumentStore",
    "SQLiteDocumentStore",
]
