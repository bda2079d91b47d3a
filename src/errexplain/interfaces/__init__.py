"""Abstract interfaces for external collaborators."""

from .llm import CompletionProvider
from .store import Document, DocumentStore

__all__ = [
    "CompletionProvider",
    "Document",
    "DocumentStore",
]
