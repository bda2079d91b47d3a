"""Document store adapters."""

from .memory import MemoryDocumentStore
from .sqlite import SQLiteDocumentStore

__all__ = ["MemoryDocumentStore", "SQLiteDocumentStore"]
