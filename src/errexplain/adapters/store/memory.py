"""In-process document store.

Keeps every collection in a dictionary guarded by a single ``asyncio.Lock``.
Used by tests and for single-process runs where nothing needs to persist.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from ...interfaces.store import Document
from ...utils.async_helpers import DocumentNotFoundError, StoreError

log = structlog.get_logger()

RESERVED_FIELDS = ("id", "createdAt")


def _matches(doc: Document, where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(k in doc and doc[k] == v for k, v in where.items())


class MemoryDocumentStore:
    """Document store implementing the DocumentStore protocol in memory.

    Documents are deep-copied on the way in and out, so callers never share
    mutable state with the store. Ties in ``order_by`` fall back to
    insertion order.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._collections: dict[str, dict[str, Document]] = {}
        self._sequence: dict[tuple[str, str], int] = {}
        self._next_seq = 0
        self._lock = asyncio.Lock()
        self._closed = False

    def _bucket(self, collection: str) -> dict[str, Document]:
        if self._closed:
            raise StoreError("Store is closed")
        return self._collections.setdefault(collection, {})

    def _insert(self, collection: str, data: Document, doc_id: str | None) -> Document:
        bucket = self._bucket(collection)
        doc_id = doc_id or uuid.uuid4().hex
        if doc_id in bucket:
            raise StoreError(f"Document {doc_id} already exists in {collection}")

        doc = {k: copy.deepcopy(v) for k, v in data.items() if k not in RESERVED_FIELDS}
        doc["id"] = doc_id
        doc["createdAt"] = self._clock().isoformat()
        bucket[doc_id] = doc

        self._sequence[(collection, doc_id)] = self._next_seq
        self._next_seq += 1
        return doc

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def list(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        async with self._lock:
            docs = [d for d in self._bucket(collection).values() if _matches(d, where)]

            def sort_key(doc: Document) -> tuple[Any, ...]:
                seq = self._sequence[(collection, doc["id"])]
                if order_by is None:
                    return (False, 0, seq)
                value = doc.get(order_by)
                return (value is None, value if value is not None else 0, seq)

            docs.sort(key=sort_key, reverse=descending)
            if limit is not None:
                docs = docs[:limit]
            return copy.deepcopy(docs)

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        async with self._lock:
            return sum(1 for d in self._bucket(collection).values() if _matches(d, where))

    async def create(
        self,
        collection: str,
        data: Document,
        doc_id: str | None = None,
    ) -> Document:
        async with self._lock:
            return copy.deepcopy(self._insert(collection, data, doc_id))

    async def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {doc_id} not found in {collection}")
            for k, v in changes.items():
                if k not in RESERVED_FIELDS:
                    doc[k] = copy.deepcopy(v)
            return copy.deepcopy(doc)

    async def upsert(self, collection: str, doc_id: str, data: Document) -> Document:
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None:
                return copy.deepcopy(self._insert(collection, data, doc_id))
            for k, v in data.items():
                if k not in RESERVED_FIELDS:
                    doc[k] = copy.deepcopy(v)
            return copy.deepcopy(doc)

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            removed = self._bucket(collection).pop(doc_id, None)
            self._sequence.pop((collection, doc_id), None)
            return removed is not None

    async def increment(
        self,
        collection: str,
        where: dict[str, Any],
        field: str,
        amount: int = 1,
        ceiling: int | None = None,
    ) -> int | None:
        async with self._lock:
            bucket = self._bucket(collection)
            matching = [d for d in bucket.values() if _matches(d, where)]
            if matching:
                doc = min(matching, key=lambda d: self._sequence[(collection, d["id"])])
            else:
                doc = None

            current = int(doc.get(field, 0)) if doc is not None else 0
            if ceiling is not None and current >= ceiling:
                return None

            if doc is None:
                doc = self._insert(collection, {**where, field: 0}, None)
            doc[field] = current + amount
            return int(doc[field])

    async def ping(self) -> None:
        if self._closed:
            raise StoreError("Store is closed")

    async def close(self) -> None:
        self._closed = True
        log.debug("memory_store_closed", collections=len(self._collections))
