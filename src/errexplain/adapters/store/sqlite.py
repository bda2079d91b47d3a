"""SQLite-backed document store.

All collections share one ``documents`` table; each row holds a document as
JSON. Equality predicates and ordering use ``json_extract``. Every operation
opens its own connection, and read-modify-write operations run inside
``BEGIN IMMEDIATE`` so concurrent writers (threads or processes) serialize
on the database lock.
"""

from __future__ import annotations

import asyncio
import json
import re
import sqlite3
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ParamSpec, TypeVar

import structlog

from ...config.schema import SQLiteConfig
from ...interfaces.store import Document
from ...utils.async_helpers import DocumentNotFoundError, StoreError, create_retry

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")

RESERVED_FIELDS = ("id", "createdAt")
FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (collection, id)
)
"""

# Locked-database errors are transient; each retried call is one whole transaction
_retry_locked = create_retry(retry_on=(sqlite3.OperationalError,), max_attempts=3)


def _field_expr(field: str) -> str:
    if field == "id":
        return "id"
    if field == "createdAt":
        return "created_at"
    if not FIELD_NAME.match(field):
        raise StoreError(f"Invalid field name: {field!r}")
    return f"json_extract(data, '$.{field}')"


def _where_clause(collection: str, where: dict[str, Any] | None) -> tuple[str, list[Any]]:
    conditions = ["collection = ?"]
    params: list[Any] = [collection]
    for field, value in (where or {}).items():
        expr = _field_expr(field)
        if value is None:
            conditions.append(f"{expr} IS NULL")
        else:
            conditions.append(f"{expr} = ?")
            params.append(value)
    return " AND ".join(conditions), params


def _strip_reserved(data: Document) -> Document:
    return {k: v for k, v in data.items() if k not in RESERVED_FIELDS}


class SQLiteDocumentStore:
    """Document store implementing the DocumentStore protocol on SQLite.

    Example:
        store = SQLiteDocumentStore(SQLiteConfig(path=Path("errexplain.db")))
        doc = await store.create("error_submissions", {"clientId": "abc"})
    """

    def __init__(
        self,
        config: SQLiteConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Open (and if needed create) the database file.

        Args:
            config: SQLite configuration.
            clock: Source of ``createdAt`` timestamps.

        Raises:
            StoreError: If the database cannot be initialized.
        """
        self._path = Path(config.path)
        self._busy_timeout = config.busy_timeout
        self._clock = clock or (lambda: datetime.now(UTC))
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                conn.execute(SCHEMA)
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as e:
            raise StoreError(f"Cannot initialize database {self._path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly
        return sqlite3.connect(
            str(self._path),
            timeout=self._busy_timeout,
            isolation_level=None,
        )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    async def _run(self, fn: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except sqlite3.Error as e:
            log.error("sqlite_operation_failed", operation=fn.__name__, error=str(e))
            raise StoreError(f"SQLite {fn.__name__} failed: {e}") from e

    # ------------------------------------------------------------------
    # Synchronous operations, run in a worker thread
    # ------------------------------------------------------------------

    def _load(self, conn: sqlite3.Connection, collection: str, doc_id: str) -> Document | None:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        return json.loads(row[0]) if row else None

    def _insert(
        self,
        conn: sqlite3.Connection,
        collection: str,
        data: Document,
        doc_id: str | None,
    ) -> Document:
        doc = _strip_reserved(data)
        doc["id"] = doc_id or uuid.uuid4().hex
        doc["createdAt"] = self._clock().isoformat()
        try:
            conn.execute(
                "INSERT INTO documents (collection, id, data, created_at) VALUES (?, ?, ?, ?)",
                (collection, doc["id"], json.dumps(doc), doc["createdAt"]),
            )
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Document {doc['id']} already exists in {collection}") from e
        return doc

    def _save(self, conn: sqlite3.Connection, collection: str, doc: Document) -> None:
        conn.execute(
            "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
            (json.dumps(doc), collection, doc["id"]),
        )

    @_retry_locked
    def _get_sync(self, collection: str, doc_id: str) -> Document | None:
        conn = self._connect()
        try:
            return self._load(conn, collection, doc_id)
        finally:
            conn.close()

    @_retry_locked
    def _list_sync(
        self,
        collection: str,
        where: dict[str, Any] | None,
        order_by: str | None,
        descending: bool,
        limit: int | None,
    ) -> list[Document]:
        clause, params = _where_clause(collection, where)
        direction = "DESC" if descending else "ASC"
        query = f"SELECT data FROM documents WHERE {clause}"
        if order_by is not None:
            query += f" ORDER BY {_field_expr(order_by)} {direction}, rowid {direction}"
        else:
            query += f" ORDER BY rowid {direction}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._connect()
        try:
            return [json.loads(row[0]) for row in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    @_retry_locked
    def _count_sync(self, collection: str, where: dict[str, Any] | None) -> int:
        clause, params = _where_clause(collection, where)
        conn = self._connect()
        try:
            row = conn.execute(f"SELECT COUNT(*) FROM documents WHERE {clause}", params).fetchone()
            return int(row[0])
        finally:
            conn.close()

    @_retry_locked
    def _create_sync(self, collection: str, data: Document, doc_id: str | None) -> Document:
        with self._transaction() as conn:
            return self._insert(conn, collection, data, doc_id)

    @_retry_locked
    def _update_sync(self, collection: str, doc_id: str, changes: Document) -> Document:
        with self._transaction() as conn:
            doc = self._load(conn, collection, doc_id)
            if doc is None:
                raise DocumentNotFoundError(f"Document {doc_id} not found in {collection}")
            doc.update(_strip_reserved(changes))
            self._save(conn, collection, doc)
            return doc

    @_retry_locked
    def _upsert_sync(self, collection: str, doc_id: str, data: Document) -> Document:
        with self._transaction() as conn:
            doc = self._load(conn, collection, doc_id)
            if doc is None:
                return self._insert(conn, collection, data, doc_id)
            doc.update(_strip_reserved(data))
            self._save(conn, collection, doc)
            return doc

    @_retry_locked
    def _delete_sync(self, collection: str, doc_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            return cursor.rowcount > 0

    @_retry_locked
    def _increment_sync(
        self,
        collection: str,
        where: dict[str, Any],
        field: str,
        amount: int,
        ceiling: int | None,
    ) -> int | None:
        _field_expr(field)
        clause, params = _where_clause(collection, where)
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT data FROM documents WHERE {clause} ORDER BY rowid LIMIT 1",
                params,
            ).fetchone()
            doc = json.loads(row[0]) if row else None

            current = int(doc.get(field, 0)) if doc is not None else 0
            if ceiling is not None and current >= ceiling:
                return None

            if doc is None:
                doc = self._insert(conn, collection, {**where, field: current + amount}, None)
            else:
                doc[field] = current + amount
                self._save(conn, collection, doc)
            return int(doc[field])

    @_retry_locked
    def _ping_sync(self) -> None:
        conn = self._connect()
        try:
            conn.execute("SELECT 1 FROM documents LIMIT 1").fetchall()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # DocumentStore protocol
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> Document | None:
        return await self._run(self._get_sync, collection, doc_id)

    async def list(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        return await self._run(self._list_sync, collection, where, order_by, descending, limit)

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return await self._run(self._count_sync, collection, where)

    async def create(
        self,
        collection: str,
        data: Document,
        doc_id: str | None = None,
    ) -> Document:
        return await self._run(self._create_sync, collection, data, doc_id)

    async def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        return await self._run(self._update_sync, collection, doc_id, changes)

    async def upsert(self, collection: str, doc_id: str, data: Document) -> Document:
        return await self._run(self._upsert_sync, collection, doc_id, data)

    async def delete(self, collection: str, doc_id: str) -> bool:
        return await self._run(self._delete_sync, collection, doc_id)

    async def increment(
        self,
        collection: str,
        where: dict[str, Any],
        field: str,
        amount: int = 1,
        ceiling: int | None = None,
    ) -> int | None:
        return await self._run(self._increment_sync, collection, where, field, amount, ceiling)

    async def ping(self) -> None:
        await self._run(self._ping_sync)

    async def close(self) -> None:
        # Connections are per operation; nothing is held open
        log.debug("sqlite_store_closed", path=str(self._path))
