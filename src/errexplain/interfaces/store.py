"""Abstract interface for document persistence."""

from typing import Any, Protocol

Document = dict[str, Any]


class DocumentStore(Protocol):
    """Abstract interface for a document store with typed collections.

    Documents are JSON-compatible dictionaries. The store owns the ``id`` and
    ``createdAt`` keys: both are assigned on creation and never changed.
    Query predicates are equality matches on top-level fields.
    """

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """
        Fetch a document by id.

        Returns:
            The document, or None if it does not exist

        Raises:
            StoreError: If the store cannot be reached
        """
        ...

    async def list(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Document]:
        """
        List documents matching every equality predicate in ``where``.

        Args:
            collection: Collection name
            where: Field/value pairs that must all match
            order_by: Field to sort by (``createdAt`` for creation order)
            descending: Sort newest/largest first
            limit: Maximum number of documents returned

        Raises:
            StoreError: If the store cannot be reached
        """
        ...

    async def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        """Count documents matching every equality predicate in ``where``."""
        ...

    async def create(
        self,
        collection: str,
        data: Document,
        doc_id: str | None = None,
    ) -> Document:
        """
        Create a document.

        Args:
            collection: Collection name
            data: Document fields (``id`` and ``createdAt`` are ignored)
            doc_id: Explicit id; a unique one is generated when omitted

        Returns:
            The stored document including ``id`` and ``createdAt``

        Raises:
            StoreError: If the document cannot be written or the id exists
        """
        ...

    async def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        """
        Merge ``changes`` into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
            StoreError: If the store cannot be reached
        """
        ...

    async def upsert(self, collection: str, doc_id: str, data: Document) -> Document:
        """Create the document, or merge ``data`` into it if it exists."""
        ...

    async def delete(self, collection: str, doc_id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was deleted, False if none existed
        """
        ...

    async def increment(
        self,
        collection: str,
        where: dict[str, Any],
        field: str,
        amount: int = 1,
        ceiling: int | None = None,
    ) -> int | None:
        """
        Atomically increment ``field`` on the document matching ``where``.

        The document is created with ``where`` as its fields when absent.
        With a ``ceiling``, the increment only happens if the current value
        is below it.

        Returns:
            The new value, or None if the ceiling prevented the increment
        """
        ...

    async def ping(self) -> None:
        """Raise StoreError if the store is not usable."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...
