"""
Document store interface and the in-memory reference backend.

The booking core talks to its persistence layer only through
``DocumentStore``. Production deployments point it at a remote
transactional document database; tests and the console driver use
``InMemoryStore``.

Documents are plain dicts in the camelCase storage shape. Every document
carries an ``id`` assigned by the store on insert.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from booking_core.errors import NotFoundError
from booking_core.storage.filters import Filter

logger = logging.getLogger(__name__)

BOOKINGS = "bookings"
SERVICES = "services"
REVIEWS = "reviews"
ACTIVITY_LOG = "activityLog"


class DocumentStore(ABC):
    """Async request/response access to named document collections."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Fetch one document by id, or None."""

    @abstractmethod
    async def insert(self, collection: str, doc: dict[str, Any]) -> str:
        """Insert a document and return its new id."""

    @abstractmethod
    async def patch(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        """Merge ``changes`` into a document. A None value removes the field.

        Raises:
            NotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document. Raises NotFoundError if absent."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: Optional[Filter] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Return matching documents.

        Without ``order_by`` documents come back in insertion order
        (reversed when ``descending``).
        """

    @abstractmethod
    def transaction(self) -> Any:
        """Async context manager making the enclosed reads and writes serializable."""


class InMemoryStore(DocumentStore):
    """
    Process-local store backed by dicts.

    Documents are deep-copied on the way in and out so callers cannot
    mutate stored state without going through ``patch``. ``transaction``
    serializes callers on one asyncio lock, which is enough to make
    check-then-write atomic inside a single process.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def insert(self, collection: str, doc: dict[str, Any]) -> str:
        doc_id = doc.get("id") or uuid.uuid4().hex
        stored = copy.deepcopy(doc)
        stored["id"] = doc_id
        self._collection(collection)[doc_id] = stored
        logger.debug("Inserted %s/%s", collection, doc_id)
        return doc_id

    async def patch(self, collection: str, doc_id: str, changes: dict[str, Any]) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"{collection} document {doc_id} not found")
        doc = docs[doc_id]
        for key, value in changes.items():
            if key == "id":
                continue
            if value is None:
                doc.pop(key, None)
            else:
                doc[key] = copy.deepcopy(value)

    async def delete(self, collection: str, doc_id: str) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise NotFoundError(f"{collection} document {doc_id} not found")
        del docs[doc_id]

    async def query(
        self,
        collection: str,
        where: Optional[Filter] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        docs = [d for d in self._collection(collection).values() if where is None or where.matches(d)]
        if order_by is not None:
            docs.sort(key=lambda d: (d.get(order_by) is None, d.get(order_by)), reverse=descending)
        elif descending:
            docs.reverse()
        if limit is not None:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            yield

    def count(self, collection: str) -> int:
        return len(self._collection(collection))
