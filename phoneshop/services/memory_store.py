"""
In-Memory Document Store

Process-local DocumentStore with the same observable behavior as the hosted
backend: composite-index requirements, optimistic transactions with retry,
and push-style change subscriptions. Used for tests and STORE_BACKEND=memory.
"""

import asyncio
import copy
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from phoneshop import config
from phoneshop.errors import IndexUnavailableError, NotFoundError, TransientConflictError, ValidationError
from phoneshop.services.document_store import DocumentStore, OrderBy, Predicate, T, Transaction
from phoneshop.services.timestamps import comparable, utc_now

logger = logging.getLogger(__name__)


class _StoredDocument:
    __slots__ = ("data", "version")

    def __init__(self, data: Dict[str, Any], version: int):
        self.data = data
        self.version = version


class _MemoryTransaction(Transaction):
    """Tracks the version of every document read so commit can detect conflicts"""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self.read_versions: Dict[Tuple[str, str], int] = {}
        self.writes: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._store._documents(collection).get(doc_id)
        self.read_versions[(collection, doc_id)] = doc.version if doc else 0
        # Yield like a network round-trip would, so concurrent transactions interleave
        await asyncio.sleep(0)
        if doc is None:
            return None
        return self._store._present(doc_id, doc)

    def set(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        self.writes[(collection, doc_id)] = copy.deepcopy(record)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store.

    Args:
        indexes: composite indexes already provisioned, each an iterable of field names
        enforce_indexes: when False every query is served without index checks
        max_attempts: transaction attempts before TransientConflictError
        retry_delay: base backoff between attempts (seconds)
    """

    def __init__(
        self,
        indexes: Optional[Iterable[Iterable[str]]] = None,
        enforce_indexes: bool = True,
        max_attempts: int = config.TRANSACTION_MAX_ATTEMPTS,
        retry_delay: float = 0.0,
    ):
        self._collections: Dict[str, Dict[str, _StoredDocument]] = {}
        self._indexes: Set[FrozenSet[str]] = {frozenset(fields) for fields in (indexes or [])}
        self.enforce_indexes = enforce_indexes
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._watchers: Dict[str, List[asyncio.Queue]] = {}
        # (collection, predicates) of every query served, newest last
        self.query_log: List[Tuple[str, Tuple[Predicate, ...]]] = []

    # =========================================================================
    # Index management
    # =========================================================================

    def add_index(self, *fields: str) -> None:
        """Provision a composite index (simulates an index finishing its build)"""
        self._indexes.add(frozenset(fields))

    def _check_index(self, predicates: Sequence[Predicate], order_by: Optional[OrderBy]) -> None:
        if not self.enforce_indexes:
            return
        fields = {p.field for p in predicates}
        if order_by and predicates:
            fields.add(order_by.field)
        has_range = any(p.is_range for p in predicates)
        if has_range and len(fields) > 1 and frozenset(fields) not in self._indexes:
            raise IndexUnavailableError(
                f"The query requires a composite index on {sorted(fields)}"
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _documents(self, collection: str) -> Dict[str, _StoredDocument]:
        return self._collections.setdefault(collection, {})

    @staticmethod
    def _present(doc_id: str, doc: _StoredDocument) -> Dict[str, Any]:
        record = copy.deepcopy(doc.data)
        record["id"] = doc_id
        return record

    def _notify(self, collection: str) -> None:
        for queue in self._watchers.get(collection, []):
            queue.put_nowait(None)

    def _write(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        docs = self._documents(collection)
        existing = docs.get(doc_id)
        now = utc_now()
        data = copy.deepcopy(data)
        data.pop("id", None)
        data["created_at"] = existing.data.get("created_at", now) if existing else now
        data["updated_at"] = now
        docs[doc_id] = _StoredDocument(data, (existing.version if existing else 0) + 1)
        self._notify(collection)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, collection: str, record: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        if doc_id in self._documents(collection):
            raise ValidationError(f"{collection}/{doc_id} already exists")
        self._write(collection, doc_id, record)
        return doc_id

    async def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._documents(collection).get(doc_id)
        if doc is None:
            return None
        return self._present(doc_id, doc)

    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        doc = self._documents(collection).get(doc_id)
        if doc is None:
            raise NotFoundError(collection, doc_id)
        merged = copy.deepcopy(doc.data)
        merged.update(copy.deepcopy(partial))
        self._write(collection, doc_id, merged)

    async def delete(self, collection: str, doc_id: str) -> None:
        if self._documents(collection).pop(doc_id, None) is not None:
            self._notify(collection)

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> List[Dict[str, Any]]:
        self._check_index(predicates, order_by)
        self.query_log.append((collection, tuple(predicates)))

        results = [
            self._present(doc_id, doc)
            for doc_id, doc in self._documents(collection).items()
            if all(p.matches(doc.data) for p in predicates)
        ]
        if order_by:
            present = [r for r in results if order_by.field in r]
            missing = [r for r in results if order_by.field not in r]
            present.sort(key=lambda r: comparable(r[order_by.field]), reverse=order_by.descending)
            results = present + missing
        return results

    # =========================================================================
    # Transactions
    # =========================================================================

    def _commit(self, txn: _MemoryTransaction) -> bool:
        """Apply buffered writes if nothing read has changed since; atomic within the event loop"""
        for (collection, doc_id), version in txn.read_versions.items():
            doc = self._documents(collection).get(doc_id)
            if (doc.version if doc else 0) != version:
                return False
        for (collection, doc_id), record in txn.writes.items():
            self._write(collection, doc_id, record)
        return True

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            txn = _MemoryTransaction(self)
            result = await fn(txn)
            if self._commit(txn):
                return result
            logger.debug(f"[Store] Transaction conflict, attempt {attempt}/{self.max_attempts}")
            await asyncio.sleep(self.retry_delay * attempt)
        raise TransientConflictError(f"Transaction aborted after {self.max_attempts} attempts")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def subscribe(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers.setdefault(collection, []).append(queue)
        try:
            yield await self.query(collection, predicates)
            while True:
                await queue.get()
                # Coalesce bursts of writes into a single snapshot
                while not queue.empty():
                    queue.get_nowait()
                yield await self.query(collection, predicates)
        finally:
            self._watchers[collection].remove(queue)
