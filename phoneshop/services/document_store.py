"""
Document Store Interface

Async contract every storage backend implements: CRUD on named collections,
filtered queries, optimistic read-modify-write transactions and change
subscriptions. Repositories receive a store at construction; the process-wide
default comes from get_document_store().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from phoneshop import config
from phoneshop.services.timestamps import comparable

T = TypeVar("T")

# Collection names
COUNTERS = "counters"
MAINTENANCE_JOBS = "maintenanceJobs"
SETTLEMENTS = "settlements"
REPS = "reps"
TECHNICIANS = "technicians"
PHONES = "phones"

EQUALITY_OPS = {"=="}
RANGE_OPS = {"<", "<=", ">", ">="}


@dataclass(frozen=True)
class Predicate:
    """Single field comparison, e.g. Predicate("status", "==", "completed")"""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in EQUALITY_OPS | RANGE_OPS:
            raise ValueError(f"Unsupported operator: {self.op}")

    @property
    def is_range(self) -> bool:
        return self.op in RANGE_OPS

    def matches(self, record: Dict[str, Any]) -> bool:
        """Evaluate against a record; missing fields and mismatched types never match"""
        if self.field not in record:
            return False
        left = comparable(record[self.field])
        right = comparable(self.value)
        try:
            if self.op == "==":
                return left == right
            if self.op == "<":
                return left < right
            if self.op == "<=":
                return left <= right
            if self.op == ">":
                return left > right
            return left >= right
        except TypeError:
            return False


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


class Transaction(ABC):
    """Read-modify-write unit handed to the function passed to run_transaction"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read a document inside the transaction (None when absent)"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        """Buffer a full-document write, applied on commit"""


class DocumentStore(ABC):
    """Async document database used by all repositories"""

    @abstractmethod
    async def create(self, collection: str, record: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Insert a record, returns its id. Stamps created_at/updated_at."""

    @abstractmethod
    async def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one record (with its "id") or None"""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        """Merge fields into an existing record. Raises NotFoundError if absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a record; deleting a missing record is a no-op"""

    @abstractmethod
    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return records matching every predicate.

        Raises IndexUnavailableError when the backend cannot serve this
        combination of predicates without a composite index.
        """

    @abstractmethod
    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """
        Run fn with serializable read-modify-write semantics.

        fn may be invoked several times when commits conflict; after
        config.TRANSACTION_MAX_ATTEMPTS failures TransientConflictError is raised.
        Exceptions raised by fn abort the transaction and propagate unchanged.
        """

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """Endless async iterator of full result-set snapshots, first one immediately"""

    async def close(self) -> None:
        """Release backend resources"""
        return None


# Singleton instance
_document_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get or create the configured document store"""
    global _document_store
    if _document_store is None:
        if config.STORE_BACKEND == "memory":
            from phoneshop.services.memory_store import InMemoryDocumentStore
            _document_store = InMemoryDocumentStore()
        elif config.STORE_BACKEND == "supabase":
            from phoneshop.services.supabase_store import SupabaseDocumentStore
            _document_store = SupabaseDocumentStore()
        else:
            raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND}")
    return _document_store


async def close_document_store() -> None:
    """Close the process-wide store if one was created"""
    global _document_store
    if _document_store is not None:
        await _document_store.close()
        _document_store = None
