"""
Supabase Document Store

Hosted DocumentStore backed by Supabase (Postgres + PostgREST). Each
collection is a table holding the document body in a jsonb column, with a
version column used for optimistic transactions.

Database Schema (create in Supabase Dashboard, once per collection):
--------------------------------------------------------------------

CREATE TABLE "maintenanceJobs" (
    id TEXT PRIMARY KEY,
    data JSONB NOT NULL DEFAULT '{}'::jsonb,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
);

-- Repeat for: counters, settlements, reps, technicians, phones

-- Composite index backing the settlement report query (status + tech + visit date)
CREATE INDEX idx_jobs_status_tech_visit ON "maintenanceJobs"
    ((data->>'status'), (data->>'tech_id'), (data->>'visit_date'));

Until an index like the one above exists, large jsonb range scans hit the
statement timeout (57014), which is reported as IndexUnavailableError.
"""

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from phoneshop import config
from phoneshop.errors import IndexUnavailableError, NotFoundError, TransientConflictError, ValidationError
from phoneshop.services.document_store import DocumentStore, OrderBy, Predicate, T, Transaction
from phoneshop.services.timestamps import to_isoformat, utc_now

logger = logging.getLogger(__name__)

# PostgREST filter method per predicate operator
_FILTER_METHODS = {
    "==": "eq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}

UNIQUE_VIOLATION = "23505"


def _to_json(value: Any) -> Any:
    """Recursively make a record JSON-safe (dates become ISO strings)"""
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    return to_isoformat(value)


def _json_path(field: str) -> str:
    return f"data->>{field}"


class _SupabaseTransaction(Transaction):
    def __init__(self, store: "SupabaseDocumentStore"):
        self._store = store
        self.read_versions: Dict[Tuple[str, str], int] = {}
        self.writes: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = await self._store._fetch_row(collection, doc_id)
        self.read_versions[(collection, doc_id)] = row["version"] if row else 0
        return self._store._row_to_record(row) if row else None

    def set(self, collection: str, doc_id: str, record: Dict[str, Any]) -> None:
        self.writes[(collection, doc_id)] = dict(record)


class SupabaseDocumentStore(DocumentStore):
    """
    DocumentStore over Supabase tables.

    Transactions are optimistic: every document read records its version, and
    each buffered write is applied with a compare-and-set on that version. Only
    single-document transactions are atomic, which is all the counter and the
    settlement payment need.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        max_attempts: int = config.TRANSACTION_MAX_ATTEMPTS,
        retry_delay: float = config.TRANSACTION_RETRY_DELAY,
        poll_seconds: float = config.SUBSCRIBE_POLL_SECONDS,
    ):
        self.url = url or config.SUPABASE_URL
        self.key = key or config.SUPABASE_KEY

        if not self.url or not self.key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.poll_seconds = poll_seconds
        self._client: Optional[AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> AsyncClient:
        """Create the async client on first use (must run inside the event loop)"""
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = await acreate_client(self.url, self.key)
                    logger.info("[Store] Connected to Supabase")
        return self._client

    async def _execute(self, request) -> Any:
        """Run a PostgREST request, translating index failures"""
        try:
            return await request.execute()
        except APIError as e:
            if e.code in config.INDEX_UNAVAILABLE_CODES:
                raise IndexUnavailableError(e.message or str(e)) from e
            raise

    async def _fetch_row(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        client = await self._get_client()
        result = await self._execute(
            client.table(collection)
            .select("id, data, version, created_at, updated_at")
            .eq("id", doc_id)
            .limit(1)
        )
        if result.data and len(result.data) > 0:
            return result.data[0]
        return None

    @staticmethod
    def _row_to_record(row: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(row.get("data") or {})
        record["id"] = row["id"]
        record["created_at"] = row.get("created_at")
        record["updated_at"] = row.get("updated_at")
        return record

    @staticmethod
    def _body(record: Dict[str, Any]) -> Dict[str, Any]:
        body = {k: v for k, v in record.items() if k not in ("id", "created_at", "updated_at")}
        return _to_json(body)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create(self, collection: str, record: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        client = await self._get_client()
        doc_id = doc_id or uuid.uuid4().hex
        now = utc_now().isoformat()
        try:
            await self._execute(
                client.table(collection).insert({
                    "id": doc_id,
                    "data": self._body(record),
                    "version": 1,
                    "created_at": now,
                    "updated_at": now,
                })
            )
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ValidationError(f"{collection}/{doc_id} already exists") from e
            raise
        return doc_id

    async def read(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = await self._fetch_row(collection, doc_id)
        return self._row_to_record(row) if row else None

    async def update(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> None:
        row = await self._fetch_row(collection, doc_id)
        if row is None:
            raise NotFoundError(collection, doc_id)

        data = dict(row.get("data") or {})
        data.update(self._body(partial))

        client = await self._get_client()
        await self._execute(
            client.table(collection)
            .update({
                "data": data,
                "version": row["version"] + 1,
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", doc_id)
        )

    async def delete(self, collection: str, doc_id: str) -> None:
        client = await self._get_client()
        await self._execute(client.table(collection).delete().eq("id", doc_id))

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> List[Dict[str, Any]]:
        client = await self._get_client()
        request = client.table(collection).select("id, data, version, created_at, updated_at")

        for predicate in predicates:
            method = getattr(request, _FILTER_METHODS[predicate.op])
            request = method(_json_path(predicate.field), _to_json(predicate.value))

        if order_by:
            request = request.order(_json_path(order_by.field), desc=order_by.descending)

        result = await self._execute(request)
        return [self._row_to_record(row) for row in (result.data or [])]

    # =========================================================================
    # Transactions
    # =========================================================================

    async def _commit(self, txn: _SupabaseTransaction) -> bool:
        client = await self._get_client()
        now = utc_now().isoformat()

        for (collection, doc_id), record in txn.writes.items():
            expected = txn.read_versions.get((collection, doc_id))
            body = self._body(record)

            if expected == 0:
                # Document was absent when read: insert, losing the race is a conflict
                try:
                    await self._execute(
                        client.table(collection).insert({
                            "id": doc_id,
                            "data": body,
                            "version": 1,
                            "created_at": now,
                            "updated_at": now,
                        })
                    )
                except APIError as e:
                    if e.code == UNIQUE_VIOLATION:
                        return False
                    raise
                continue

            request = client.table(collection).update({
                "data": body,
                "version": (expected or 0) + 1,
                "updated_at": now,
            }).eq("id", doc_id)
            if expected is not None:
                request = request.eq("version", expected)

            result = await self._execute(request)
            if expected is not None and not result.data:
                return False

        return True

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            txn = _SupabaseTransaction(self)
            result = await fn(txn)
            if await self._commit(txn):
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
        """Poll the collection and yield whenever the result set changes"""
        last_fingerprint: Optional[str] = None
        while True:
            snapshot = await self.query(collection, predicates)
            fingerprint = json.dumps(
                sorted((r["id"], r.get("updated_at")) for r in snapshot),
                default=str,
            )
            if fingerprint != last_fingerprint:
                last_fingerprint = fingerprint
                yield snapshot
            await asyncio.sleep(self.poll_seconds)

    async def close(self) -> None:
        self._client = None
