"""Tests for the in-memory document store and timestamp handling"""
import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from phoneshop.errors import IndexUnavailableError, NotFoundError, ValidationError
from phoneshop.services.document_store import OrderBy, Predicate
from phoneshop.services.memory_store import InMemoryDocumentStore
from phoneshop.services.timestamps import day_bounds, descending_date_key, to_datetime


class TestCrud:
    def setup_method(self):
        self.store = InMemoryDocumentStore()

    def test_create_read_update_delete(self):
        async def run():
            doc_id = await self.store.create("things", {"name": "a", "count": 1})
            created = await self.store.read("things", doc_id)
            await self.store.update("things", doc_id, {"count": 2})
            updated = await self.store.read("things", doc_id)
            await self.store.delete("things", doc_id)
            return doc_id, created, updated, await self.store.read("things", doc_id)

        doc_id, created, updated, deleted = asyncio.run(run())

        assert created["id"] == doc_id
        assert updated["name"] == "a"
        assert updated["count"] == 2
        assert updated["created_at"] == created["created_at"]
        assert updated["updated_at"] >= created["updated_at"]
        assert deleted is None

    def test_duplicate_id_rejected(self):
        asyncio.run(self.store.create("things", {}, doc_id="x"))
        with pytest.raises(ValidationError):
            asyncio.run(self.store.create("things", {}, doc_id="x"))

    def test_update_missing(self):
        with pytest.raises(NotFoundError):
            asyncio.run(self.store.update("things", "x", {"a": 1}))

    def test_returned_records_are_copies(self):
        async def run():
            doc_id = await self.store.create("things", {"tags": ["a"]})
            record = await self.store.read("things", doc_id)
            record["tags"].append("b")
            return await self.store.read("things", doc_id)

        assert asyncio.run(run())["tags"] == ["a"]


class TestQuery:
    def setup_method(self):
        self.store = InMemoryDocumentStore()

        async def seed():
            await self.store.create("jobs", {"status": "done", "when": "2024-01-02T00:00:00Z", "n": 2})
            await self.store.create("jobs", {"status": "done", "when": datetime(2024, 1, 1, tzinfo=timezone.utc), "n": 1})
            await self.store.create("jobs", {"status": "open", "when": "2024-01-03", "n": 3})
            await self.store.create("jobs", {"status": "open", "n": 4})

        asyncio.run(seed())

    def test_equality_and_range_on_single_field(self):
        done = asyncio.run(self.store.query("jobs", [Predicate("status", "==", "done")]))
        recent = asyncio.run(self.store.query("jobs", [Predicate("when", ">=", date(2024, 1, 2))]))

        assert sorted(r["n"] for r in done) == [1, 2]
        assert sorted(r["n"] for r in recent) == [2, 3]

    def test_range_with_other_field_needs_index(self):
        predicates = [Predicate("status", "==", "done"), Predicate("when", ">=", date(2024, 1, 2))]

        with pytest.raises(IndexUnavailableError):
            asyncio.run(self.store.query("jobs", predicates))

        self.store.add_index("status", "when")
        assert [r["n"] for r in asyncio.run(self.store.query("jobs", predicates))] == [2]

    def test_enforcement_can_be_disabled(self):
        store = InMemoryDocumentStore(enforce_indexes=False)
        predicates = [Predicate("a", "==", 1), Predicate("b", ">", 0)]
        assert asyncio.run(store.query("empty", predicates)) == []

    def test_order_by_puts_missing_last(self):
        records = asyncio.run(self.store.query("jobs", order_by=OrderBy("when", descending=True)))
        assert [r["n"] for r in records] == [3, 2, 1, 4]

    def test_query_log(self):
        asyncio.run(self.store.query("jobs", [Predicate("status", "==", "open")]))
        assert self.store.query_log[-1] == ("jobs", (Predicate("status", "==", "open"),))

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Predicate("n", "!=", 1)


class TestTransactions:
    def test_conflicting_writers_retry(self):
        store = InMemoryDocumentStore()
        asyncio.run(store.create("counters", {"value": 0}, doc_id="c"))
        attempts = []

        async def increment(txn):
            attempts.append(1)
            record = await txn.get("counters", "c")
            txn.set("counters", "c", {"value": record["value"] + 1})
            return record["value"] + 1

        async def run():
            return await asyncio.gather(*[store.run_transaction(increment) for _ in range(5)])

        results = asyncio.run(run())

        assert sorted(results) == [1, 2, 3, 4, 5]
        assert asyncio.run(store.read("counters", "c"))["value"] == 5
        assert len(attempts) > 5

    def test_exception_aborts_without_writing(self):
        store = InMemoryDocumentStore()

        async def failing(txn):
            txn.set("counters", "c", {"value": 1})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(store.run_transaction(failing))
        assert asyncio.run(store.read("counters", "c")) is None


class TestSubscribe:
    def test_initial_snapshot_then_coalesced_updates(self):
        store = InMemoryDocumentStore()

        async def run():
            feed = store.subscribe("jobs", [Predicate("status", "==", "open")])
            first = await feed.__anext__()
            await store.create("jobs", {"status": "open"})
            await store.create("jobs", {"status": "open"})
            await store.create("jobs", {"status": "closed"})
            second = await feed.__anext__()
            await feed.aclose()
            return first, second

        first, second = asyncio.run(run())

        assert first == []
        assert len(second) == 2
        assert store._watchers["jobs"] == []


class TestTimestamps:
    def test_shapes_normalize_to_same_instant(self):
        expected = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

        assert to_datetime("2024-05-01T12:00:00Z") == expected
        assert to_datetime("2024-05-01T15:00:00+03:00") == expected
        assert to_datetime(datetime(2024, 5, 1, 12)) == expected
        assert to_datetime({"seconds": expected.timestamp(), "nanoseconds": 0}) == expected
        assert to_datetime(expected.timestamp()) == expected

    def test_unparseable(self):
        assert to_datetime("pending") is None
        assert to_datetime("") is None
        assert to_datetime(None) is None
        assert to_datetime({"seconds": "x"}) is None

    def test_descending_key_sinks_missing(self):
        assert descending_date_key(None) < descending_date_key("1990-01-01")

    def test_day_bounds_cover_whole_days(self):
        start, end = day_bounds(date(2024, 3, 1), date(2024, 3, 31))

        assert start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert end > datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc)
        assert end < datetime(2024, 3, 31, tzinfo=timezone.utc) + timedelta(days=1)
        assert day_bounds(None, None) == (None, None)
