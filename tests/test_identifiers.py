"""Tests for sequential barcode allocation"""
import asyncio

from phoneshop.errors import TransientConflictError
from phoneshop.services.document_store import COUNTERS, PHONES
from phoneshop.services.identifiers import PHONE_BARCODE_COUNTER, SequenceAllocator, parse_identifier
from phoneshop.services.memory_store import InMemoryDocumentStore


class TestParseIdentifier:
    def test_values(self):
        assert parse_identifier("000042") == 42
        assert parse_identifier("PH-000123") == 123
        assert parse_identifier(7) == 7
        assert parse_identifier("no digits") is None
        assert parse_identifier(None) is None
        assert parse_identifier(True) is None


class TestSequenceAllocator:
    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.allocator = SequenceAllocator(self.store)

    def test_first_allocation_on_empty_inventory(self):
        assert asyncio.run(self.allocator.allocate(PHONE_BARCODE_COUNTER)) == "000001"

    def test_sequential_allocations(self):
        async def run():
            return [await self.allocator.allocate(PHONE_BARCODE_COUNTER) for _ in range(3)]

        assert asyncio.run(run()) == ["000001", "000002", "000003"]

    def test_concurrent_allocations_are_unique_and_contiguous(self):
        async def run():
            return await asyncio.gather(*[
                self.allocator.allocate(PHONE_BARCODE_COUNTER) for _ in range(10)
            ])

        results = asyncio.run(run())

        assert sorted(results) == [str(n).zfill(6) for n in range(1, 11)]
        assert len(set(results)) == 10

    def test_concurrent_allocators_sharing_a_store(self):
        """Two allocators (think two browser tabs) never hand out the same number"""
        other = SequenceAllocator(self.store)

        async def run():
            return await asyncio.gather(*[
                (self.allocator if i % 2 else other).allocate(PHONE_BARCODE_COUNTER) for i in range(8)
            ])

        assert sorted(asyncio.run(run())) == [str(n).zfill(6) for n in range(1, 9)]

    def test_seeds_from_existing_inventory(self):
        async def run():
            await self.store.create(PHONES, {"phone_number": "000041"})
            await self.store.create(PHONES, {"phone_number": "000007"})
            await self.store.create(PHONES, {"phone_number": "not-a-barcode"})
            first = await self.allocator.allocate(PHONE_BARCODE_COUNTER)
            second = await self.allocator.allocate(PHONE_BARCODE_COUNTER)
            return first, second

        assert asyncio.run(run()) == ("000042", "000043")

    def test_existing_counter_ignores_inventory(self):
        async def run():
            await self.store.create(COUNTERS, {"last_number": 5}, doc_id=PHONE_BARCODE_COUNTER)
            await self.store.create(PHONES, {"phone_number": "000900"})
            return await self.allocator.allocate(PHONE_BARCODE_COUNTER)

        assert asyncio.run(run()) == "000006"

    def test_counter_document_updated(self):
        async def run():
            await self.allocator.allocate(PHONE_BARCODE_COUNTER)
            await self.allocator.allocate(PHONE_BARCODE_COUNTER)
            return await self.store.read(COUNTERS, PHONE_BARCODE_COUNTER)

        assert asyncio.run(run())["last_number"] == 2

    def test_unknown_counter_starts_at_one(self):
        allocator = SequenceAllocator(self.store, width=4)
        assert asyncio.run(allocator.allocate("invoice")) == "0001"

    def test_gives_up_after_max_attempts(self):
        store = InMemoryDocumentStore(max_attempts=1)
        allocator = SequenceAllocator(store)

        async def run():
            return await asyncio.gather(
                *[allocator.allocate(PHONE_BARCODE_COUNTER) for _ in range(3)],
                return_exceptions=True,
            )

        results = asyncio.run(run())

        assert "000001" in results
        assert any(isinstance(r, TransientConflictError) for r in results)
