"""
Sequential Identifier Allocator

Hands out zero-padded, strictly increasing numbers (phone barcodes) from a
counter document. The increment runs in a store transaction, so separate
processes and browser tabs never receive the same number.

On first use of a counter name the sequence is seeded from the largest
identifier already present in inventory.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from phoneshop import config
from phoneshop.services.document_store import COUNTERS, PHONES, DocumentStore, Transaction, get_document_store

logger = logging.getLogger(__name__)

PHONE_BARCODE_COUNTER = "phoneBarcode"

# counter name -> (collection, identifier field) scanned to seed a new counter
DEFAULT_SEED_SOURCES: Dict[str, Tuple[str, str]] = {
    PHONE_BARCODE_COUNTER: (PHONES, "phone_number"),
}

_NON_DIGITS = re.compile(r"\D")


def parse_identifier(value: Any) -> Optional[int]:
    """Numeric value of an identifier like 42, "000042" or "PH-000042"; None if it has no digits"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else None


class SequenceAllocator:
    """Allocates sequential identifiers from named counters"""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        seed_sources: Optional[Dict[str, Tuple[str, str]]] = None,
        width: int = config.COUNTER_WIDTH,
    ):
        self.store = store or get_document_store()
        self.seed_sources = DEFAULT_SEED_SOURCES if seed_sources is None else seed_sources
        self.width = width

    async def _max_existing(self, counter_name: str) -> int:
        """Largest identifier currently in use for the counter's source collection"""
        source = self.seed_sources.get(counter_name)
        if source is None:
            return 0

        collection, field = source
        records = await self.store.query(collection)
        max_num = 0
        for record in records:
            num = parse_identifier(record.get(field))
            if num is not None and num > max_num:
                max_num = num
        return max_num

    async def allocate(self, counter_name: str) -> str:
        """Reserve the next number for counter_name, formatted to the configured width"""
        try:
            seed = 0
            existing = await self.store.read(COUNTERS, counter_name)
            if existing is None:
                seed = await self._max_existing(counter_name)
                logger.info(f"[Counter] Bootstrapping '{counter_name}' from inventory max {seed}")

            async def increment(txn: Transaction) -> int:
                snap = await txn.get(COUNTERS, counter_name)
                if snap is None:
                    last = seed
                else:
                    last = snap.get("last_number")
                    if not isinstance(last, int) or isinstance(last, bool):
                        last = 0
                next_number = last + 1
                txn.set(COUNTERS, counter_name, {"last_number": next_number})
                return next_number

            next_number = await self.store.run_transaction(increment)
            formatted = str(next_number).zfill(self.width)
            logger.info(f"[Counter] Allocated {counter_name}={formatted}")
            return formatted
        except Exception as e:
            logger.error(f"[Counter] Error allocating '{counter_name}': {e}")
            raise
