"""
Phone Inventory

Just enough of the phone catalogue for barcode handling: listing (the
allocator seeds from it), adding with barcode validation, and issuing the
next free barcode.
"""

import logging
from typing import List, Optional

from phoneshop import config
from phoneshop.errors import ValidationError
from phoneshop.models.schemas import Phone, PhoneCreate
from phoneshop.services.document_store import PHONES, DocumentStore, Predicate, get_document_store
from phoneshop.services.identifiers import PHONE_BARCODE_COUNTER, SequenceAllocator

logger = logging.getLogger(__name__)


class PhoneRepository:
    """Repository for the phones collection"""

    def __init__(self, store: Optional[DocumentStore] = None, allocator: Optional[SequenceAllocator] = None):
        self.store = store or get_document_store()
        self.allocator = allocator or SequenceAllocator(self.store)

    async def next_barcode(self) -> str:
        return await self.allocator.allocate(PHONE_BARCODE_COUNTER)

    async def add(self, phone: PhoneCreate) -> str:
        """Insert a phone; the barcode is required, numeric, zero-padded and must be unused"""
        try:
            phone_number = str(phone.phone_number).strip() if phone.phone_number is not None else ""
            if not phone_number:
                raise ValidationError("phone_number (barcode) is required")
            if not (phone_number.isascii() and phone_number.isdigit()):
                raise ValidationError(f"Barcode must contain digits only: {phone_number!r}")

            normalized = phone_number.zfill(config.COUNTER_WIDTH)
            existing = await self.store.query(PHONES, [Predicate("phone_number", "==", normalized)])
            if existing:
                raise ValidationError(f"Barcode {normalized} is already in use")

            record = phone.model_dump(exclude_none=True)
            record["phone_number"] = normalized
            phone_id = await self.store.create(PHONES, record)
            logger.info(f"[Inventory] Phone added with ID: {phone_id}")
            return phone_id
        except Exception as e:
            logger.error(f"[Inventory] Error adding phone: {e}")
            raise

    async def list(self) -> List[Phone]:
        try:
            records = await self.store.query(PHONES)
            phones = [Phone.model_validate(r) for r in records]
            logger.info(f"[Inventory] Retrieved phones: {len(phones)}")
            return phones
        except Exception as e:
            logger.error(f"[Inventory] Error getting phones: {e}")
            raise
