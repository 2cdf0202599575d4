"""
Settlement Lifecycle

Settlements are payout records for a representative or technician. They are
created open and move once to paid; paid is terminal.
"""

import logging
from typing import List, Optional

from phoneshop.errors import NotFoundError, SettlementStateError
from phoneshop.models.enums import SettlementStatus
from phoneshop.models.schemas import Settlement, SettlementCreate
from phoneshop.services.document_store import SETTLEMENTS, DocumentStore, Predicate, Transaction, get_document_store
from phoneshop.services.timestamps import utc_now

logger = logging.getLogger(__name__)


class SettlementRepository:
    """Repository for the settlements collection"""

    def __init__(self, store: Optional[DocumentStore] = None):
        self.store = store or get_document_store()

    async def open(self, settlement: SettlementCreate) -> str:
        try:
            record = settlement.model_dump(mode="python")
            record["type"] = settlement.type.value
            record["status"] = SettlementStatus.OPEN.value
            settlement_id = await self.store.create(SETTLEMENTS, record)
            logger.info(f"[Settlements] Settlement created with ID: {settlement_id}")
            return settlement_id
        except Exception as e:
            logger.error(f"[Settlements] Error creating settlement: {e}")
            raise

    async def get(self, settlement_id: str) -> Settlement:
        record = await self.store.read(SETTLEMENTS, settlement_id)
        if record is None:
            raise NotFoundError(SETTLEMENTS, settlement_id)
        return Settlement.model_validate(record)

    async def list(self, type: Optional[str] = None, status: Optional[str] = None) -> List[Settlement]:
        try:
            predicates = []
            if type:
                predicates.append(Predicate("type", "==", type))
            if status:
                predicates.append(Predicate("status", "==", status))

            records = await self.store.query(SETTLEMENTS, predicates)
            settlements = [Settlement.model_validate(r) for r in records]
            logger.info(f"[Settlements] Settlements loaded: {len(settlements)}")
            return settlements
        except Exception as e:
            logger.error(f"[Settlements] Error getting settlements: {e}")
            raise

    async def mark_paid(self, settlement_id: str, notes: str = "") -> None:
        """
        Transition open -> paid, stamping paid_at and attaching notes.

        Raises NotFoundError for unknown ids and SettlementStateError if the
        settlement is already paid. Runs as a transaction so two concurrent
        payments cannot both succeed.
        """
        async def transition(txn: Transaction) -> None:
            record = await txn.get(SETTLEMENTS, settlement_id)
            if record is None:
                raise NotFoundError(SETTLEMENTS, settlement_id)
            if record.get("status") == SettlementStatus.PAID.value:
                raise SettlementStateError(f"Settlement {settlement_id} is already paid")

            record.update({
                "status": SettlementStatus.PAID.value,
                "paid_at": utc_now(),
                "notes": notes,
            })
            txn.set(SETTLEMENTS, settlement_id, record)

        try:
            await self.store.run_transaction(transition)
            logger.info(f"[Settlements] Settlement marked as paid: {settlement_id}")
        except Exception as e:
            logger.error(f"[Settlements] Error marking settlement {settlement_id} as paid: {e}")
            raise
