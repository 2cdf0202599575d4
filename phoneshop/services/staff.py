"""
Staff Directory

Representatives (part suppliers credited in rep settlements) and technicians
(commissioned on job profit). Both are simple documents with an active flag.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from phoneshop import config
from phoneshop.models.schemas import StaffMember, TechnicianCreate
from phoneshop.services.document_store import REPS, TECHNICIANS, DocumentStore, get_document_store

logger = logging.getLogger(__name__)


class StaffRepository:
    """CRUD over one staff collection"""

    label = "staff member"

    def __init__(self, collection: str, store: Optional[DocumentStore] = None):
        self.collection = collection
        self.store = store or get_document_store()

    def _new_record(self, member: BaseModel) -> dict:
        record = member.model_dump(exclude_none=True)
        record["active"] = True
        return record

    async def add(self, member: BaseModel) -> str:
        try:
            member_id = await self.store.create(self.collection, self._new_record(member))
            logger.info(f"[Staff] {self.label.capitalize()} added with ID: {member_id}")
            return member_id
        except Exception as e:
            logger.error(f"[Staff] Error adding {self.label}: {e}")
            raise

    async def list(self) -> List[StaffMember]:
        try:
            records = await self.store.query(self.collection)
            members = [StaffMember.model_validate(r) for r in records]
            logger.info(f"[Staff] {self.collection} loaded: {len(members)}")
            return members
        except Exception as e:
            logger.error(f"[Staff] Error getting {self.collection}: {e}")
            raise

    async def update(self, member_id: str, changes: BaseModel) -> None:
        try:
            await self.store.update(self.collection, member_id, changes.model_dump(exclude_unset=True))
            logger.info(f"[Staff] {self.label.capitalize()} updated: {member_id}")
        except Exception as e:
            logger.error(f"[Staff] Error updating {self.label} {member_id}: {e}")
            raise

    async def delete(self, member_id: str) -> None:
        try:
            await self.store.delete(self.collection, member_id)
            logger.info(f"[Staff] {self.label.capitalize()} deleted: {member_id}")
        except Exception as e:
            logger.error(f"[Staff] Error deleting {self.label} {member_id}: {e}")
            raise


class RepRepository(StaffRepository):
    label = "rep"

    def __init__(self, store: Optional[DocumentStore] = None):
        super().__init__(REPS, store)


class TechnicianRepository(StaffRepository):
    label = "technician"

    def __init__(self, store: Optional[DocumentStore] = None):
        super().__init__(TECHNICIANS, store)

    def _new_record(self, member: TechnicianCreate) -> dict:
        record = super()._new_record(member)
        # Explicit 0 is kept, only a missing rate takes the default
        if record.get("default_commission_percent") is None:
            record["default_commission_percent"] = config.DEFAULT_TECH_COMMISSION_PERCENT
        return record
