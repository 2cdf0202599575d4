"""
Maintenance Job Repository

Stores repair visits and keeps their derived financials (total part cost,
profit, technician commission, shop profit) consistent with their inputs.

Listing rules:
- Representative filtering always happens locally: a rep may only appear
  inside parts[], which the store cannot index into.
- status/tech/date filters are pushed to the store. If the store reports a
  missing composite index, the query is retried with the status filter alone
  and everything else is filtered in memory.
- Results are always sorted newest visit first here, never by the store.
"""

import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from phoneshop.errors import IndexUnavailableError, NotFoundError
from phoneshop.models.enums import JobStatus
from phoneshop.models.schemas import JobFilters, MaintenanceJob, MaintenanceJobCreate, MaintenanceJobUpdate
from phoneshop.services.document_store import MAINTENANCE_JOBS, DocumentStore, Predicate, get_document_store
from phoneshop.services.financials import compute_derived, derive_total_part_cost
from phoneshop.services.timestamps import descending_date_key, to_datetime

logger = logging.getLogger(__name__)

# Any of these in an update triggers a recompute of the derived fields
FINANCIAL_INPUT_FIELDS = {"parts", "total_part_cost", "part_cost", "amount_charged", "tech_percent"}

# Only ever written by the recompute, never taken from a caller
DERIVED_FIELDS = ("profit", "tech_commission", "shop_profit")


def job_mentions_rep(record: Dict[str, Any], rep_id: str) -> bool:
    """True if the job credits rep_id at job level (legacy) or on any part"""
    if record.get("rep_id") == rep_id:
        return True
    parts = record.get("parts")
    if isinstance(parts, list):
        return any(isinstance(p, dict) and p.get("rep_id") == rep_id for p in parts)
    return False


def _in_date_range(record: Dict[str, Any], date_from: Optional[datetime], date_to: Optional[datetime]) -> bool:
    visit = to_datetime(record.get("visit_date"))
    if visit is None:
        return False
    if date_from is not None and visit < date_from:
        return False
    if date_to is not None and visit > date_to:
        return False
    return True


class MaintenanceJobRepository:
    """Repository for the maintenanceJobs collection"""

    def __init__(self, store: Optional[DocumentStore] = None):
        self.store = store or get_document_store()

    # =========================================================================
    # WRITE
    # =========================================================================

    async def create(self, job: MaintenanceJobCreate) -> str:
        """Persist a new job as pending with its derived financials"""
        try:
            data = job.model_dump(exclude_unset=True)
            total_part_cost = derive_total_part_cost(data)
            derived = compute_derived(
                total_part_cost,
                data.get("amount_charged"),
                data.get("tech_percent") if data.get("tech_percent") is not None else 0,
            )

            record = {
                **data,
                "total_part_cost": total_part_cost,
                **derived.to_record(),
                "status": JobStatus.PENDING.value,
            }
            job_id = await self.store.create(MAINTENANCE_JOBS, record)
            logger.info(f"[Jobs] Maintenance job added with ID: {job_id}")
            return job_id
        except Exception as e:
            logger.error(f"[Jobs] Error adding maintenance job: {e}")
            raise

    async def update(self, job_id: str, changes: MaintenanceJobUpdate) -> None:
        """
        Apply a partial update.

        When a financial input changes, total part cost is re-resolved (new
        values first, then what is stored) and all derived fields rewritten.
        """
        try:
            partial = changes.model_dump(exclude_unset=True)
            for field in DERIVED_FIELDS:
                partial.pop(field, None)

            if FINANCIAL_INPUT_FIELDS & partial.keys():
                current = await self._read_record(job_id)
                total_part_cost = derive_total_part_cost(partial, current)
                amount_charged = partial["amount_charged"] if "amount_charged" in partial else current.get("amount_charged")
                tech_percent = partial["tech_percent"] if "tech_percent" in partial else current.get("tech_percent")

                derived = compute_derived(total_part_cost, amount_charged, tech_percent)
                partial["total_part_cost"] = total_part_cost
                partial.update(derived.to_record())

            await self.store.update(MAINTENANCE_JOBS, job_id, partial)
            logger.info(f"[Jobs] Maintenance job updated: {job_id}")
        except Exception as e:
            logger.error(f"[Jobs] Error updating maintenance job {job_id}: {e}")
            raise

    async def delete(self, job_id: str) -> None:
        try:
            await self.store.delete(MAINTENANCE_JOBS, job_id)
            logger.info(f"[Jobs] Maintenance job deleted: {job_id}")
        except Exception as e:
            logger.error(f"[Jobs] Error deleting maintenance job {job_id}: {e}")
            raise

    # =========================================================================
    # READ
    # =========================================================================

    async def _read_record(self, job_id: str) -> Dict[str, Any]:
        record = await self.store.read(MAINTENANCE_JOBS, job_id)
        if record is None:
            raise NotFoundError(MAINTENANCE_JOBS, job_id)
        return record

    async def get(self, job_id: str) -> MaintenanceJob:
        """Single job; raises NotFoundError when absent"""
        try:
            return MaintenanceJob.from_record(await self._read_record(job_id))
        except Exception as e:
            logger.error(f"[Jobs] Error getting maintenance job {job_id}: {e}")
            raise

    @staticmethod
    def _pushed_predicates(filters: JobFilters) -> List[Predicate]:
        """Everything the store can filter on; rep_id is never pushed"""
        predicates = []
        if filters.status:
            predicates.append(Predicate("status", "==", filters.status))
        if filters.tech_id:
            predicates.append(Predicate("tech_id", "==", filters.tech_id))
        if filters.date_from:
            predicates.append(Predicate("visit_date", ">=", filters.date_from))
        if filters.date_to:
            predicates.append(Predicate("visit_date", "<=", filters.date_to))
        return predicates

    async def _fallback_query(self, filters: JobFilters) -> List[Dict[str, Any]]:
        """Status-only query (single-field, always indexed) plus in-memory filtering"""
        predicates = [Predicate("status", "==", filters.status)] if filters.status else []
        records = await self.store.query(MAINTENANCE_JOBS, predicates)

        if filters.has_date_range:
            records = [r for r in records if _in_date_range(r, filters.date_from, filters.date_to)]
        if filters.tech_id:
            records = [r for r in records if r.get("tech_id") == filters.tech_id]
        return records

    async def list(self, filters: Optional[JobFilters] = None) -> List[MaintenanceJob]:
        """Jobs matching the filters, newest visit first"""
        filters = filters or JobFilters()
        try:
            method = "indexed"
            try:
                records = await self.store.query(MAINTENANCE_JOBS, self._pushed_predicates(filters))
            except IndexUnavailableError as e:
                logger.warning(f"[Jobs] Index not ready, using fallback query method ({e})")
                method = "fallback"
                records = await self._fallback_query(filters)

            if filters.rep_id:
                records = [r for r in records if job_mentions_rep(r, filters.rep_id)]

            records.sort(key=lambda r: descending_date_key(r.get("visit_date")), reverse=True)

            jobs = [MaintenanceJob.from_record(r) for r in records]
            logger.info(f"[Jobs] Maintenance jobs loaded ({method}): {len(jobs)}")
            return jobs
        except Exception as e:
            logger.error(f"[Jobs] Error getting maintenance jobs: {e}")
            raise

    async def watch(self, status: Optional[str] = None) -> AsyncIterator[List[MaintenanceJob]]:
        """Live snapshots of jobs (optionally one status), newest visit first"""
        predicates = [Predicate("status", "==", status)] if status else []
        subscription = self.store.subscribe(MAINTENANCE_JOBS, predicates)
        try:
            async for snapshot in subscription:
                snapshot.sort(key=lambda r: descending_date_key(r.get("visit_date")), reverse=True)
                yield [MaintenanceJob.from_record(r) for r in snapshot]
        finally:
            await subscription.aclose()
