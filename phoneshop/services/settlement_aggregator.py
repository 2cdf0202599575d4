"""
Settlement Aggregator

Rolls maintenance jobs up into per-representative and per-technician totals
for a date range. Totals are recomputed on every call, never cached.

Representatives are credited in two ways depending on the job shape:
- Parts jobs: each part with a rep adds to that rep's part count and part
  cost. A rep's job count goes up once per job no matter how many of the
  job's parts they supplied. Revenue/profit/commission are not split across
  parts because amount_charged belongs to the whole job.
- Legacy jobs: the single rep gets the full job: counts, part cost, profit,
  commission, shop profit and revenue.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from phoneshop import config
from phoneshop.models.schemas import JobFilters, LegacyAttribution, MaintenanceJob, PartsAttribution
from phoneshop.services.maintenance_jobs import MaintenanceJobRepository

logger = logging.getLogger(__name__)


# ============== Dataclasses ==============

@dataclass
class RepJobDetail:
    """One credited part (or legacy job) in a rep's settlement"""
    job_id: str
    job_date: Optional[datetime]
    customer_name: Optional[str]
    device_model: Optional[str]
    part_name: Optional[str]
    part_cost: float


@dataclass
class RepTotals:
    """Accumulated totals for one representative"""
    rep_id: str
    rep_name: str
    jobs_count: int = 0
    parts_count: int = 0
    part_cost_sum: float = 0.0
    profit_sum: float = 0.0
    tech_commission_sum: float = 0.0
    shop_profit_sum: float = 0.0
    revenue_sum: float = 0.0
    jobs: List[RepJobDetail] = field(default_factory=list)


@dataclass
class TechTotals:
    """Accumulated totals for one technician"""
    tech_id: str
    tech_name: str
    jobs_count: int = 0
    part_cost_sum: float = 0.0
    profit_sum: float = 0.0
    tech_commission_sum: float = 0.0
    shop_profit_sum: float = 0.0
    revenue_sum: float = 0.0
    job_ids: List[str] = field(default_factory=list)


# ============== Aggregation ==============

def _job_date(job: MaintenanceJob) -> Optional[datetime]:
    return job.visit_date or job.created_at


def aggregate_rep_totals(jobs: List[MaintenanceJob]) -> List[RepTotals]:
    """Per-representative totals, one entry per rep seen, in first-seen order"""
    rep_totals: Dict[str, RepTotals] = {}

    def bucket(rep_id: str, rep_name: Optional[str]) -> RepTotals:
        if rep_id not in rep_totals:
            rep_totals[rep_id] = RepTotals(
                rep_id=rep_id,
                rep_name=rep_name or config.UNKNOWN_NAME_PLACEHOLDER,
            )
        return rep_totals[rep_id]

    for job in jobs:
        attribution = job.attribution

        if isinstance(attribution, PartsAttribution):
            for part in attribution.parts:
                if not part.rep_id:
                    continue
                totals = bucket(part.rep_id, part.rep_name)
                totals.parts_count += 1
                totals.part_cost_sum += part.part_cost
                totals.jobs.append(RepJobDetail(
                    job_id=job.id,
                    job_date=_job_date(job),
                    customer_name=job.customer_name,
                    device_model=job.device_model,
                    part_name=part.part_name,
                    part_cost=part.part_cost,
                ))

            # dict keeps first-seen order while dropping duplicate reps
            for rep_id in dict.fromkeys(p.rep_id for p in attribution.parts if p.rep_id):
                rep_totals[rep_id].jobs_count += 1

        elif isinstance(attribution, LegacyAttribution) and attribution.rep_id:
            totals = bucket(attribution.rep_id, attribution.rep_name)
            totals.jobs_count += 1
            totals.parts_count += 1
            totals.part_cost_sum += attribution.part_cost
            totals.profit_sum += job.profit
            totals.tech_commission_sum += job.tech_commission
            totals.shop_profit_sum += job.shop_profit
            totals.revenue_sum += job.amount_charged
            totals.jobs.append(RepJobDetail(
                job_id=job.id,
                job_date=_job_date(job),
                customer_name=job.customer_name,
                device_model=job.device_model,
                part_name=attribution.part_name or config.DEFAULT_PART_NAME,
                part_cost=attribution.part_cost,
            ))

    return list(rep_totals.values())


def aggregate_tech_totals(jobs: List[MaintenanceJob]) -> List[TechTotals]:
    """Per-technician totals; jobs without a technician are skipped"""
    tech_totals: Dict[str, TechTotals] = {}

    for job in jobs:
        if not job.tech_id:
            logger.warning(f"[Settlements] Job missing tech_id, skipped: {job.id}")
            continue

        if job.tech_id not in tech_totals:
            tech_totals[job.tech_id] = TechTotals(
                tech_id=job.tech_id,
                tech_name=job.tech_name or config.UNKNOWN_NAME_PLACEHOLDER,
            )

        totals = tech_totals[job.tech_id]
        totals.jobs_count += 1
        totals.part_cost_sum += job.total_part_cost
        totals.profit_sum += job.profit
        totals.tech_commission_sum += job.tech_commission
        totals.shop_profit_sum += job.shop_profit
        totals.revenue_sum += job.amount_charged
        totals.job_ids.append(job.id)

    return list(tech_totals.values())


class SettlementAggregator:
    """Fetches jobs through the repository's filtered read and aggregates them"""

    def __init__(self, jobs: Optional[MaintenanceJobRepository] = None):
        self.jobs = jobs or MaintenanceJobRepository()

    async def _fetch(self, date_from: Any, date_to: Any, status_filter: Optional[str]) -> List[MaintenanceJob]:
        filters = JobFilters(date_from=date_from, date_to=date_to, status=status_filter or None)
        return await self.jobs.list(filters)

    async def aggregate_by_rep(
        self,
        date_from: Any,
        date_to: Any,
        status_filter: Optional[str] = None,
    ) -> List[RepTotals]:
        try:
            logger.info(f"[Settlements] Rep settlements from {date_from} to {date_to}, status: {status_filter}")
            jobs = await self._fetch(date_from, date_to, status_filter)
            logger.info(f"[Settlements] Found jobs for rep settlements: {len(jobs)}")

            result = aggregate_rep_totals(jobs)
            logger.info(f"[Settlements] Rep settlements calculated: {len(result)} reps")
            return result
        except Exception as e:
            logger.error(f"[Settlements] Error getting rep settlements: {e}")
            raise

    async def aggregate_by_tech(
        self,
        date_from: Any,
        date_to: Any,
        status_filter: Optional[str] = None,
    ) -> List[TechTotals]:
        try:
            logger.info(f"[Settlements] Tech settlements from {date_from} to {date_to}, status: {status_filter}")
            jobs = await self._fetch(date_from, date_to, status_filter)
            logger.info(f"[Settlements] Found jobs for tech settlements: {len(jobs)}")

            result = aggregate_tech_totals(jobs)
            logger.info(f"[Settlements] Tech settlements calculated: {len(result)} technicians")
            return result
        except Exception as e:
            logger.error(f"[Settlements] Error getting tech settlements: {e}")
            raise
