"""
Maintenance Job Endpoints

Create, update, list and delete repair jobs. Derived financials are computed
server-side; clients never send profit or commission.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from phoneshop.dependencies import get_job_repository, http_error
from phoneshop.models.schemas import IdResponse, JobFilters, MaintenanceJob, MaintenanceJobCreate, MaintenanceJobUpdate
from phoneshop.services.financials import DerivedFinancials, compute_derived
from phoneshop.services.maintenance_jobs import MaintenanceJobRepository
from phoneshop.services.timestamps import day_bounds

router = APIRouter()


@router.post("/", response_model=IdResponse)
async def create_job(job: MaintenanceJobCreate, repo: MaintenanceJobRepository = Depends(get_job_repository)):
    """
    Create a maintenance job (status starts as pending)

    Send either `parts` (each with its own rep) or the legacy
    `rep_id` + `part_cost` pair.
    """
    try:
        return IdResponse(id=await repo.create(job))
    except Exception as e:
        raise http_error(e)


@router.get("/", response_model=List[MaintenanceJob])
async def list_jobs(
    status: Optional[str] = Query(None, description="Job status"),
    tech_id: Optional[str] = Query(None, description="Technician ID"),
    rep_id: Optional[str] = Query(None, description="Representative ID (job or part level)"),
    date_from: Optional[date] = Query(None, description="Visit date from (inclusive)"),
    date_to: Optional[date] = Query(None, description="Visit date to (inclusive)"),
    repo: MaintenanceJobRepository = Depends(get_job_repository),
):
    """List jobs, newest visit first"""
    try:
        start, end = day_bounds(date_from, date_to)
        filters = JobFilters(status=status, tech_id=tech_id, rep_id=rep_id, date_from=start, date_to=end)
        return await repo.list(filters)
    except Exception as e:
        raise http_error(e)


@router.get("/calculate", response_model=DerivedFinancials)
async def preview_financials(
    part_cost: float = Query(0, description="Total part cost"),
    amount_charged: float = Query(0, description="Amount charged to the customer"),
    tech_percent: float = Query(0, ge=0, le=1, description="Technician commission rate (0-1)"),
):
    """Preview profit / commission / shop profit without saving"""
    return compute_derived(part_cost, amount_charged, tech_percent)


@router.get("/{job_id}", response_model=MaintenanceJob)
async def get_job(job_id: str, repo: MaintenanceJobRepository = Depends(get_job_repository)):
    try:
        return await repo.get(job_id)
    except Exception as e:
        raise http_error(e)


@router.patch("/{job_id}")
async def update_job(
    job_id: str,
    changes: MaintenanceJobUpdate,
    repo: MaintenanceJobRepository = Depends(get_job_repository),
):
    """Partial update; financials are recomputed when any cost/charge/percent input changes"""
    try:
        await repo.update(job_id, changes)
        return {"status": "updated", "id": job_id}
    except Exception as e:
        raise http_error(e)


@router.delete("/{job_id}")
async def delete_job(job_id: str, repo: MaintenanceJobRepository = Depends(get_job_repository)):
    try:
        await repo.delete(job_id)
        return {"status": "deleted", "id": job_id}
    except Exception as e:
        raise http_error(e)
