"""
Settlement Endpoints

Commission reports per representative / technician, and the open -> paid
settlement records that pay them out.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from phoneshop.dependencies import get_settlement_aggregator, get_settlement_repository, http_error
from phoneshop.models.enums import SettlementStatus, SettlementType
from phoneshop.models.schemas import IdResponse, MarkPaidRequest, Settlement, SettlementCreate
from phoneshop.services.settlement_aggregator import RepTotals, SettlementAggregator, TechTotals
from phoneshop.services.settlements import SettlementRepository
from phoneshop.services.timestamps import day_bounds

router = APIRouter()


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reps", response_model=List[RepTotals])
async def rep_report(
    date_from: Optional[date] = Query(None, description="Visit date from (inclusive)"),
    date_to: Optional[date] = Query(None, description="Visit date to (inclusive)"),
    status: Optional[str] = Query(None, description="Only jobs with this status"),
    aggregator: SettlementAggregator = Depends(get_settlement_aggregator),
):
    """
    Totals per representative

    Part-level reps get part counts and part costs; legacy single-rep jobs
    also carry revenue, profit and commission sums.
    """
    try:
        return await aggregator.aggregate_by_rep(*day_bounds(date_from, date_to), status)
    except Exception as e:
        raise http_error(e)


@router.get("/technicians", response_model=List[TechTotals])
async def tech_report(
    date_from: Optional[date] = Query(None, description="Visit date from (inclusive)"),
    date_to: Optional[date] = Query(None, description="Visit date to (inclusive)"),
    status: Optional[str] = Query(None, description="Only jobs with this status"),
    aggregator: SettlementAggregator = Depends(get_settlement_aggregator),
):
    """Totals per technician (jobs without a technician are skipped)"""
    try:
        return await aggregator.aggregate_by_tech(*day_bounds(date_from, date_to), status)
    except Exception as e:
        raise http_error(e)


# =============================================================================
# LIFECYCLE
# =============================================================================

@router.post("/", response_model=IdResponse)
async def open_settlement(
    settlement: SettlementCreate,
    repo: SettlementRepository = Depends(get_settlement_repository),
):
    """Record a settlement as open"""
    try:
        return IdResponse(id=await repo.open(settlement))
    except Exception as e:
        raise http_error(e)


@router.get("/", response_model=List[Settlement])
async def list_settlements(
    type: Optional[SettlementType] = Query(None, description="rep or tech"),
    status: Optional[SettlementStatus] = Query(None, description="open or paid"),
    repo: SettlementRepository = Depends(get_settlement_repository),
):
    try:
        return await repo.list(
            type=type.value if type else None,
            status=status.value if status else None,
        )
    except Exception as e:
        raise http_error(e)


@router.get("/{settlement_id}", response_model=Settlement)
async def get_settlement(settlement_id: str, repo: SettlementRepository = Depends(get_settlement_repository)):
    try:
        return await repo.get(settlement_id)
    except Exception as e:
        raise http_error(e)


@router.post("/{settlement_id}/pay")
async def mark_settlement_paid(
    settlement_id: str,
    request: MarkPaidRequest,
    repo: SettlementRepository = Depends(get_settlement_repository),
):
    """Mark an open settlement as paid (400 if it is already paid)"""
    try:
        await repo.mark_paid(settlement_id, request.notes)
        return {"status": SettlementStatus.PAID.value, "id": settlement_id}
    except Exception as e:
        raise http_error(e)
