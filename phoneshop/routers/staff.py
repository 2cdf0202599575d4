"""
Staff Endpoints

Representatives and technicians.
"""

from typing import List

from fastapi import APIRouter, Depends

from phoneshop.dependencies import get_rep_repository, get_technician_repository, http_error
from phoneshop.models.schemas import IdResponse, RepCreate, RepUpdate, StaffMember, TechnicianCreate, TechnicianUpdate
from phoneshop.services.staff import RepRepository, TechnicianRepository

router = APIRouter()


# ============ REPS ============

@router.post("/reps", response_model=IdResponse)
async def add_rep(rep: RepCreate, repo: RepRepository = Depends(get_rep_repository)):
    try:
        return IdResponse(id=await repo.add(rep))
    except Exception as e:
        raise http_error(e)


@router.get("/reps", response_model=List[StaffMember])
async def list_reps(repo: RepRepository = Depends(get_rep_repository)):
    try:
        return await repo.list()
    except Exception as e:
        raise http_error(e)


@router.patch("/reps/{rep_id}")
async def update_rep(rep_id: str, changes: RepUpdate, repo: RepRepository = Depends(get_rep_repository)):
    try:
        await repo.update(rep_id, changes)
        return {"status": "updated", "id": rep_id}
    except Exception as e:
        raise http_error(e)


@router.delete("/reps/{rep_id}")
async def delete_rep(rep_id: str, repo: RepRepository = Depends(get_rep_repository)):
    try:
        await repo.delete(rep_id)
        return {"status": "deleted", "id": rep_id}
    except Exception as e:
        raise http_error(e)


# ============ TECHNICIANS ============

@router.post("/technicians", response_model=IdResponse)
async def add_technician(tech: TechnicianCreate, repo: TechnicianRepository = Depends(get_technician_repository)):
    """Add a technician (commission rate defaults to 50%)"""
    try:
        return IdResponse(id=await repo.add(tech))
    except Exception as e:
        raise http_error(e)


@router.get("/technicians", response_model=List[StaffMember])
async def list_technicians(repo: TechnicianRepository = Depends(get_technician_repository)):
    try:
        return await repo.list()
    except Exception as e:
        raise http_error(e)


@router.patch("/technicians/{tech_id}")
async def update_technician(
    tech_id: str,
    changes: TechnicianUpdate,
    repo: TechnicianRepository = Depends(get_technician_repository),
):
    try:
        await repo.update(tech_id, changes)
        return {"status": "updated", "id": tech_id}
    except Exception as e:
        raise http_error(e)


@router.delete("/technicians/{tech_id}")
async def delete_technician(tech_id: str, repo: TechnicianRepository = Depends(get_technician_repository)):
    try:
        await repo.delete(tech_id)
        return {"status": "deleted", "id": tech_id}
    except Exception as e:
        raise http_error(e)
