"""
Phone Inventory Endpoints

Barcode issuing and phone registration.
"""

from typing import List

from fastapi import APIRouter, Depends

from phoneshop.dependencies import get_phone_repository, http_error
from phoneshop.models.schemas import IdResponse, Phone, PhoneCreate
from phoneshop.services.inventory import PhoneRepository

router = APIRouter()


@router.get("/next-barcode")
async def next_barcode(repo: PhoneRepository = Depends(get_phone_repository)):
    """
    Reserve the next phone barcode (6 digits, e.g. 000042)

    Numbers are never handed out twice, even to concurrent clients.
    """
    try:
        return {"phone_number": await repo.next_barcode()}
    except Exception as e:
        raise http_error(e)


@router.post("/", response_model=IdResponse)
async def add_phone(phone: PhoneCreate, repo: PhoneRepository = Depends(get_phone_repository)):
    """Register a phone; 400 if the barcode is missing or already used"""
    try:
        return IdResponse(id=await repo.add(phone))
    except Exception as e:
        raise http_error(e)


@router.get("/", response_model=List[Phone])
async def list_phones(repo: PhoneRepository = Depends(get_phone_repository)):
    try:
        return await repo.list()
    except Exception as e:
        raise http_error(e)
