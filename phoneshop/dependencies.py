"""
FastAPI Dependencies

Request-scoped repositories built over the process-wide document store.
Tests swap the store with app.dependency_overrides[get_document_store].
"""

from fastapi import Depends, HTTPException

from phoneshop.errors import NotFoundError, TransientConflictError, ValidationError
from phoneshop.services.document_store import DocumentStore, get_document_store
from phoneshop.services.inventory import PhoneRepository
from phoneshop.services.maintenance_jobs import MaintenanceJobRepository
from phoneshop.services.settlement_aggregator import SettlementAggregator
from phoneshop.services.settlements import SettlementRepository
from phoneshop.services.staff import RepRepository, TechnicianRepository


def get_job_repository(store: DocumentStore = Depends(get_document_store)) -> MaintenanceJobRepository:
    return MaintenanceJobRepository(store)


def get_settlement_repository(store: DocumentStore = Depends(get_document_store)) -> SettlementRepository:
    return SettlementRepository(store)


def get_settlement_aggregator(
    jobs: MaintenanceJobRepository = Depends(get_job_repository),
) -> SettlementAggregator:
    return SettlementAggregator(jobs)


def get_rep_repository(store: DocumentStore = Depends(get_document_store)) -> RepRepository:
    return RepRepository(store)


def get_technician_repository(store: DocumentStore = Depends(get_document_store)) -> TechnicianRepository:
    return TechnicianRepository(store)


def get_phone_repository(store: DocumentStore = Depends(get_document_store)) -> PhoneRepository:
    return PhoneRepository(store)


def http_error(e: Exception) -> HTTPException:
    """Map a data-access failure to the HTTP error returned to the client"""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, TransientConflictError):
        return HTTPException(status_code=409, detail=f"{e} - retry the request")
    return HTTPException(status_code=500, detail=str(e))
