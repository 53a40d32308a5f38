"""Catalog router - service template endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from .schemas import ServiceCreate, ServiceResponse, ServiceUpdate
from .service import CatalogService

router = APIRouter(prefix="/services", tags=["Services"], dependencies=[Depends(require_admin)])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


@router.get("", response_model=list[ServiceResponse])
async def get_services(service: CatalogService = Depends(get_catalog_service)):
    return service.get_services()


@router.post("", response_model=ServiceResponse)
async def create_service(data: ServiceCreate, service: CatalogService = Depends(get_catalog_service)):
    return service.create_service(data)


@router.patch("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str, data: ServiceUpdate, service: CatalogService = Depends(get_catalog_service)
):
    return service.update_service(service_id, data)


@router.delete("/{service_id}")
async def delete_service(service_id: str, service: CatalogService = Depends(get_catalog_service)):
    return service.delete_service(service_id)
