"""Client router - FastAPI endpoints for client operations"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from .schemas import ClientCreate, ClientResponse, ClientUpdate
from .service import ClientService

router = APIRouter(prefix="/clients", tags=["Clients"], dependencies=[Depends(require_admin)])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


@router.get("", response_model=list[ClientResponse])
async def get_clients(service: ClientService = Depends(get_client_service)):
    """Get all clients, alphabetically"""
    return service.get_clients()


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, service: ClientService = Depends(get_client_service)):
    return service.get_client(client_id)


@router.post("", response_model=ClientResponse)
async def create_client(data: ClientCreate, service: ClientService = Depends(get_client_service)):
    return service.create_client(data)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str, data: ClientUpdate, service: ClientService = Depends(get_client_service)
):
    return service.update_client(client_id, data)


@router.delete("/{client_id}")
async def delete_client(client_id: str, service: ClientService = Depends(get_client_service)):
    return service.delete_client(client_id)
