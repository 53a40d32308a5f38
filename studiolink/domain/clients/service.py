"""Client service - Business logic for client operations"""

import logging

from sqlalchemy.orm import Session

from ...errors import NotFoundError, ValidationError
from ...models import Client
from .repository import ClientRepository
from .schemas import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:
    """Service layer for client operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    def get_clients(self) -> list[Client]:
        return self.repo.get_clients(self.db)

    def get_client(self, client_id: str) -> Client:
        client = self.repo.get_client_by_id(self.db, client_id)
        if not client:
            raise NotFoundError("Client not found")
        return client

    def create_client(self, data: ClientCreate) -> Client:
        client = self.repo.create_client(self.db, **data.model_dump())
        logger.info(f"✅ Client created: {client.id} ({client.name})")
        return client

    def update_client(self, client_id: str, data: ClientUpdate) -> Client:
        client = self.get_client(client_id)
        return self.repo.update_client(self.db, client, **data.model_dump(exclude_unset=True))

    def delete_client(self, client_id: str) -> dict:
        client = self.get_client(client_id)
        project_count = self.repo.count_projects(self.db, client_id)
        if project_count:
            raise ValidationError(
                f"Client still has {project_count} project(s). Delete those first."
            )
        self.repo.delete_client(self.db, client)
        logger.info(f"🗑️ Client deleted: {client_id}")
        return {"message": "Client deleted"}
