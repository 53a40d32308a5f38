"""Catalog service - service templates and project task resolution"""

import logging

from sqlalchemy.orm import Session

from ...errors import NotFoundError, ValidationError
from ...models import Service
from .repository import ServiceRepository
from .resolver import ResolvedTasks, ServiceTemplate, resolve_templates
from .schemas import ServiceCreate, ServiceUpdate

logger = logging.getLogger(__name__)


class CatalogService:
    """Service layer for the task template catalog"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceRepository()

    def get_services(self) -> list[Service]:
        return self.repo.get_services(self.db)

    def get_service(self, service_id: str) -> Service:
        service = self.repo.get_service_by_id(self.db, service_id)
        if not service:
            raise NotFoundError("Service not found")
        return service

    def create_service(self, data: ServiceCreate) -> Service:
        if self.repo.get_service_by_name(self.db, data.name):
            raise ValidationError(f"A service named '{data.name}' already exists")
        logger.info(f"📥 Creating service '{data.name}' with {len(data.tasks)} task templates")
        return self.repo.create_service(self.db, name=data.name, tasks=list(data.tasks))

    def update_service(self, service_id: str, data: ServiceUpdate) -> Service:
        service = self.get_service(service_id)
        if data.name and data.name != service.name and self.repo.get_service_by_name(self.db, data.name):
            raise ValidationError(f"A service named '{data.name}' already exists")
        tasks = list(data.tasks) if data.tasks is not None else None
        return self.repo.update_service(self.db, service, name=data.name, tasks=tasks)

    def delete_service(self, service_id: str) -> dict:
        # Projects keep their own task copies, so removing a template is safe
        service = self.get_service(service_id)
        self.repo.delete_service(self.db, service)
        return {"message": "Service deleted"}

    def resolve_tasks(self, service_names: list[str]) -> ResolvedTasks:
        """Resolve selected service names (in selection order) into task drafts."""
        names = list(dict.fromkeys(n for n in service_names if n))
        found = self.repo.get_services_by_names(self.db, names)
        missing = [n for n in names if n not in found]
        if missing:
            raise NotFoundError(f"Unknown services: {', '.join(missing)}")
        templates = [ServiceTemplate(name=n, tasks=list(found[n].tasks or [])) for n in names]
        return resolve_templates(templates)
