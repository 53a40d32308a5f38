"""Project domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import ProjectStatus, TaskRole
from ...shared.validators import validate_required_text


class ClientSummary(BaseModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: str
    project_id: str
    revision_id: Optional[str] = None
    position: int
    text: str
    client_label: str
    service_type: Optional[str] = None
    role: Optional[TaskRole] = None
    is_editor_task: bool
    is_client_task: bool
    completed: bool
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    sent: bool
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RevisionResponse(BaseModel):
    id: str
    project_id: str
    type: str
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ProjectResponse(BaseModel):
    id: str
    name: str
    client_id: str
    client: Optional[ClientSummary] = None
    due_date: date
    status: ProjectStatus
    services: list[str]
    service_types: list[str]
    tasks: list[TaskResponse]
    revisions: list[RevisionResponse]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectCreate(BaseModel):
    """Schema for creating a project from catalog services"""

    name: str
    client_id: str
    due_date: date
    services: list[str]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_required_text(v)

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        services = [s.strip() for s in v if s and s.strip()]
        if not services:
            raise ValueError("Select at least one service")
        return services


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    client_id: Optional[str] = None
    due_date: Optional[date] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return v if v is None else validate_required_text(v)


class TaskUpdate(BaseModel):
    completed: bool


class RevisionCreate(BaseModel):
    type: str
    note: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return validate_required_text(v, "Revision type")


class RevisionUpdate(BaseModel):
    type: Optional[str] = None
    note: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        return v if v is None else validate_required_text(v, "Revision type")


class SendRequest(BaseModel):
    """Leave task_ids empty to send every client file that hasn't gone out yet"""

    task_ids: Optional[list[str]] = None


class SendResponse(BaseModel):
    link_id: str
    download_url: str
    kind: str
    message_id: Optional[str] = None
    sent_task_ids: list[str]
    pending_task_ids: list[str]
    status: ProjectStatus
