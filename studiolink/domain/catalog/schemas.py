"""Catalog domain schemas - Pydantic models for validation"""

from dataclasses import asdict
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, field_validator

from .resolver import TEMPLATE_PATTERN


def _normalize_templates(value):
    # The admin form sends a comma separated string
    if isinstance(value, str):
        value = value.split(",")
    templates = [t.strip() for t in value if t and t.strip()]
    if not templates:
        raise ValueError("A service needs at least one task")
    for template in templates:
        if not TEMPLATE_PATTERN.fullmatch(template):
            raise ValueError(f"'{template}' must look like 'Submit <Type> to editor|client'")
    return templates


class ServiceCreate(BaseModel):
    """Schema for creating a catalog service"""

    name: str
    tasks: Union[list[str], str]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("tasks")
    @classmethod
    def validate_tasks(cls, v):
        return _normalize_templates(v)


class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    tasks: Optional[Union[list[str], str]] = None

    @field_validator("tasks")
    @classmethod
    def validate_tasks(cls, v):
        if v is None:
            return v
        return _normalize_templates(v)


class ServiceResponse(BaseModel):
    id: str
    name: str
    tasks: list[str]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TaskPreviewRequest(BaseModel):
    """Service names in the order the admin ticked them"""

    services: list[str]


class TaskDraftResponse(BaseModel):
    text: str
    service_type: Optional[str]
    is_editor_task: bool
    is_client_task: bool

    class Config:
        from_attributes = True


class TaskPreviewResponse(BaseModel):
    tasks: list[TaskDraftResponse]
    service_types: list[str]
    warnings: list[str]

    @classmethod
    def from_resolved(cls, resolved) -> "TaskPreviewResponse":
        return cls(
            tasks=[TaskDraftResponse(**asdict(draft)) for draft in resolved.tasks],
            service_types=list(resolved.service_types),
            warnings=list(resolved.warnings),
        )
