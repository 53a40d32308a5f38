"""Client domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_required_text


class ClientCreate(BaseModel):
    """Schema for creating a new client"""

    name: str
    email: str
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return validate_required_text(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if not v:
            raise ValueError("Email is required")
        return validate_email(v)


class ClientUpdate(BaseModel):
    """Schema for updating an existing client"""

    name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return v if v is None else validate_required_text(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class ClientResponse(BaseModel):
    """Schema for client response"""

    id: str
    name: str
    email: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
