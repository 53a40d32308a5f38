"""Editor domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_email, validate_required_text

DEFAULT_AVATAR = "👤"


class EditorCreate(BaseModel):
    name: str
    email: str
    avatar: Optional[str] = DEFAULT_AVATAR

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

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, v):
        v = (v or "").strip()
        if len(v) > 16:
            raise ValueError("Avatar must be a short emoji")
        return v or DEFAULT_AVATAR


class EditorUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return v if v is None else validate_required_text(v)

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)


class EditorResponse(BaseModel):
    id: str
    name: str
    email: str
    avatar: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
