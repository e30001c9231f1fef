import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class InvitationCreate(BaseModel):
    email: EmailStr | None = None


class InvitationLinkResponse(BaseModel):
    link: str
    token: str
    expires_at: datetime


class InvitationResponse(BaseModel):
    id: uuid.UUID
    family_id: uuid.UUID
    family_member_id: uuid.UUID
    email: str | None = None
    role: str
    created_by: uuid.UUID
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class InvitationDetails(BaseModel):
    """Public view of an invitation, looked up by token on the join page."""

    id: uuid.UUID
    family_member_id: uuid.UUID
    member_name: str
    member_role: str
    role: str
    email: str | None = None
    expires_at: datetime


class InvitationAccept(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirm: str = Field(min_length=8)
