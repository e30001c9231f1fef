import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from allowance.schemas.member import MemberResponse


class SignInRequest(BaseModel):
    email: str
    password: str


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)


class RefreshRequest(BaseModel):
    refresh_token: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(min_length=8)
    new_password_confirm: str = Field(min_length=8)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SessionInfo(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class SessionProfile(BaseModel):
    """Current user plus the linked family member, if any.

    ``family_member`` is null for a brand-new account that has not created
    a family or claimed an invitation yet.
    """

    user: UserResponse
    family_member: MemberResponse | None = None


class MessageResponse(BaseModel):
    message: str
