import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["parent", "child"]


class MemberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    role: Role
    base_allowance: Decimal | None = Field(default=None, ge=0)


class MemberUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    role: Role | None = None
    base_allowance: Decimal | None = Field(default=None, ge=0)


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID | None = None
    family_id: uuid.UUID
    name: str
    role: str
    base_allowance: Decimal | None = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
