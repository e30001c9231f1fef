import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FamilyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class FamilyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)


class FamilyResponse(BaseModel):
    id: uuid.UUID
    name: str
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class FamilySettingsUpdate(BaseModel):
    budget_cycle_start_day: int | None = Field(default=None, ge=1, le=31)
    vacation_default_score: int | None = Field(default=None, ge=1, le=5)


class FamilySettingsResponse(BaseModel):
    family_id: uuid.UUID
    budget_cycle_start_day: int
    vacation_default_score: int | None = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
