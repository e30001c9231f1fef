import uuid
import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class ScoreSave(BaseModel):
    score: int = Field(ge=1, le=5)
    is_vacation: bool = False
    notes: str | None = Field(default=None, max_length=1000)


class ScoreResponse(BaseModel):
    id: uuid.UUID
    family_member_id: uuid.UUID
    budget_cycle_id: uuid.UUID
    score: int
    date: dt.date
    is_vacation: bool
    notes: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime
    model_config = ConfigDict(from_attributes=True)


class VacationRequest(BaseModel):
    start_date: dt.date
    end_date: dt.date
    is_vacation: bool = True


class VacationResponse(BaseModel):
    success_count: int
    error_count: int
    total_days: int


class BudgetCycleResponse(BaseModel):
    id: uuid.UUID
    family_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime
    model_config = ConfigDict(from_attributes=True)


class CycleSummaryResponse(BaseModel):
    budget_cycle_id: uuid.UUID
    start_date: dt.date
    end_date: dt.date
    scored_days: int
    vacation_days: int
    average_score: float | None = None
    model_config = ConfigDict(from_attributes=True)
