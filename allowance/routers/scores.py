"""Scores router.

Daily scores of family members, bulk vacation updates and budget cycles.
"""

import uuid
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.dependencies import get_current_user, require_family_member, require_member_access
from allowance.core.errors import PermissionDenied, ValidationError
from allowance.core.result import http_error, unwrap
from allowance.database import get_db
from allowance.dates import parse_date
from allowance.models.member import ROLE_PARENT, FamilyMember
from allowance.models.user import User
from allowance.schemas.score import (
    BudgetCycleResponse,
    CycleSummaryResponse,
    ScoreResponse,
    ScoreSave,
    VacationRequest,
    VacationResponse,
)
from allowance.services import budget_cycle_service, score_service, vacation_service
from allowance.services.family_service import find_membership

router = APIRouter(tags=["Scores"])


def _parse_day(value: str) -> date:
    try:
        return parse_date(value)
    except ValidationError as exc:
        raise http_error(exc)


@router.get("/members/{member_id}/scores", response_model=list[ScoreResponse])
async def list_scores(
    db: Annotated[AsyncSession, Depends(get_db)],
    start: date = Query(...),
    end: date = Query(...),
    member: FamilyMember = Depends(require_member_access()),
):
    """Scores of a member between ``start`` and ``end`` inclusive."""
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="End date must not be before start date",
        )
    return await score_service.list_daily_scores(db, member.id, start, end)


@router.get("/members/{member_id}/scores/{day}", response_model=ScoreResponse)
async def get_score(
    day: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access()),
):
    record = await score_service.get_daily_score(db, member.id, _parse_day(day))
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No score recorded for this day",
        )
    return record


@router.put("/members/{member_id}/scores/{day}", response_model=ScoreResponse)
async def save_score(
    day: str,
    body: ScoreSave,
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access(parent_only=True)),
):
    """Create or update the score of a day. Requires parent role.

    The budget cycle covering the day is created on demand.
    """
    return unwrap(await score_service.save_daily_score(
        db, member.id, _parse_day(day), body.score, body.is_vacation, body.notes,
    ))


@router.delete("/scores/{score_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_score(
    score_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: User = Depends(get_current_user),
):
    record = await score_service.get_score_by_id(db, score_id)
    if record is not None:
        owner = await db.get(FamilyMember, record.family_member_id)
        membership = await find_membership(db, current_user.id, owner.family_id)
        if membership is None or membership.role != ROLE_PARENT:
            raise http_error(PermissionDenied("Parent role required"))
    unwrap(await score_service.delete_daily_score(db, score_id))


@router.post("/members/{member_id}/vacation", response_model=VacationResponse)
async def set_vacation(
    body: VacationRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access(parent_only=True)),
):
    """Mark (or unmark) every day of a range as vacation.

    Days are processed one by one; the response reports how many succeeded
    and how many failed.
    """
    summary = unwrap(await vacation_service.apply_vacation(
        db, member.id, body.start_date, body.end_date, body.is_vacation,
    ))
    return VacationResponse(
        success_count=summary.success_count,
        error_count=summary.error_count,
        total_days=summary.total_days,
    )


@router.get("/members/{member_id}/cycles/{day}/summary", response_model=CycleSummaryResponse)
async def get_cycle_summary(
    day: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access()),
):
    cycle = unwrap(await budget_cycle_service.get_cycle_for_date(
        db, member.family_id, _parse_day(day),
    ))
    return await score_service.summarize_cycle(db, member.id, cycle)


@router.get("/families/{family_id}/budget-cycles", response_model=list[BudgetCycleResponse])
async def list_budget_cycles(
    family_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member()),
):
    return await budget_cycle_service.list_budget_cycles(db, family_id)


@router.get("/families/{family_id}/budget-cycles/{day}", response_model=BudgetCycleResponse)
async def get_budget_cycle(
    family_id: uuid.UUID,
    day: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member()),
):
    """The budget cycle covering ``day``, created from the family settings if needed."""
    return unwrap(await budget_cycle_service.get_cycle_for_date(
        db, family_id, _parse_day(day),
    ))
