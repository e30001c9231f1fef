"""Score Service.

Create, update and delete the daily score of a family member. Every score
is linked to the budget cycle covering its date; the cycle is resolved (and
created when missing) before the score is written.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.errors import AllowanceError, NotFoundError, PersistenceError, ValidationError
from allowance.core.result import Result
from allowance.dates import to_date
from allowance.models.budget_cycle import BudgetCycle
from allowance.models.daily_score import MAX_SCORE, MIN_SCORE, DailyScore
from allowance.models.family import FamilySettings
from allowance.models.member import FamilyMember
from allowance.services.budget_cycle_service import resolve_budget_cycle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleSummary:
    budget_cycle_id: uuid.UUID
    start_date: date
    end_date: date
    scored_days: int
    vacation_days: int
    average_score: float | None


def validate_score(score: int) -> None:
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}")


async def get_member(db: AsyncSession, member_id: uuid.UUID) -> FamilyMember:
    member = await db.get(FamilyMember, member_id)
    if member is None:
        raise NotFoundError("Family member not found")
    return member


async def get_daily_score(
    db: AsyncSession, member_id: uuid.UUID, day: date | datetime,
) -> DailyScore | None:
    result = await db.execute(
        select(DailyScore).where(
            DailyScore.family_member_id == member_id,
            DailyScore.date == to_date(day),
        )
    )
    return result.scalar_one_or_none()


async def list_daily_scores(
    db: AsyncSession, member_id: uuid.UUID, start: date, end: date,
) -> list[DailyScore]:
    """Scores of a member between ``start`` and ``end`` inclusive, by date."""
    result = await db.execute(
        select(DailyScore)
        .where(
            DailyScore.family_member_id == member_id,
            DailyScore.date >= to_date(start),
            DailyScore.date <= to_date(end),
        )
        .order_by(DailyScore.date.asc())
    )
    return list(result.scalars().all())


async def reconcile_daily_score(
    db: AsyncSession,
    member: FamilyMember,
    day: date,
    score: int,
    is_vacation: bool,
    notes: str | None,
) -> DailyScore:
    """Upsert the score for ``(member, day)``. Raises on any failure."""
    cycle = await resolve_budget_cycle(db, member.family_id, day)

    if is_vacation:
        family_settings = await db.get(FamilySettings, member.family_id)
        if family_settings is not None and family_settings.vacation_default_score is not None:
            score = family_settings.vacation_default_score

    notes = notes or None
    record = await get_daily_score(db, member.id, day)
    if record is not None:
        record.score = score
        record.is_vacation = is_vacation
        record.notes = notes
    else:
        record = DailyScore(
            family_member_id=member.id,
            budget_cycle_id=cycle.id,
            score=score,
            date=day,
            is_vacation=is_vacation,
            notes=notes,
        )
        db.add(record)

    await db.flush()
    await db.refresh(record)
    return record


async def save_daily_score(
    db: AsyncSession,
    member_id: uuid.UUID,
    day: date | datetime,
    score: int,
    is_vacation: bool = False,
    notes: str | None = None,
) -> Result[DailyScore]:
    """Create or update the member's score for ``day``.

    When ``is_vacation`` is set and the family has a vacation default score,
    that score replaces the submitted one.
    """
    try:
        validate_score(score)
        member = await get_member(db, member_id)
        record = await reconcile_daily_score(
            db, member, to_date(day), score, is_vacation, notes,
        )
    except AllowanceError as exc:
        logger.warning("Saving score for member %s on %s failed: %s", member_id, day, exc)
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Saving score for member %s on %s failed: %s", member_id, day, exc)
        return Result.fail(PersistenceError("Failed to save daily score"))

    return Result.ok(record)


async def get_score_by_id(db: AsyncSession, score_id: uuid.UUID) -> DailyScore | None:
    return await db.get(DailyScore, score_id)


async def delete_daily_score(db: AsyncSession, score_id: uuid.UUID) -> Result[bool]:
    """Delete a score. An unknown id is reported as a failure, not raised."""
    try:
        record = await db.get(DailyScore, score_id)
        if record is None:
            return Result.fail(NotFoundError("Daily score not found"))
        await db.delete(record)
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error("Deleting score %s failed: %s", score_id, exc)
        return Result.fail(PersistenceError("Failed to delete daily score"))

    logger.info("Deleted daily score %s", score_id)
    return Result.ok(True)


async def summarize_cycle(
    db: AsyncSession, member_id: uuid.UUID, cycle: BudgetCycle,
) -> CycleSummary:
    """Aggregate a member's scores inside one budget cycle."""
    result = await db.execute(
        select(
            func.count(DailyScore.id),
            func.coalesce(func.sum(case((DailyScore.is_vacation.is_(True), 1), else_=0)), 0),
            func.avg(DailyScore.score),
        ).where(
            DailyScore.family_member_id == member_id,
            DailyScore.date >= cycle.start_date,
            DailyScore.date <= cycle.end_date,
        )
    )
    scored_days, vacation_days, average = result.one()
    return CycleSummary(
        budget_cycle_id=cycle.id,
        start_date=cycle.start_date,
        end_date=cycle.end_date,
        scored_days=scored_days or 0,
        vacation_days=int(vacation_days or 0),
        average_score=round(float(average), 2) if average is not None else None,
    )
