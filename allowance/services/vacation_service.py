"""Vacation Service.

Mark or unmark a range of days as vacation for one family member. Each day
is written through the regular score reconciliation in its own savepoint;
a failing day is logged and counted but never stops the remaining days and
never rolls back days that already succeeded.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.config import settings
from allowance.core.errors import AllowanceError, PersistenceError, ValidationError
from allowance.core.result import Result
from allowance.dates import day_count, get_date_range, to_date
from allowance.models.family import FamilySettings
from allowance.models.member import FamilyMember
from allowance.services.score_service import get_daily_score, get_member, reconcile_daily_score

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VacationSummary:
    success_count: int
    error_count: int

    @property
    def total_days(self) -> int:
        return self.success_count + self.error_count


def validate_vacation_range(start: date, end: date, max_days: int) -> None:
    if end < start:
        raise ValidationError("End date must not be before start date")
    if day_count(start, end) > max_days:
        raise ValidationError(f"Date range too large (maximum {max_days} days)")


async def _apply_day(
    db: AsyncSession,
    member: FamilyMember,
    day: date,
    set_vacation: bool,
    fallback_score: int,
) -> None:
    existing = await get_daily_score(db, member.id, day)
    if set_vacation:
        score = existing.score if existing is not None else fallback_score
        notes = existing.notes if existing is not None else None
        await reconcile_daily_score(db, member, day, score, True, notes)
    elif existing is not None and existing.is_vacation:
        await reconcile_daily_score(db, member, day, existing.score, False, existing.notes)


async def apply_vacation(
    db: AsyncSession,
    member_id: uuid.UUID,
    start: date | datetime,
    end: date | datetime,
    set_vacation: bool,
    max_days: int | None = None,
) -> Result[VacationSummary]:
    """Set or clear the vacation flag on every day from ``start`` to ``end``.

    Setting vacation keeps an existing score (or uses the family's vacation
    default for days without one) and lets the reconciler apply the
    configured default. Clearing only touches days currently flagged as
    vacation.

    Returns a failed result without side effects when the range is inverted
    or longer than ``BULK_VACATION_MAX_DAYS``.
    """
    start, end = to_date(start), to_date(end)
    try:
        validate_vacation_range(start, end, max_days or settings.BULK_VACATION_MAX_DAYS)
        member = await get_member(db, member_id)
        family_settings = await db.get(FamilySettings, member.family_id)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Vacation update for member %s failed: %s", member_id, exc)
        return Result.fail(PersistenceError("Failed to load family member"))

    fallback_score = settings.DEFAULT_VACATION_SCORE
    if family_settings is not None and family_settings.vacation_default_score is not None:
        fallback_score = family_settings.vacation_default_score

    success_count = 0
    error_count = 0
    # Days run one after another so a missing budget cycle is only created once
    for day in get_date_range(start, end):
        try:
            async with db.begin_nested():
                await _apply_day(db, member, day, set_vacation, fallback_score)
        except (AllowanceError, SQLAlchemyError):
            logger.exception("Vacation update failed for member %s on %s", member_id, day)
            error_count += 1
        else:
            success_count += 1

    logger.info(
        "Vacation %s for member %s, %s..%s: %d ok, %d failed",
        "set" if set_vacation else "cleared",
        member_id, start, end, success_count, error_count,
    )
    return Result.ok(VacationSummary(success_count=success_count, error_count=error_count))
