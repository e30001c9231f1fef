"""Budget Cycle Service.

Find the budget cycle covering a date, or derive it from the family's
``budget_cycle_start_day`` and persist it.

A cycle runs from the start day of one month to the day before the start
day of the next month. When the start day does not exist in a month (31 in
April, 30 in February) it is clamped to that month's last day, so the
cycles of a family tile the calendar without gaps or overlaps.
"""

import calendar
import logging
import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.errors import AllowanceError, ConfigurationMissing, PersistenceError, ValidationError
from allowance.core.result import Result
from allowance.dates import to_date
from allowance.models.budget_cycle import BudgetCycle
from allowance.models.family import FamilySettings

logger = logging.getLogger(__name__)


def _clamped_day(year: int, month: int, start_day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(start_day, last_day))


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def compute_cycle_bounds(day: date, start_day: int) -> tuple[date, date]:
    """Return the inclusive ``(start, end)`` of the cycle containing ``day``.

    >>> compute_cycle_bounds(date(2024, 3, 10), 25)
    (datetime.date(2024, 2, 25), datetime.date(2024, 3, 24))
    """
    if not 1 <= start_day <= 31:
        raise ValidationError(f"budget_cycle_start_day must be 1-31, got {start_day}")

    this_month_start = _clamped_day(day.year, day.month, start_day)
    if day >= this_month_start:
        start = this_month_start
        next_year, next_month = _shift_month(day.year, day.month, 1)
    else:
        prev_year, prev_month = _shift_month(day.year, day.month, -1)
        start = _clamped_day(prev_year, prev_month, start_day)
        next_year, next_month = day.year, day.month

    end = _clamped_day(next_year, next_month, start_day) - timedelta(days=1)
    return start, end


async def find_cycle_for_date(
    db: AsyncSession, family_id: uuid.UUID, day: date,
) -> BudgetCycle | None:
    result = await db.execute(
        select(BudgetCycle)
        .where(
            BudgetCycle.family_id == family_id,
            BudgetCycle.start_date <= day,
            BudgetCycle.end_date >= day,
        )
        .order_by(BudgetCycle.start_date.desc())
        .limit(1)
    )
    return result.scalars().first()


async def _find_exact_cycle(
    db: AsyncSession, family_id: uuid.UUID, start: date, end: date,
) -> BudgetCycle | None:
    result = await db.execute(
        select(BudgetCycle).where(
            BudgetCycle.family_id == family_id,
            BudgetCycle.start_date == start,
            BudgetCycle.end_date == end,
        )
    )
    return result.scalar_one_or_none()


async def _create_cycle(
    db: AsyncSession, family_id: uuid.UUID, start: date, end: date,
) -> BudgetCycle:
    """Insert a cycle, returning the existing row if another request won the race."""
    existing = await _find_exact_cycle(db, family_id, start, end)
    if existing is not None:
        return existing

    cycle = BudgetCycle(family_id=family_id, start_date=start, end_date=end)
    try:
        async with db.begin_nested():
            db.add(cycle)
            await db.flush()
        await db.refresh(cycle)
    except IntegrityError:
        winner = await _find_exact_cycle(db, family_id, start, end)
        if winner is None:
            raise PersistenceError("Failed to create budget cycle")
        logger.info(
            "Budget cycle %s..%s for family %s was created concurrently",
            start, end, family_id,
        )
        return winner

    logger.info("Created budget cycle %s..%s for family %s", start, end, family_id)
    return cycle


async def resolve_budget_cycle(
    db: AsyncSession, family_id: uuid.UUID, day: date | datetime,
) -> BudgetCycle:
    """Return the cycle covering ``day``, creating it from the family settings if needed.

    Raises:
        ConfigurationMissing: The family has no settings row.
        PersistenceError: The store rejected the lookup or the insert.
    """
    day = to_date(day)
    try:
        cycle = await find_cycle_for_date(db, family_id, day)
        if cycle is not None:
            return cycle

        family_settings = await db.get(FamilySettings, family_id)
        if family_settings is None:
            raise ConfigurationMissing(
                "Family settings not found; configure the budget cycle start day first"
            )

        start, end = compute_cycle_bounds(day, family_settings.budget_cycle_start_day)
        return await _create_cycle(db, family_id, start, end)
    except SQLAlchemyError as exc:
        logger.error("Budget cycle lookup failed for family %s: %s", family_id, exc)
        raise PersistenceError("Failed to resolve budget cycle") from exc


async def get_cycle_for_date(
    db: AsyncSession, family_id: uuid.UUID, day: date,
) -> Result[BudgetCycle]:
    try:
        return Result.ok(await resolve_budget_cycle(db, family_id, day))
    except AllowanceError as exc:
        return Result.fail(exc)


async def list_budget_cycles(
    db: AsyncSession, family_id: uuid.UUID,
) -> list[BudgetCycle]:
    result = await db.execute(
        select(BudgetCycle)
        .where(BudgetCycle.family_id == family_id)
        .order_by(BudgetCycle.start_date.desc())
    )
    return list(result.scalars().all())
