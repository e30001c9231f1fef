"""Family Service.

Families, their settings row and their members.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.config import settings
from allowance.core.errors import (
    AllowanceError,
    ConfigurationMissing,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from allowance.core.result import Result
from allowance.models.family import Family, FamilySettings
from allowance.models.member import ROLE_CHILD, ROLE_PARENT, ROLES, FamilyMember
from allowance.models.user import User

logger = logging.getLogger(__name__)


async def find_membership(
    db: AsyncSession, user_id: uuid.UUID, family_id: uuid.UUID,
) -> FamilyMember | None:
    result = await db.execute(
        select(FamilyMember).where(
            FamilyMember.user_id == user_id,
            FamilyMember.family_id == family_id,
        )
    )
    return result.scalars().first()


async def get_family_for_user(db: AsyncSession, user_id: uuid.UUID) -> Family | None:
    """The family the user owns or has joined."""
    result = await db.execute(
        select(Family)
        .outerjoin(FamilyMember, FamilyMember.family_id == Family.id)
        .where(or_(Family.owner_id == user_id, FamilyMember.user_id == user_id))
        .order_by(Family.created_at.asc())
        .limit(1)
    )
    return result.scalars().first()


async def get_family(db: AsyncSession, family_id: uuid.UUID) -> Result[Family]:
    try:
        result = await db.execute(select(Family).where(Family.id == family_id))
        family = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.error("Loading family %s failed: %s", family_id, exc)
        return Result.fail(PersistenceError("Failed to fetch family"))
    if family is None:
        return Result.fail(NotFoundError("Family not found"))
    return Result.ok(family)


async def create_family(db: AsyncSession, user: User, name: str) -> Result[Family]:
    """Create a family with default settings and the creator as a parent member."""
    try:
        if await get_family_for_user(db, user.id) is not None:
            return Result.fail(ConflictError("You already belong to a family"))

        async with db.begin_nested():
            family = Family(name=name, owner_id=user.id)
            db.add(family)
            await db.flush()

            db.add(FamilySettings(
                family_id=family.id,
                budget_cycle_start_day=settings.DEFAULT_BUDGET_CYCLE_START_DAY,
                vacation_default_score=settings.DEFAULT_VACATION_SCORE,
            ))
            db.add(FamilyMember(
                family_id=family.id,
                user_id=user.id,
                name=user.email.split("@")[0] or "Parent",
                role=ROLE_PARENT,
            ))
            await db.flush()
        await db.refresh(family)
    except SQLAlchemyError as exc:
        logger.error("Creating family for user %s failed: %s", user.id, exc)
        return Result.fail(PersistenceError("Failed to create family"))

    logger.info("Created family %s for user %s", family.id, user.id)
    return Result.ok(family)


async def update_family(db: AsyncSession, family: Family, name: str | None) -> Result[Family]:
    try:
        if name is not None:
            family.name = name
        await db.flush()
        await db.refresh(family)
    except SQLAlchemyError as exc:
        logger.error("Updating family %s failed: %s", family.id, exc)
        return Result.fail(PersistenceError("Failed to update family"))
    return Result.ok(family)


async def get_settings(db: AsyncSession, family_id: uuid.UUID) -> Result[FamilySettings]:
    try:
        result = await db.execute(
            select(FamilySettings).where(FamilySettings.family_id == family_id)
        )
        family_settings = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.error("Loading settings of family %s failed: %s", family_id, exc)
        return Result.fail(PersistenceError("Failed to fetch family settings"))
    if family_settings is None:
        return Result.fail(ConfigurationMissing("Family settings not found"))
    return Result.ok(family_settings)


async def update_settings(
    db: AsyncSession, family_id: uuid.UUID, changes: dict,
) -> Result[FamilySettings]:
    """Apply ``changes`` to the settings row.

    A new ``budget_cycle_start_day`` only shapes cycles created from now on;
    existing cycles keep their bounds.
    """
    start_day = changes.get("budget_cycle_start_day")
    if "budget_cycle_start_day" in changes and (start_day is None or not 1 <= start_day <= 31):
        return Result.fail(ValidationError("budget_cycle_start_day must be between 1 and 31"))
    vacation_score = changes.get("vacation_default_score")
    if vacation_score is not None and not 1 <= vacation_score <= 5:
        return Result.fail(ValidationError("vacation_default_score must be between 1 and 5"))

    result = await get_settings(db, family_id)
    if not result.success:
        return result

    family_settings = result.data
    try:
        for field in ("budget_cycle_start_day", "vacation_default_score"):
            if field in changes:
                setattr(family_settings, field, changes[field])
        await db.flush()
        await db.refresh(family_settings)
    except SQLAlchemyError as exc:
        logger.error("Updating settings of family %s failed: %s", family_id, exc)
        return Result.fail(PersistenceError("Failed to update family settings"))
    return Result.ok(family_settings)


async def list_members(db: AsyncSession, family_id: uuid.UUID) -> list[FamilyMember]:
    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.family_id == family_id)
        .order_by(FamilyMember.created_at.asc(), FamilyMember.name.asc())
    )
    return list(result.scalars().all())


def _resolve_allowance(role: str, base_allowance: Decimal | None) -> Decimal | None:
    if role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}")
    if role == ROLE_PARENT:
        return None
    if base_allowance is None:
        return Decimal("0")
    if base_allowance < 0:
        raise ValidationError("Base allowance must not be negative")
    return base_allowance


async def add_member(
    db: AsyncSession,
    family_id: uuid.UUID,
    name: str,
    role: str,
    base_allowance: Decimal | None = None,
) -> Result[FamilyMember]:
    try:
        member = FamilyMember(
            family_id=family_id,
            name=name,
            role=role,
            base_allowance=_resolve_allowance(role, base_allowance),
        )
        db.add(member)
        await db.flush()
        await db.refresh(member)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Adding member to family %s failed: %s", family_id, exc)
        return Result.fail(PersistenceError("Failed to add family member"))

    logger.info("Added %s %s to family %s", role, member.id, family_id)
    return Result.ok(member)


async def update_member(
    db: AsyncSession, member: FamilyMember, changes: dict,
) -> Result[FamilyMember]:
    """Update name, role and allowance.

    Switching to ``parent`` clears the allowance; a child always keeps a
    non-negative allowance.
    """
    try:
        role = changes.get("role") or member.role
        if "base_allowance" in changes and role == ROLE_CHILD:
            allowance = changes["base_allowance"]
        else:
            allowance = member.base_allowance
        allowance = _resolve_allowance(role, allowance)

        if changes.get("name"):
            member.name = changes["name"]
        member.role = role
        member.base_allowance = allowance
        await db.flush()
        await db.refresh(member)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Updating member %s failed: %s", member.id, exc)
        return Result.fail(PersistenceError("Failed to update family member"))
    return Result.ok(member)


async def delete_member(db: AsyncSession, family: Family, member: FamilyMember) -> Result[bool]:
    if member.user_id is not None and member.user_id == family.owner_id:
        return Result.fail(ConflictError("The family owner cannot be removed"))
    try:
        await db.delete(member)
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error("Deleting member %s failed: %s", member.id, exc)
        return Result.fail(PersistenceError("Failed to delete family member"))

    logger.info("Removed member %s from family %s", member.id, family.id)
    return Result.ok(True)
