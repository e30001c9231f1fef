"""Families router.

Endpoints for creating and viewing a family, its settings and its members.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.dependencies import get_current_user, require_family_member
from allowance.core.result import unwrap
from allowance.database import get_db
from allowance.models.member import FamilyMember
from allowance.models.user import User
from allowance.schemas.family import (
    FamilyCreate,
    FamilyResponse,
    FamilySettingsResponse,
    FamilySettingsUpdate,
    FamilyUpdate,
)
from allowance.schemas.member import MemberCreate, MemberResponse, MemberUpdate
from allowance.services import family_service

router = APIRouter(prefix="/families", tags=["Families"])


@router.post("", response_model=FamilyResponse, status_code=status.HTTP_201_CREATED)
async def create_family(
    body: FamilyCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: User = Depends(get_current_user),
):
    """Create a family owned by the caller, who becomes its first parent."""
    return unwrap(await family_service.create_family(db, current_user, body.name))


@router.get("/mine", response_model=FamilyResponse)
async def get_my_family(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: User = Depends(get_current_user),
):
    family = await family_service.get_family_for_user(db, current_user.id)
    if family is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="You do not belong to a family yet",
        )
    return family


@router.get("/{family_id}", response_model=FamilyResponse)
async def get_family(
    family_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member()),
):
    """Get family details. Requires the caller to be a family member."""
    return unwrap(await family_service.get_family(db, family_id))


@router.put("/{family_id}", response_model=FamilyResponse)
async def update_family(
    family_id: uuid.UUID,
    body: FamilyUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member(parent_only=True)),
):
    """Rename the family. Requires parent role."""
    family = unwrap(await family_service.get_family(db, family_id))
    return unwrap(await family_service.update_family(db, family, body.name))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@router.get("/{family_id}/settings", response_model=FamilySettingsResponse)
async def get_settings(
    family_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member()),
):
    return unwrap(await family_service.get_settings(db, family_id))


@router.put("/{family_id}/settings", response_model=FamilySettingsResponse)
async def update_settings(
    family_id: uuid.UUID,
    body: FamilySettingsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member(parent_only=True)),
):
    """Update the budget cycle start day or the vacation default score.

    A changed start day only applies to budget cycles created afterwards.
    """
    changes = body.model_dump(exclude_unset=True)
    return unwrap(await family_service.update_settings(db, family_id, changes))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{family_id}/members", response_model=list[MemberResponse])
async def list_members(
    family_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member()),
):
    """List all members of a family."""
    return await family_service.list_members(db, family_id)


@router.post(
    "/{family_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    family_id: uuid.UUID,
    body: MemberCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member(parent_only=True)),
):
    return unwrap(await family_service.add_member(
        db, family_id, body.name, body.role, body.base_allowance,
    ))


async def _member_of_family(
    db: AsyncSession, family_id: uuid.UUID, member_id: uuid.UUID,
) -> FamilyMember:
    member = await db.get(FamilyMember, member_id)
    if member is None or member.family_id != family_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Family member not found",
        )
    return member


@router.put("/{family_id}/members/{member_id}", response_model=MemberResponse)
async def update_member(
    family_id: uuid.UUID,
    member_id: uuid.UUID,
    body: MemberUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member(parent_only=True)),
):
    member = await _member_of_family(db, family_id, member_id)
    changes = body.model_dump(exclude_unset=True)
    return unwrap(await family_service.update_member(db, member, changes))


@router.delete("/{family_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(
    family_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    membership: FamilyMember = Depends(require_family_member(parent_only=True)),
):
    """Remove a member together with its scores. The owner cannot be removed."""
    member = await _member_of_family(db, family_id, member_id)
    family = unwrap(await family_service.get_family(db, family_id))
    unwrap(await family_service.delete_member(db, family, member))
