import uuid
from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.errors import AuthRequired, NotFoundError, PermissionDenied
from allowance.core.result import http_error
from allowance.core.security import decode_token
from allowance.database import get_db
from allowance.models.member import ROLE_PARENT, FamilyMember
from allowance.models.user import User
from allowance.services.family_service import find_membership

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/sign-in")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Extract and validate the JWT from the Authorization header.

    Returns the User ORM instance for the authenticated user.

    Raises:
        HTTPException 401: If the token is missing, invalid, or the user
            does not exist.
    """
    credentials_exception = http_error(AuthRequired("Could not validate credentials"))

    try:
        payload = decode_token(token)
        user_id: str | None = payload.get("sub")
        token_type: str | None = payload.get("type")
        if user_id is None or token_type != "access":
            raise credentials_exception
        user = await db.get(User, uuid.UUID(user_id))
    except (JWTError, ValueError):
        raise credentials_exception

    if user is None:
        raise credentials_exception

    return user


async def _membership_or_403(
    db: AsyncSession, user: User, family_id: uuid.UUID, parent_only: bool,
) -> FamilyMember:
    membership = await find_membership(db, user.id, family_id)
    if membership is None:
        raise http_error(PermissionDenied("You are not a member of this family"))
    if parent_only and membership.role != ROLE_PARENT:
        raise http_error(PermissionDenied("Parent role required"))
    return membership


def require_family_member(parent_only: bool = False):
    """Factory that returns a dependency checking family membership.

    Verifies the authenticated user belongs to the family identified by
    the ``family_id`` path parameter and returns the caller's own
    :class:`FamilyMember` row.

    Usage::

        @router.get("/families/{family_id}/members")
        async def list_members(
            family_id: uuid.UUID,
            membership: FamilyMember = Depends(require_family_member()),
        ):
            ...
    """

    async def _check_family_member(
        family_id: uuid.UUID,
        current_user: Annotated[User, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> FamilyMember:
        return await _membership_or_403(db, current_user, family_id, parent_only)

    return _check_family_member


def require_member_access(parent_only: bool = False):
    """Factory for routes addressed by ``member_id``.

    Returns the addressed member once the caller is known to belong to the
    same family (and to be a parent there, with ``parent_only``).
    """

    async def _check_member_access(
        member_id: uuid.UUID,
        current_user: Annotated[User, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> FamilyMember:
        member = await db.get(FamilyMember, member_id)
        if member is None:
            raise http_error(NotFoundError("Family member not found"))
        await _membership_or_403(db, current_user, member.family_id, parent_only)
        return member

    return _check_member_access
