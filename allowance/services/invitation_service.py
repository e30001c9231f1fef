"""Invitation Service.

Invitations let an unlinked family member record be claimed by a new
account. A token is valid for ``INVITATION_EXPIRE_DAYS`` and can be used
once; expired unused invitations can be re-issued with a fresh token.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from allowance.config import settings
from allowance.core.errors import (
    AllowanceError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from allowance.core.result import Result
from allowance.core.security import generate_invitation_token
from allowance.models.invitation import Invitation
from allowance.models.member import FamilyMember
from allowance.models.user import User
from allowance.schemas.auth import SessionInfo
from allowance.schemas.invitation import InvitationDetails
from allowance.services import auth_service
from allowance.services.email_service import EmailClient, email_client

logger = logging.getLogger(__name__)

INVALID_INVITATION = "This invitation link is invalid or has expired."


def build_invitation_link(token: str) -> str:
    return f"{settings.FRONTEND_URL}/join?token={token}"


def _new_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.INVITATION_EXPIRE_DAYS)


async def generate_unique_token(db: AsyncSession) -> str:
    """Generate an invitation token, retrying on collision."""
    for _ in range(10):
        token = generate_invitation_token()
        result = await db.execute(select(Invitation.id).where(Invitation.token == token))
        if result.scalar_one_or_none() is None:
            return token

    raise PersistenceError("Could not generate invitation token")


async def create_invitation(
    db: AsyncSession,
    member: FamilyMember,
    creator: User,
    email: str | None = None,
    mailer: EmailClient = email_client,
) -> Result[Invitation]:
    """Invite someone to claim ``member``. Optionally mails the link to ``email``."""
    if member.user_id is not None:
        return Result.fail(ConflictError("This family member already has an account"))

    try:
        invitation = Invitation(
            family_id=member.family_id,
            family_member_id=member.id,
            token=await generate_unique_token(db),
            email=email,
            role=member.role,
            created_by=creator.id,
            expires_at=_new_expiry(),
        )
        db.add(invitation)
        await db.flush()
        await db.refresh(invitation)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Creating invitation for member %s failed: %s", member.id, exc)
        return Result.fail(PersistenceError("Failed to create invitation"))

    logger.info("Created invitation %s for member %s", invitation.id, member.id)
    if email:
        await mailer.send(
            "You have been invited to a family",
            f"{member.name}, you have been invited to join your family's allowance tracker.\n\n"
            f"Create your account here:\n{build_invitation_link(invitation.token)}\n\n"
            f"The link expires in {settings.INVITATION_EXPIRE_DAYS} days.",
            email,
        )
    return Result.ok(invitation)


async def get_invitation_by_token(db: AsyncSession, token: str) -> Invitation | None:
    result = await db.execute(
        select(Invitation)
        .options(selectinload(Invitation.member))
        .where(Invitation.token == token)
    )
    return result.scalar_one_or_none()


async def get_invitation_details(db: AsyncSession, token: str) -> Result[InvitationDetails]:
    """Look up a usable invitation for the join page."""
    invitation = await get_invitation_by_token(db, token)
    if invitation is None or not invitation.is_usable():
        return Result.fail(NotFoundError(INVALID_INVITATION))

    return Result.ok(InvitationDetails(
        id=invitation.id,
        family_member_id=invitation.family_member_id,
        member_name=invitation.member.name,
        member_role=invitation.member.role,
        role=invitation.role,
        email=invitation.email,
        expires_at=invitation.expires_at,
    ))


async def get_active_invitation(db: AsyncSession, member_id: uuid.UUID) -> Invitation | None:
    """Newest unused, unexpired invitation of a member."""
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.family_member_id == member_id,
            Invitation.used_at.is_(None),
            Invitation.expires_at > datetime.now(timezone.utc),
        )
        .order_by(Invitation.created_at.desc(), Invitation.expires_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def list_expired_invitations(db: AsyncSession, member_id: uuid.UUID) -> list[Invitation]:
    result = await db.execute(
        select(Invitation)
        .where(
            Invitation.family_member_id == member_id,
            Invitation.used_at.is_(None),
            Invitation.expires_at < datetime.now(timezone.utc),
        )
        .order_by(Invitation.created_at.desc())
    )
    return list(result.scalars().all())


async def get_active_invitation_link(db: AsyncSession, member_id: uuid.UUID) -> Result[str]:
    try:
        invitation = await get_active_invitation(db, member_id)
    except SQLAlchemyError as exc:
        logger.error("Loading invitation of member %s failed: %s", member_id, exc)
        return Result.fail(PersistenceError("Failed to fetch invitation"))
    if invitation is None:
        return Result.fail(NotFoundError("No active invitation for this member"))
    return Result.ok(build_invitation_link(invitation.token))


async def regenerate_expired_token(db: AsyncSession, invitation_id: uuid.UUID) -> Result[Invitation]:
    """Give an expired, unused invitation a new token and a fresh expiry."""
    invitation = await db.get(Invitation, invitation_id)
    if invitation is None:
        return Result.fail(NotFoundError("Invitation not found"))
    if invitation.used_at is not None:
        return Result.fail(ConflictError("Invitation has already been used"))
    if not invitation.is_expired():
        return Result.fail(ConflictError("Invitation is still valid"))

    try:
        invitation.token = await generate_unique_token(db)
        invitation.expires_at = _new_expiry()
        await db.flush()
        await db.refresh(invitation)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Regenerating invitation %s failed: %s", invitation.id, exc)
        return Result.fail(PersistenceError("Failed to regenerate invitation"))

    logger.info("Regenerated invitation %s", invitation.id)
    return Result.ok(invitation)


async def accept_invitation(
    db: AsyncSession,
    token: str,
    email: str,
    password: str,
    password_confirm: str,
) -> Result[SessionInfo]:
    """Create an account, link it to the invited member and use up the token."""
    if password != password_confirm:
        return Result.fail(ValidationError("Passwords do not match"))

    try:
        invitation = await get_invitation_by_token(db, token)
        if invitation is None or not invitation.is_usable():
            return Result.fail(ValidationError(INVALID_INVITATION))
        member = invitation.member
        if member.user_id is not None:
            return Result.fail(ConflictError("This family member already has an account"))

        async with db.begin_nested():
            user = await auth_service.create_user(db, email, password)

            # Conditional update so a token is marked used exactly once
            marked = await db.execute(
                update(Invitation)
                .where(Invitation.id == invitation.id, Invitation.used_at.is_(None))
                .values(used_at=datetime.now(timezone.utc))
            )
            if marked.rowcount != 1:
                raise ConflictError("Invitation has already been used")

            member.user_id = user.id
            await db.flush()
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Accepting invitation failed: %s", exc)
        return Result.fail(PersistenceError("Failed to accept invitation"))

    logger.info("Invitation %s accepted, member %s linked to user %s", invitation.id, member.id, user.id)
    return await auth_service.sign_in(db, email, password)
