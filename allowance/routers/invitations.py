"""Invitations router.

Parents invite someone to claim an unlinked family member; the invitee
looks the invitation up by token and accepts it by creating an account.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.dependencies import get_current_user, require_member_access
from allowance.core.errors import PermissionDenied
from allowance.core.rate_limit import limiter
from allowance.core.result import http_error, unwrap
from allowance.database import get_db
from allowance.models.invitation import Invitation
from allowance.models.member import ROLE_PARENT, FamilyMember
from allowance.models.user import User
from allowance.schemas.auth import SessionInfo
from allowance.schemas.invitation import (
    InvitationAccept,
    InvitationCreate,
    InvitationDetails,
    InvitationLinkResponse,
    InvitationResponse,
)
from allowance.services import invitation_service
from allowance.services.email_service import EmailClient, get_email_client
from allowance.services.family_service import find_membership

router = APIRouter(tags=["Invitations"])


def _link_response(invitation: Invitation) -> InvitationLinkResponse:
    return InvitationLinkResponse(
        link=invitation_service.build_invitation_link(invitation.token),
        token=invitation.token,
        expires_at=invitation.expires_at,
    )


@router.post(
    "/members/{member_id}/invitations",
    response_model=InvitationLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    body: InvitationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    mailer: Annotated[EmailClient, Depends(get_email_client)],
    current_user: User = Depends(get_current_user),
    member: FamilyMember = Depends(require_member_access(parent_only=True)),
):
    """Create an invitation link for a member. Requires parent role.

    When ``email`` is given the link is also mailed to that address.
    """
    invitation = unwrap(await invitation_service.create_invitation(
        db, member, current_user, email=body.email, mailer=mailer,
    ))
    return _link_response(invitation)


@router.get("/members/{member_id}/invitations/active", response_model=InvitationLinkResponse)
async def get_active_invitation(
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access(parent_only=True)),
):
    invitation = await invitation_service.get_active_invitation(db, member.id)
    if invitation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active invitation for this member",
        )
    return _link_response(invitation)


@router.get("/members/{member_id}/invitations/expired", response_model=list[InvitationResponse])
async def list_expired_invitations(
    db: Annotated[AsyncSession, Depends(get_db)],
    member: FamilyMember = Depends(require_member_access(parent_only=True)),
):
    return await invitation_service.list_expired_invitations(db, member.id)


@router.post("/invitations/{invitation_id}/regenerate", response_model=InvitationLinkResponse)
async def regenerate_invitation(
    invitation_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: User = Depends(get_current_user),
):
    """Issue a new token for an expired, unused invitation. Requires parent role."""
    invitation = await db.get(Invitation, invitation_id)
    if invitation is not None:
        membership = await find_membership(db, current_user.id, invitation.family_id)
        if membership is None or membership.role != ROLE_PARENT:
            raise http_error(PermissionDenied("Parent role required"))
    invitation = unwrap(await invitation_service.regenerate_expired_token(db, invitation_id))
    return _link_response(invitation)


@router.get("/invitations/{token}", response_model=InvitationDetails)
async def get_invitation(
    token: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Public lookup of an invitation by token, used by the join page."""
    return unwrap(await invitation_service.get_invitation_details(db, token))


@router.post("/invitations/{token}/accept", response_model=SessionInfo)
@limiter.limit("10/minute")
async def accept_invitation(
    request: Request,
    token: str,
    body: InvitationAccept,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create an account, link it to the invited member and sign it in."""
    return unwrap(await invitation_service.accept_invitation(
        db, token, body.email, body.password, body.password_confirm,
    ))
