"""Authentication router.

Endpoints for sign-up, sign-in, sign-out, token refresh, password reset and
the current session.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.core.dependencies import get_current_user
from allowance.core.rate_limit import LoginAttemptTracker, get_login_attempts, limiter
from allowance.core.result import unwrap
from allowance.database import get_db
from allowance.models.user import User
from allowance.schemas.auth import (
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    SessionInfo,
    SessionProfile,
    SignInRequest,
    SignUpRequest,
)
from allowance.services import auth_service
from allowance.services.email_service import EmailClient, get_email_client

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/sign-up", response_model=SessionInfo, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def sign_up(
    request: Request,
    body: SignUpRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a new account and return its first session."""
    return unwrap(await auth_service.sign_up(db, body.email, body.password))


@router.post("/sign-in", response_model=SessionInfo)
@limiter.limit("20/minute")
async def sign_in(
    request: Request,
    body: SignInRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    tracker: Annotated[LoginAttemptTracker, Depends(get_login_attempts)],
):
    """Authenticate with email + password.

    Five failed attempts for the same email within 15 minutes lock that
    email out (429) until the window has passed.
    """
    return unwrap(await auth_service.sign_in(db, body.email, body.password, tracker=tracker))


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Revoke the given refresh token."""
    unwrap(await auth_service.sign_out(db, body.refresh_token))


@router.post("/refresh", response_model=SessionInfo)
async def refresh(
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Exchange a refresh token for a new token pair."""
    return unwrap(await auth_service.refresh_session(db, body.refresh_token))


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
async def reset_password(
    request: Request,
    body: PasswordResetRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    mailer: Annotated[EmailClient, Depends(get_email_client)],
):
    unwrap(await auth_service.request_password_reset(db, body.email, mailer=mailer))
    return MessageResponse(
        message="If an account exists for this email, a reset link has been sent.",
    )


@router.post("/reset-password/confirm", response_model=MessageResponse)
async def confirm_reset_password(
    body: PasswordResetConfirm,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    unwrap(await auth_service.confirm_password_reset(
        db, body.token, body.new_password, body.new_password_confirm,
    ))
    return MessageResponse(message="Password updated. Please sign in again.")


@router.get("/session", response_model=SessionProfile)
async def get_session(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: User = Depends(get_current_user),
):
    """Current user and the family member profile linked to it, if any."""
    return await auth_service.get_session_profile(db, current_user)
