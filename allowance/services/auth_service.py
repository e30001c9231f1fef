"""Auth Service.

Sign-in, sign-up, sign-out, session refresh and password reset against the
local identity tables. Every operation returns a :class:`Result` so callers
branch on ``result.error`` instead of catching exceptions.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from allowance.config import settings
from allowance.core.errors import (
    AllowanceError,
    AuthRequired,
    ConflictError,
    PersistenceError,
    RateLimited,
    ValidationError,
)
from allowance.core.rate_limit import LoginAttemptTracker, login_attempts
from allowance.core.result import Result
from allowance.core.security import (
    create_access_token,
    create_password_reset_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    hash_token,
    verify_password,
)
from allowance.models.member import FamilyMember
from allowance.models.user import RefreshToken, User
from allowance.schemas.auth import SessionInfo, SessionProfile, UserResponse
from allowance.schemas.member import MemberResponse
from allowance.services.auth_events import AuthEvent, AuthStateNotifier, auth_notifier
from allowance.services.email_service import EmailClient, email_client

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _password_fingerprint(user: User) -> str:
    # Changes whenever the password does, so a reset token works only once
    return hash_token(user.password_hash)[:16]


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def _issue_session(db: AsyncSession, user: User) -> SessionInfo:
    """Create an access + refresh token pair and persist the refresh token."""
    access_token = create_access_token(data={"sub": str(user.id)})
    raw_refresh = create_refresh_token(data={"sub": str(user.id)})

    db.add(RefreshToken(
        user_id=user.id,
        token_hash=hash_token(raw_refresh),
        expires_at=datetime.now(timezone.utc)
        + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    await db.flush()

    return SessionInfo(
        access_token=access_token,
        refresh_token=raw_refresh,
        user=UserResponse.model_validate(user),
    )


async def sign_in(
    db: AsyncSession,
    email: str,
    password: str,
    tracker: LoginAttemptTracker = login_attempts,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[SessionInfo]:
    """Authenticate with email + password.

    After too many failures for the same email the attempt is refused with
    ``RateLimited`` before the credentials are looked at.
    """
    if tracker.is_blocked(email):
        logger.warning("Sign-in refused for %s: too many attempts", normalize_email(email))
        return Result.fail(RateLimited())

    try:
        user = await get_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            tracker.record_failure(email)
            return Result.fail(AuthRequired("Invalid email or password"))

        tracker.reset(email)
        session = await _issue_session(db, user)
    except SQLAlchemyError as exc:
        logger.error("Sign-in for %s failed: %s", normalize_email(email), exc)
        return Result.fail(PersistenceError("Sign-in failed"))

    await notifier.publish(AuthEvent.SIGNED_IN, session)
    return Result.ok(session)


async def create_user(db: AsyncSession, email: str, password: str) -> User:
    """Insert a new account. Raises ``ConflictError`` when the email is taken."""
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("Email already registered")

    user = User(email=normalize_email(email), password_hash=get_password_hash(password))
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


async def sign_up(
    db: AsyncSession,
    email: str,
    password: str,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[SessionInfo]:
    """Create an account and sign it in."""
    try:
        user = await create_user(db, email, password)
        session = await _issue_session(db, user)
    except AllowanceError as exc:
        return Result.fail(exc)
    except SQLAlchemyError as exc:
        logger.error("Sign-up for %s failed: %s", normalize_email(email), exc)
        return Result.fail(PersistenceError("Sign-up failed"))

    await notifier.publish(AuthEvent.SIGNED_IN, session)
    return Result.ok(session)


async def sign_out(
    db: AsyncSession,
    refresh_token: str,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[None]:
    """Revoke the given refresh token. Unknown tokens are ignored."""
    try:
        result = await db.execute(
            select(RefreshToken).where(
                RefreshToken.token_hash == hash_token(refresh_token),
                RefreshToken.revoked == False,  # noqa: E712
            )
        )
        stored_token = result.scalar_one_or_none()
        if stored_token is not None:
            stored_token.revoked = True
            await db.flush()
    except SQLAlchemyError as exc:
        logger.error("Sign-out failed: %s", exc)
        return Result.fail(PersistenceError("Sign-out failed"))

    await notifier.publish(AuthEvent.SIGNED_OUT, None)
    return Result.ok()


async def refresh_session(
    db: AsyncSession,
    refresh_token: str,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[SessionInfo]:
    """Exchange a valid refresh token for a new token pair (rotation)."""
    try:
        payload = decode_token(refresh_token)
    except JWTError:
        return Result.fail(AuthRequired("Invalid refresh token"))
    if payload.get("sub") is None or payload.get("type") != "refresh":
        return Result.fail(AuthRequired("Invalid refresh token"))

    try:
        result = await db.execute(
            select(RefreshToken).where(
                RefreshToken.token_hash == hash_token(refresh_token),
                RefreshToken.revoked == False,  # noqa: E712
            )
        )
        stored_token = result.scalar_one_or_none()
        if stored_token is None:
            return Result.fail(AuthRequired("Refresh token not found or already revoked"))

        expires = stored_token.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if expires < datetime.now(timezone.utc):
            return Result.fail(AuthRequired("Refresh token expired"))

        stored_token.revoked = True
        user = await db.get(User, uuid.UUID(payload["sub"]))
        if user is None:
            return Result.fail(AuthRequired("User not found"))
        session = await _issue_session(db, user)
    except SQLAlchemyError as exc:
        logger.error("Session refresh failed: %s", exc)
        return Result.fail(PersistenceError("Session refresh failed"))

    await notifier.publish(AuthEvent.TOKEN_REFRESHED, session)
    return Result.ok(session)


async def request_password_reset(
    db: AsyncSession,
    email: str,
    mailer: EmailClient = email_client,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[None]:
    """Mail a reset link. Unknown addresses report success as well."""
    try:
        user = await get_user_by_email(db, email)
    except SQLAlchemyError as exc:
        logger.error("Password reset lookup failed: %s", exc)
        return Result.fail(PersistenceError("Password reset failed"))

    if user is None:
        logger.info("Password reset requested for unknown email")
        return Result.ok()

    token = create_password_reset_token(
        {"sub": str(user.id), "pwd": _password_fingerprint(user)}
    )
    link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    await mailer.send(
        "Reset your password",
        "Someone asked to reset the password of your allowance tracker account.\n\n"
        f"Open this link to choose a new password:\n{link}\n\n"
        f"The link is valid for {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes. "
        "If you did not ask for this, you can ignore this mail.",
        user.email,
    )
    await notifier.publish(AuthEvent.PASSWORD_RECOVERY, None)
    return Result.ok()


async def confirm_password_reset(
    db: AsyncSession,
    token: str,
    new_password: str,
    new_password_confirm: str,
    notifier: AuthStateNotifier = auth_notifier,
) -> Result[None]:
    """Set a new password from a reset token and revoke all sessions."""
    if new_password != new_password_confirm:
        return Result.fail(ValidationError("Passwords do not match"))

    try:
        payload = decode_token(token)
    except JWTError:
        return Result.fail(ValidationError("Reset link is invalid or has expired"))
    if payload.get("type") != "password_reset" or payload.get("sub") is None:
        return Result.fail(ValidationError("Reset link is invalid or has expired"))

    try:
        user = await db.get(User, uuid.UUID(payload["sub"]))
        if user is None or payload.get("pwd") != _password_fingerprint(user):
            return Result.fail(ValidationError("Reset link is invalid or has expired"))

        user.password_hash = get_password_hash(new_password)
        await db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user.id)
            .values(revoked=True)
        )
        await db.flush()
    except SQLAlchemyError as exc:
        logger.error("Password reset failed: %s", exc)
        return Result.fail(PersistenceError("Password reset failed"))

    logger.info("Password reset for user %s", user.id)
    await notifier.publish(AuthEvent.USER_UPDATED, None)
    return Result.ok()


async def get_linked_member(db: AsyncSession, user_id: uuid.UUID) -> FamilyMember | None:
    """The family member claimed by ``user_id``, or None for a new account."""
    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.user_id == user_id)
        .order_by(FamilyMember.created_at.asc())
        .limit(1)
    )
    return result.scalars().first()


async def get_session_profile(db: AsyncSession, user: User) -> SessionProfile:
    member = await get_linked_member(db, user.id)
    return SessionProfile(
        user=UserResponse.model_validate(user),
        family_member=MemberResponse.model_validate(member) if member is not None else None,
    )
