from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.config import settings
from couponhub.core.db import utcnow
from couponhub.core.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from couponhub.core.security import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_reset_token,
    hash_password,
    verify_password,
)
from couponhub.core.sessions import AccountLocked, SessionError, session_manager
from couponhub.models.user import User
from couponhub.models.verification_token import PASSWORD_RESET_PREFIX, VerificationToken
from couponhub.schemas.auth import RegisterRequest, TokenPair

logger = logging.getLogger(__name__)


class LoginFailed(Unauthenticated):
    """Bad credentials. Carries the matched account (if any) so the caller can audit the attempt."""

    default_message = "Invalid email or password"

    def __init__(self, user: Optional[User] = None, attempts: int = 0):
        super().__init__()
        self.user = user
        self.attempts = attempts


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == normalize_email(email)))
    return res.scalar_one_or_none()


async def register(db: AsyncSession, data: RegisterRequest) -> User:
    email = normalize_email(data.email)
    if await get_user_by_email(db, email) is not None:
        raise Conflict("User with this email already exists")

    user = User(
        email=email,
        name=data.name.strip(),
        phone=data.phone,
        password_hash=hash_password(data.password),
        role="USER",
        is_active=True,
        settings={},
    )
    try:
        db.add(user)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(user)
    logger.info("User registered: %s (%s)", user.email, user.id)
    return user


def _issue_tokens(user: User, session_id: str) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user_id=user.id, role=user.role, session_id=session_id),
        refresh_token=create_refresh_token(user_id=user.id, session_id=session_id),
    )


async def login(db: AsyncSession, *, email: str, password: str, ip_address: str, user_agent: str) -> tuple[User, TokenPair]:
    """
    Check credentials and open a tracked session.

    Locked accounts are refused before the password is checked. A wrong password
    counts towards the lockout threshold.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise LoginFailed()

    try:
        session_manager.check_lockout(user.id)
    except AccountLocked as e:
        raise Forbidden(str(e)) from e

    if not verify_password(password, user.password_hash):
        attempts = session_manager.record_failed_attempt(user.id)
        raise LoginFailed(user, attempts)

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    session_manager.clear_failed_attempts(user.id)
    sid = session_manager.create_session(user.id, ip_address=ip_address, user_agent=user_agent)
    return user, _issue_tokens(user, sid)


async def refresh(db: AsyncSession, refresh_token: str) -> TokenPair:
    try:
        payload = decode_token(refresh_token, expected_type="refresh")
    except TokenError as e:
        raise Unauthenticated("Invalid or expired refresh token") from e

    try:
        session_manager.validate(payload["sid"], payload["sub"])
    except SessionError as e:
        raise Unauthenticated(str(e)) from e

    user = await db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise Unauthenticated("User not found or inactive")
    return _issue_tokens(user, payload["sid"])


def logout(session_id: Optional[str]) -> None:
    if session_id:
        session_manager.invalidate(session_id)


# -------------------------
# Password reset
# -------------------------
async def request_password_reset(db: AsyncSession, email: str) -> Optional[tuple[User, str]]:
    """
    Issue a fresh single-use reset token, replacing any earlier ones.
    Returns None for unknown or inactive accounts; callers must answer identically either way.
    """
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return None

    identifier = f"{PASSWORD_RESET_PREFIX}{user.id}"
    token = generate_reset_token()
    try:
        await db.execute(delete(VerificationToken).where(VerificationToken.identifier == identifier))
        db.add(
            VerificationToken(
                identifier=identifier,
                token=token,
                expires=utcnow() + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return user, token


async def confirm_password_reset(db: AsyncSession, token: str, new_password: str) -> User:
    res = await db.execute(
        select(VerificationToken).where(
            VerificationToken.token == token,
            VerificationToken.identifier.startswith(PASSWORD_RESET_PREFIX),
        )
    )
    vt = res.scalar_one_or_none()
    if vt is None or vt.expires < utcnow():
        raise ValidationFailed("Invalid or expired token")

    identifier = vt.identifier
    user = await db.get(User, identifier[len(PASSWORD_RESET_PREFIX):])
    if user is None:
        raise NotFound("User not found")

    try:
        user.password_hash = hash_password(new_password)
        await db.execute(delete(VerificationToken).where(VerificationToken.identifier == identifier))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    session_manager.force_logout_user(user.id, "Password reset")
    session_manager.clear_failed_attempts(user.id)
    return user


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not user.password_hash:
        raise ValidationFailed("Password login is not enabled for this account")
    if not verify_password(current_password, user.password_hash):
        raise ValidationFailed("Current password is incorrect")

    try:
        user.password_hash = hash_password(new_password)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
