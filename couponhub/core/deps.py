from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.csrf import csrf_tokens
from couponhub.core.db import get_db
from couponhub.core.errors import Forbidden, InvalidCSRF, RateLimited, Unauthenticated
from couponhub.core.ratelimit import RateLimit, rate_limiter
from couponhub.core.security import ADMIN_ROLES, TokenError, decode_token
from couponhub.core.sessions import SessionError, session_manager
from couponhub.models.user import User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass
class RequestContext:
    user: Optional[User]
    session_id: Optional[str]
    ip: str
    user_agent: str
    endpoint: str
    method: str

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role in ADMIN_ROLES


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _security_event(event: str, request: Request, message: str, **extra) -> None:
    logger.warning(
        message,
        extra={"security_event": event, "ip": get_client_ip(request), "path": request.url.path, **extra},
    )


async def _resolve_user(db: AsyncSession, token: str) -> tuple[User, str]:
    """
    Decode the bearer token, check its session is still live and load the user.
    Raises Unauthenticated on any failure.
    """
    try:
        payload = decode_token(token)
    except TokenError as e:
        raise Unauthenticated("Invalid or expired token") from e

    user_id = payload["sub"]
    session_id = payload["sid"]

    try:
        session_manager.validate(session_id, user_id)
    except SessionError as e:
        raise Unauthenticated(str(e)) from e

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("User inactive")

    return user, session_id


def guard(
    *,
    require_auth: bool = False,
    require_admin: bool = False,
    require_csrf: bool = False,
    rate_limit: Optional[RateLimit] = None,
):
    """
    Build the per-endpoint security dependency.

    Checks run in a fixed order: authentication, admin role, CSRF (state-changing
    methods only), rate limit. Body validation happens afterwards, when FastAPI
    parses the endpoint's pydantic model.
    """
    needs_auth = require_auth or require_admin

    async def dependency(
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme),
        db: AsyncSession = Depends(get_db),
    ) -> RequestContext:
        user: Optional[User] = None
        session_id: Optional[str] = None

        if token:
            try:
                user, session_id = await _resolve_user(db, token)
            except Unauthenticated as e:
                if needs_auth:
                    _security_event("auth_failed", request, "Authentication failed: %s" % e.detail)
                    raise

        if needs_auth and user is None:
            _security_event("auth_missing", request, "Authentication required")
            raise Unauthenticated()

        if require_admin and user.role not in ADMIN_ROLES:
            _security_event("forbidden", request, "Non-admin access attempt", user_id=user.id)
            raise Forbidden()

        ip = get_client_ip(request)

        if require_csrf and request.method in STATE_CHANGING_METHODS:
            owner = session_id or f"anon:{ip}"
            if not csrf_tokens.validate(request.headers.get("x-csrf-token"), owner):
                _security_event("csrf_failed", request, "CSRF validation failed")
                raise InvalidCSRF()

        endpoint = _route_template(request)

        if rate_limit is not None:
            identity = user.id if user is not None else ip
            allowed, retry_after = rate_limiter.hit(f"{identity}:{request.method}:{endpoint}", rate_limit)
            if not allowed:
                _security_event("rate_limited", request, "Rate limit exceeded for %s" % identity)
                raise RateLimited(headers={"Retry-After": str(retry_after)})

        return RequestContext(
            user=user,
            session_id=session_id,
            ip=ip,
            user_agent=request.headers.get("user-agent") or "unknown",
            endpoint=endpoint,
            method=request.method,
        )

    return dependency
