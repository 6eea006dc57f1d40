from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import get_db
from couponhub.core.deps import RequestContext, guard
from couponhub.core.ratelimit import RateLimit
from couponhub.integrations.mailer import send_password_reset_email, send_welcome_email
from couponhub.schemas.auth import (
    LoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
)
from couponhub.schemas.common import ApiResponse
from couponhub.schemas.users import UserOut
from couponhub.services import audit
from couponhub.services import auth as auth_service
from couponhub.services.audit import AuditAction

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=ApiResponse[UserOut], status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(10))),
):
    user = await auth_service.register(db, payload)
    await audit.record(
        db, ctx, AuditAction.USER_CREATED, "user", resource_id=user.id, resource_name=user.email, actor=user
    )
    background.add_task(send_welcome_email, user.email, user.name)
    return ApiResponse(data=UserOut.model_validate(user), message="Account created successfully")


@router.post("/login", response_model=ApiResponse[TokenPair])
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(20))),
):
    try:
        user, tokens = await auth_service.login(
            db, email=payload.email, password=payload.password, ip_address=ctx.ip, user_agent=ctx.user_agent
        )
    except auth_service.LoginFailed as e:
        await audit.record(
            db,
            ctx,
            AuditAction.LOGIN_FAILED,
            "auth",
            resource_id=e.user.id if e.user else None,
            resource_name=payload.email,
            metadata={"attempts": e.attempts},
            actor=e.user,
            actor_email=payload.email,
        )
        raise

    await audit.record(db, ctx, AuditAction.LOGIN_SUCCESS, "auth", resource_id=user.id, resource_name=user.email, actor=user)
    return ApiResponse(data=tokens, message="Signed in")


@router.post("/refresh", response_model=ApiResponse[TokenPair])
async def refresh(
    payload: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(60))),
):
    return ApiResponse(data=await auth_service.refresh(db, payload.refresh_token))


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(require_auth=True)),
):
    auth_service.logout(ctx.session_id)
    await audit.record(db, ctx, AuditAction.LOGOUT, "auth", resource_id=ctx.user.id, resource_name=ctx.user.email)
    return ApiResponse(message="Signed out")


@router.post("/password/reset/request", response_model=ApiResponse[dict])
async def request_password_reset(
    payload: PasswordResetRequest,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(5))),
):
    issued = await auth_service.request_password_reset(db, payload.email)
    if issued is not None:
        user, token = issued
        background.add_task(send_password_reset_email, user.email, user.name, token)
    # same answer whether or not the account exists
    return ApiResponse(message="If an account exists for that email, a reset link has been sent")


@router.post("/password/reset/confirm", response_model=ApiResponse[dict])
async def confirm_password_reset(
    payload: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
    ctx: RequestContext = Depends(guard(rate_limit=RateLimit(10))),
):
    user = await auth_service.confirm_password_reset(db, payload.token, payload.password)
    await audit.record(
        db,
        ctx,
        AuditAction.PASSWORD_CHANGED,
        "user",
        resource_id=user.id,
        resource_name=user.email,
        metadata={"via": "reset"},
        actor=user,
    )
    return ApiResponse(message="Password has been reset")
