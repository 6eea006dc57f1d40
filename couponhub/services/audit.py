from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.deps import RequestContext
from couponhub.models.audit_log import AuditLog
from couponhub.models.user import User

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    # users
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    USER_STATUS_CHANGED = "USER_STATUS_CHANGED"
    USER_ROLE_CHANGED = "USER_ROLE_CHANGED"

    # coupons
    COUPON_CREATED = "COUPON_CREATED"
    COUPON_UPDATED = "COUPON_UPDATED"
    COUPON_DELETED = "COUPON_DELETED"
    COUPON_STATUS_CHANGED = "COUPON_STATUS_CHANGED"

    # brands
    BRAND_CREATED = "BRAND_CREATED"
    BRAND_UPDATED = "BRAND_UPDATED"
    BRAND_DELETED = "BRAND_DELETED"
    BRAND_STATUS_CHANGED = "BRAND_STATUS_CHANGED"

    # categories
    CATEGORY_CREATED = "CATEGORY_CREATED"
    CATEGORY_UPDATED = "CATEGORY_UPDATED"
    CATEGORY_DELETED = "CATEGORY_DELETED"
    CATEGORY_STATUS_CHANGED = "CATEGORY_STATUS_CHANGED"

    # submissions
    SUBMISSION_STATUS_CHANGED = "SUBMISSION_STATUS_CHANGED"
    SUBMISSION_MOVED = "SUBMISSION_MOVED"

    # system
    SYSTEM_CONFIG_CHANGED = "SYSTEM_CONFIG_CHANGED"
    BULK_OPERATION = "BULK_OPERATION"
    DATA_EXPORT = "DATA_EXPORT"
    DATA_IMPORT = "DATA_IMPORT"

    # security
    LOGIN_ATTEMPT = "LOGIN_ATTEMPT"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"


def snapshot(obj: Any, fields: tuple[str, ...]) -> dict:
    """JSON-safe dict of selected ORM attributes, for old/new value diffs."""
    return jsonable_encoder({f: getattr(obj, f, None) for f in fields})


async def record(
    db: AsyncSession,
    ctx: RequestContext,
    action: AuditAction,
    resource_type: str,
    *,
    resource_id: Optional[str] = None,
    resource_name: Optional[str] = None,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    metadata: Optional[dict] = None,
    actor: Optional[User] = None,
    actor_email: Optional[str] = None,
) -> None:
    """
    Append one audit entry and commit it.

    Called after the business change has been committed. The entry is written in
    its own session so a failure never rolls back or expires the caller's objects;
    it is logged and swallowed and never turns a successful request into an error.
    """
    actor = actor or ctx.user
    entry = AuditLog(
        action=action.value,
        user_id=actor.id if actor else "anonymous",
        user_email=actor.email if actor else (actor_email or "unknown"),
        user_role=actor.role if actor else "ANONYMOUS",
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        old_values=jsonable_encoder(old_values) if old_values is not None else None,
        new_values=jsonable_encoder(new_values) if new_values is not None else None,
        ip_address=ctx.ip,
        user_agent=ctx.user_agent,
        endpoint=ctx.endpoint,
        method=ctx.method,
        meta=jsonable_encoder(metadata) if metadata is not None else None,
    )
    try:
        async with AsyncSession(bind=db.bind, expire_on_commit=False) as audit_db:
            audit_db.add(entry)
            await audit_db.commit()
    except Exception:
        logger.exception("Failed to write audit log entry %s for %s %s", action.value, resource_type, resource_id)
        return

    logger.info(
        "audit %s %s/%s by %s",
        action.value,
        resource_type,
        resource_id or "-",
        entry.user_email,
        extra={"audit_action": action.value, "user_id": entry.user_id},
    )


async def query(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 50,
    action: Optional[AuditAction] = None,
    user_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> tuple[list[AuditLog], int]:
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= limit <= 100:
        raise ValueError("limit must be between 1 and 100")

    conds = []
    if action is not None:
        conds.append(AuditLog.action == action.value)
    if user_id:
        conds.append(AuditLog.user_id == user_id)
    if resource_type:
        conds.append(AuditLog.resource_type == resource_type)
    if resource_id:
        conds.append(AuditLog.resource_id == resource_id)
    if start_date is not None:
        conds.append(AuditLog.timestamp >= start_date)
    if end_date is not None:
        conds.append(AuditLog.timestamp <= end_date)

    total = (await db.execute(select(func.count()).select_from(AuditLog).where(*conds))).scalar_one()

    res = await db.execute(
        select(AuditLog)
        .where(*conds)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(res.scalars().all()), int(total)
