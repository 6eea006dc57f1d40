from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.db import utcnow
from couponhub.core.security import ADMIN_ROLES
from couponhub.core.sessions import session_manager
from couponhub.models.audit_log import AuditLog
from couponhub.models.brand import Brand
from couponhub.models.category import Category
from couponhub.models.coupon import Coupon
from couponhub.models.coupon_usage import CouponUsage
from couponhub.models.favorite import FavoriteCoupon
from couponhub.models.user import User
from couponhub.schemas.audit import AuditLogOut
from couponhub.services.audit import AuditAction

STATS_RANGES = {"24h": timedelta(hours=24), "7d": timedelta(days=7), "30d": timedelta(days=30), "90d": timedelta(days=90)}
USAGE_PERIODS = {"7d": timedelta(days=7), "30d": timedelta(days=30), "90d": timedelta(days=90), "1y": timedelta(days=365)}

ADMIN_ACTIONS = {
    AuditAction.COUPON_CREATED.value,
    AuditAction.COUPON_UPDATED.value,
    AuditAction.COUPON_DELETED.value,
    AuditAction.BRAND_CREATED.value,
    AuditAction.BRAND_UPDATED.value,
    AuditAction.BRAND_DELETED.value,
    AuditAction.CATEGORY_CREATED.value,
    AuditAction.CATEGORY_UPDATED.value,
    AuditAction.CATEGORY_DELETED.value,
    AuditAction.USER_STATUS_CHANGED.value,
    AuditAction.USER_ROLE_CHANGED.value,
    AuditAction.SUBMISSION_STATUS_CHANGED.value,
    AuditAction.SUBMISSION_MOVED.value,
}


@dataclass
class _Range:
    period: str
    date_from: datetime
    date_to: datetime


def _resolve_period(period: str, table: dict[str, timedelta], default: str) -> _Range:
    """Unknown periods fall back to `default`. Output is UTC-naive."""
    key = (period or default).strip().lower()
    if key not in table:
        key = default
    now = utcnow()
    return _Range(period=key, date_from=now - table[key], date_to=now)


async def _count(db: AsyncSession, model, *conds) -> int:
    return int((await db.execute(select(func.count()).select_from(model).where(*conds))).scalar_one())


# -------------------------
# Admin overview
# -------------------------
async def admin_stats(db: AsyncSession, time_range: str = "7d") -> dict:
    r = _resolve_period(time_range, STATS_RANGES, "7d")

    recent = await db.execute(select(Coupon).order_by(Coupon.created_at.desc()).limit(5))
    recent_coupons = [
        {
            "id": c.id,
            "title": c.title,
            "brand": c.brand.name if c.brand else None,
            "isActive": c.is_active,
            "createdAt": c.created_at,
        }
        for c in recent.scalars().all()
    ]

    async def _top(model, fk):
        usage = func.coalesce(func.sum(Coupon.used_count), 0).label("total_usage")
        n = func.count(Coupon.id).label("coupon_count")
        res = await db.execute(
            select(model.id, model.name, n, usage)
            .outerjoin(Coupon, fk == model.id)
            .group_by(model.id, model.name)
            .order_by(desc(usage), model.name)
            .limit(5)
        )
        return [
            {"id": row[0], "name": row[1], "couponCount": int(row[2]), "totalUsage": int(row[3])}
            for row in res.all()
        ]

    return {
        "totalCoupons": await _count(db, Coupon),
        "totalBrands": await _count(db, Brand),
        "totalCategories": await _count(db, Category),
        "totalUsers": await _count(db, User),
        "activeCoupons": await _count(db, Coupon, Coupon.is_active.is_(True)),
        "verifiedCoupons": await _count(db, Coupon, Coupon.is_verified.is_(True)),
        "totalFavorites": await _count(db, FavoriteCoupon),
        "totalUsage": await _count(db, CouponUsage),
        "usageInRange": await _count(db, CouponUsage, CouponUsage.used_at >= r.date_from),
        "newUsersInRange": await _count(db, User, User.created_at >= r.date_from),
        "recentCoupons": recent_coupons,
        "topBrands": await _top(Brand, Coupon.brand_id),
        "topCategories": await _top(Category, Coupon.category_id),
        "timeRange": r.period,
    }


# -------------------------
# Redemption analytics
# -------------------------
async def usage_analytics(db: AsyncSession, period: str = "7d") -> dict:
    r = _resolve_period(period, USAGE_PERIODS, "7d")
    in_range = CouponUsage.used_at >= r.date_from

    total = await _count(db, CouponUsage, in_range)
    unique_users = (
        await db.execute(
            select(func.count(func.distinct(CouponUsage.user_id))).where(in_range, CouponUsage.user_id.is_not(None))
        )
    ).scalar_one()

    uses = func.count(CouponUsage.id).label("uses")
    top = await db.execute(
        select(Coupon.id, Coupon.title, Brand.name, uses)
        .join(CouponUsage, CouponUsage.coupon_id == Coupon.id)
        .join(Brand, Brand.id == Coupon.brand_id)
        .where(in_range)
        .group_by(Coupon.id, Coupon.title, Brand.name)
        .order_by(desc(uses), Coupon.title)
        .limit(10)
    )

    day = func.date(CouponUsage.used_at).label("day")
    by_day = await db.execute(
        select(day, func.count(CouponUsage.id)).where(in_range).group_by(day).order_by(day.desc()).limit(30)
    )

    brand_uses = func.count(CouponUsage.id).label("uses")
    by_brand = await db.execute(
        select(Brand.name, brand_uses)
        .join(Coupon, Coupon.brand_id == Brand.id)
        .join(CouponUsage, CouponUsage.coupon_id == Coupon.id)
        .where(in_range)
        .group_by(Brand.id, Brand.name)
        .order_by(desc(brand_uses))
    )

    recent = await db.execute(
        select(CouponUsage).where(in_range).order_by(CouponUsage.used_at.desc()).limit(50)
    )

    return {
        "period": r.period,
        "totalUsages": total,
        "uniqueUsers": int(unique_users),
        "topCoupons": [
            {"couponId": cid, "title": title, "brand": brand, "usageCount": int(n)} for cid, title, brand, n in top.all()
        ],
        "usageByDay": [{"date": str(d), "count": int(n)} for d, n in by_day.all()],
        "usageByBrand": [{"brand": name, "usageCount": int(n)} for name, n in by_brand.all()],
        "recentUsages": [
            {
                "id": u.id,
                "usedAt": u.used_at,
                "couponId": u.coupon_id,
                "couponTitle": u.coupon.title if u.coupon else None,
                "userId": u.user_id,
                "userEmail": u.user.email if u.user else None,
            }
            for u in recent.scalars().all()
        ],
    }


# -------------------------
# Security dashboard
# -------------------------
async def security_dashboard(db: AsyncSession) -> dict:
    since = utcnow() - timedelta(days=1)
    res = await db.execute(
        select(AuditLog).where(AuditLog.timestamp >= since).order_by(AuditLog.timestamp.desc()).limit(50)
    )
    events = list(res.scalars().all())
    total_events = await _count(db, AuditLog, AuditLog.timestamp >= since)

    failed = [e for e in events if e.action == AuditAction.LOGIN_FAILED.value]
    suspicious = [e for e in events if e.action == AuditAction.SUSPICIOUS_ACTIVITY.value]
    admin_events = [e for e in events if e.action in ADMIN_ACTIONS]

    ip_counts: dict[str, int] = {}
    for e in failed:
        ip_counts[e.ip_address] = ip_counts.get(e.ip_address, 0) + 1
    top_failed_ips = [
        {"ip": ip, "count": n} for ip, n in sorted(ip_counts.items(), key=lambda kv: kv[1], reverse=True)[:10]
    ]

    by_admin: dict[str, dict] = {}
    for e in admin_events:
        entry = by_admin.setdefault(
            e.user_id, {"userId": e.user_id, "userEmail": e.user_email, "userRole": e.user_role, "count": 0, "actions": []}
        )
        entry["count"] += 1
        entry["actions"].append(
            {
                "action": e.action,
                "resourceType": e.resource_type,
                "resourceName": e.resource_name,
                "timestamp": e.timestamp,
            }
        )
    top_admins = sorted(by_admin.values(), key=lambda a: a["count"], reverse=True)[:10]

    metrics = {
        "totalUsers": await _count(db, User),
        "activeUsers": await _count(db, User, User.is_active.is_(True)),
        "adminUsers": await _count(db, User, User.role.in_(sorted(ADMIN_ROLES))),
        "totalCoupons": await _count(db, Coupon),
        "activeCoupons": await _count(db, Coupon, Coupon.is_active.is_(True)),
        "verifiedCoupons": await _count(db, Coupon, Coupon.is_verified.is_(True)),
    }

    return {
        "sessionStats": session_manager.stats(),
        "securityMetrics": metrics,
        "recentEvents": {
            "total": total_events,
            "failedLogins": len(failed),
            "suspiciousActivities": len(suspicious),
            "adminActions": len(admin_events),
        },
        "topFailedIPs": top_failed_ips,
        "topAdminUsers": top_admins,
        "recentSecurityEvents": [
            AuditLogOut.model_validate(e).model_dump(mode="json", by_alias=True) for e in events[:20]
        ],
    }
