from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from couponhub.core.db import Base, new_id, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    action: Mapped[str] = mapped_column(String(64), nullable=False)

    # actor snapshot; not a FK so entries survive user changes
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_email: Mapped[str] = mapped_column(String(255), nullable=False)
    user_role: Mapped[str] = mapped_column(String(16), nullable=False)

    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    resource_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    old_values: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    ip_address: Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")
    user_agent: Mapped[str] = mapped_column(String(500), nullable=False, default="unknown")
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    method: Mapped[str] = mapped_column(String(10), nullable=False, default="")

    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # "metadata" is reserved on declarative classes; use "meta" attribute but DB column "metadata"
    meta: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)


Index("ix_audit_logs_timestamp", AuditLog.timestamp.desc())
Index("ix_audit_logs_action", AuditLog.action)
Index("ix_audit_logs_user", AuditLog.user_id)
Index("ix_audit_logs_resource", AuditLog.resource_type, AuditLog.resource_id)
