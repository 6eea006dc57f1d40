from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from couponhub.schemas.common import CamelModel


class AuditLogOut(CamelModel):
    id: str
    action: str
    user_id: str
    user_email: str
    user_role: str
    resource_type: str
    resource_id: Optional[str] = None
    resource_name: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: str
    user_agent: str
    endpoint: str
    method: str
    timestamp: datetime
    meta: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
