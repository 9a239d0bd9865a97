from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from storefront.model.base import BaseModel


class AuditLog(BaseModel, table=True):
    __tablename__ = "audit_log"

    # NULL for platform-wide events (e.g. a super admin creating a tenant).
    tenant_id: int | None = Field(default=None, foreign_key="tenant.id", index=True)
    actor_user_id: int | None = Field(default=None, foreign_key="user_account.id", index=True)

    event_type: str = Field(index=True)
    data: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
