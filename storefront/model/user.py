from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from storefront.constants import Role
from storefront.model.base import BaseModel, enum_column


class User(BaseModel, table=True):
    """User - any account of the platform, from shoppers to the super admin."""

    __tablename__ = "user_account"

    email: str = Field(index=True)
    name: Optional[str] = None
    image: Optional[str] = None
    # bcrypt hash; NULL for accounts created through Google sign-in
    password: Optional[str] = Field(default=None, nullable=True)
    role: Role = Field(
        default=Role.CUSTOMER,
        sa_type=enum_column(Role, "user_role"),
        index=True,
    )
    # SUPER_ADMIN and Google-created customers may not belong to a store
    tenant_id: Optional[int] = Field(default=None, foreign_key="tenant.id", index=True, nullable=True)
    email_verified: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    is_active: bool = Field(default=True, index=True)
    auth_provider: str = Field(default="credentials")  # credentials, google

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_account_email"),
    )
