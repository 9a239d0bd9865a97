from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, Column
from sqlalchemy import JSON

from storefront.constants import DEFAULT_CURRENCY, DEFAULT_PLAN_ID, SUBSCRIPTION_PLANS, TENANT_STATUS_ACTIVE
from storefront.model.base import BaseModel

_FREE_LIMITS = SUBSCRIPTION_PLANS[DEFAULT_PLAN_ID]["limits"]


class Tenant(BaseModel, table=True):
    """Tenant - a store; root of the multi-tenant schema (has no tenant_id)."""

    __tablename__ = "tenant"

    name: str = Field(index=True)
    slug: str = Field(unique=True, index=True)
    domain: Optional[str] = Field(default=None, nullable=True, unique=True)
    description: Optional[str] = None
    logo: Optional[str] = None
    settings: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )

    subscription_tier: str = Field(default=DEFAULT_PLAN_ID)
    subscription_status: str = Field(default=TENANT_STATUS_ACTIVE, index=True)
    current_period_start: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    current_period_end: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    cancel_at_period_end: bool = Field(default=False)

    # -1 means unlimited
    max_products: int = Field(default=_FREE_LIMITS["products"])
    max_customers: int = Field(default=_FREE_LIMITS["customers"])
    max_storage: int = Field(default=_FREE_LIMITS["storage"])  # MB

    timezone: str = Field(default="UTC")
    locale: str = Field(default="en-US")
    currency: str = Field(default=DEFAULT_CURRENCY)
