from typing import Optional

from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from storefront.model.base import BaseModel


class Category(BaseModel, table=True):
    """Category - product grouping, optionally nested through parent_id."""

    __tablename__ = "category"

    tenant_id: int = Field(foreign_key="tenant.id", index=True, nullable=False)
    name: str = Field(nullable=False)
    slug: str = Field(nullable=False, index=True)
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = Field(default=True, index=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_category_tenant_slug"),
    )
