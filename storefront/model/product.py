from typing import Optional

from sqlmodel import Field, Column
from sqlalchemy import JSON, UniqueConstraint

from storefront.model.base import BaseModel


class Product(BaseModel, table=True):
    """Product - catalog item sold by a tenant."""

    __tablename__ = "product"

    tenant_id: int = Field(foreign_key="tenant.id", index=True, nullable=False)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True, nullable=True)

    name: str = Field(nullable=False, index=True)
    slug: str = Field(nullable=False, index=True)
    description: Optional[str] = None

    price: float = Field(nullable=False)
    compare_price: Optional[float] = None
    sku: Optional[str] = Field(default=None, index=True)
    barcode: Optional[str] = None

    stock: int = Field(default=0)
    low_stock_threshold: int = Field(default=5)
    track_inventory: bool = Field(default=True)

    weight: Optional[float] = None
    dimensions: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    images: list = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    is_active: bool = Field(default=True, index=True)
    is_featured: bool = Field(default=False, index=True)
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_product_tenant_slug"),
    )


class ProductVariant(BaseModel, table=True):
    """ProductVariant - purchasable option of a product (size, colour...)."""

    __tablename__ = "product_variant"

    product_id: int = Field(foreign_key="product.id", index=True, nullable=False)
    name: str = Field(nullable=False)
    sku: Optional[str] = None
    # NULL inherits the product price
    price: Optional[float] = None
    stock: int = Field(default=0)
    options: dict = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
