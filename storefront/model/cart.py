from typing import Optional

from sqlmodel import Field
from sqlalchemy import UniqueConstraint

from storefront.model.base import BaseModel


class Cart(BaseModel, table=True):
    """Cart - one open cart per (tenant, user)."""

    __tablename__ = "cart"

    tenant_id: int = Field(foreign_key="tenant.id", index=True, nullable=False)
    user_id: int = Field(foreign_key="user_account.id", index=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_cart_tenant_user"),
    )


class CartItem(BaseModel, table=True):
    __tablename__ = "cart_item"

    cart_id: int = Field(foreign_key="cart.id", index=True, nullable=False)
    product_id: int = Field(foreign_key="product.id", index=True, nullable=False)
    variant_id: Optional[int] = Field(default=None, foreign_key="product_variant.id", nullable=True)
    quantity: int = Field(default=1)
    # unit price captured when the item was added
    price: float = Field(nullable=False)
