from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, Column
from sqlalchemy import JSON

from storefront.constants import OrderStatus, PaymentStatus
from storefront.model.base import BaseModel, enum_column


class Order(BaseModel, table=True):
    """
    Order placed in a tenant's store.

    Notes:
      - amounts are stored already rounded to cents
      - `product_name` is copied on each item so history survives catalog edits
    """

    __tablename__ = "customer_order"

    tenant_id: int = Field(foreign_key="tenant.id", index=True, nullable=False)
    user_id: Optional[int] = Field(default=None, foreign_key="user_account.id", index=True, nullable=True)
    order_number: str = Field(unique=True, index=True)

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        sa_type=enum_column(OrderStatus, "order_status"),
        index=True,
    )
    payment_status: PaymentStatus = Field(
        default=PaymentStatus.PENDING,
        sa_type=enum_column(PaymentStatus, "payment_status"),
        index=True,
    )

    customer_email: str = Field(index=True)
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_phone: Optional[str] = None

    subtotal: float = Field(default=0)
    tax_amount: float = Field(default=0)
    shipping_amount: float = Field(default=0)
    discount_amount: float = Field(default=0)
    total: float = Field(default=0)

    shipping_address: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    billing_address: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_method: Optional[str] = None
    shipped_at: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    delivered_at: Optional[datetime] = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),
        nullable=True,
    )
    customer_notes: Optional[str] = None
    admin_notes: Optional[str] = None


class OrderItem(BaseModel, table=True):
    __tablename__ = "order_item"

    order_id: int = Field(foreign_key="customer_order.id", index=True, nullable=False)
    product_id: Optional[int] = Field(default=None, foreign_key="product.id", index=True, nullable=True)
    variant_id: Optional[int] = Field(default=None, foreign_key="product_variant.id", nullable=True)
    product_name: str
    quantity: int
    price: float
