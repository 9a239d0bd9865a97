"""
Checkout and order lifecycle.

Stock moves with the order: checkout decrements tracked inventory, cancelling
puts it back. Refunds only change statuses (no payment gateway).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.api.response import dump
from storefront.constants import (
    CANCELLABLE_ORDER_STATUSES,
    FINAL_ORDER_STATUSES,
    FINAL_PAYMENT_STATUSES,
    OrderStatus,
    PaymentStatus,
)
from storefront.lib.ecommerce import (
    calculate_cart_total,
    calculate_estimated_delivery,
    calculate_final_total,
    generate_order_number,
    qualifies_for_free_shipping,
)
from storefront.lib.formatting import format_date_for_locale, format_price
from storefront.model.base import utc_now
from storefront.model.cart import Cart
from storefront.model.order import Order, OrderItem
from storefront.model.product import Product, ProductVariant
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services import cart_service
from storefront.services.email_service import send_order_confirmation_email
from storefront.services.tenant_service import get_settings

logger = logging.getLogger(__name__)

SORT_FIELDS = {"created_at", "total", "order_number"}


@dataclass
class CheckoutData:
    shipping_address: dict[str, Any]
    billing_address: Optional[dict[str, Any]] = None
    payment_method: Optional[str] = None
    shipping_method: Optional[str] = None
    customer_notes: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class OrderFilters:
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    customer_email: Optional[str] = None
    order_number: Optional[str] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def _unique_order_number(session: Session) -> str:
    while True:
        number = generate_order_number()
        if session.exec(select(Order.id).where(Order.order_number == number)).first() is None:
            return number


def _shipping_cost(subtotal: float, settings: dict[str, Any], method_id: Optional[str]) -> float:
    if method_id is None:
        return cart_service.shipping_for(subtotal, settings)

    method = next(
        (m for m in settings.get("shipping_methods") or [] if m.get("id") == method_id and m.get("is_active", True)),
        None,
    )
    if method is None:
        raise HTTPException(status_code=400, detail="Invalid shipping method")
    if qualifies_for_free_shipping(subtotal, float(settings["free_shipping_threshold"])):
        return 0.0
    return float(method.get("price", 0))


def checkout(session: Session, *, user: User, tenant: Tenant, data: CheckoutData) -> tuple[Order, list[OrderItem]]:
    """
    Turn the user's cart in `tenant` into an order.

    Rules:
      - the cart must not be empty
      - every line is re-checked against stock (400 when short) and tracked stock is decremented
      - totals follow calculate_final_total with the tenant's tax rate
      - the cart is emptied in the same transaction

    Raises:
        HTTPException: 400 empty cart, stock shortage or unknown shipping method
    """
    cart = session.exec(select(Cart).where(Cart.tenant_id == tenant.id, Cart.user_id == user.id)).first()
    items = cart_service.get_cart_items(session, cart) if cart else []
    if not items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    settings = get_settings(tenant)
    order = Order(
        tenant_id=tenant.id,
        user_id=user.id,
        order_number=_unique_order_number(session),
        customer_email=(data.email or user.email).lower(),
        customer_first_name=data.first_name,
        customer_last_name=data.last_name,
        customer_phone=data.phone,
        shipping_address=data.shipping_address,
        billing_address=data.billing_address or data.shipping_address,
        payment_method=data.payment_method,
        shipping_method=data.shipping_method,
        customer_notes=data.customer_notes,
    )

    order_items: list[OrderItem] = []
    for item in items:
        product, variant = cart_service.load_purchasable(session, tenant.id, item.product_id, item.variant_id)
        cart_service.check_stock(product, variant, item.quantity)
        if product.track_inventory:
            stock_holder = variant if variant is not None else product
            stock_holder.stock -= item.quantity
            session.add(stock_holder)

        name = f"{product.name} - {variant.name}" if variant is not None else product.name
        order_items.append(
            OrderItem(
                product_id=product.id,
                variant_id=item.variant_id,
                product_name=name,
                quantity=item.quantity,
                price=item.price,
            )
        )

    subtotal = calculate_cart_total(items)
    shipping = _shipping_cost(subtotal, settings, data.shipping_method)
    totals = calculate_final_total(subtotal, float(settings["tax_rate"]), shipping).rounded()
    order.subtotal = totals.subtotal
    order.tax_amount = totals.tax
    order.shipping_amount = totals.shipping
    order.discount_amount = totals.discount
    order.total = totals.total

    session.add(order)
    session.flush()
    for order_item in order_items:
        order_item.order_id = order.id
        session.add(order_item)
    cart_service.clear_cart(session, cart, commit=False)
    session.commit()
    session.refresh(order)
    for order_item in order_items:
        session.refresh(order_item)

    logger.info(f"Order placed: id={order.id}, number={order.order_number}, tenant={tenant.id}, total={order.total}")
    send_order_confirmation_email(order.customer_email, order.order_number, format_price(order.total, settings["currency"]))
    return order, order_items


def get_order_items(session: Session, order: Order) -> list[OrderItem]:
    return list(session.exec(select(OrderItem).where(OrderItem.order_id == order.id).order_by(OrderItem.id)).all())


def _restock(session: Session, items: list[OrderItem]) -> None:
    for item in items:
        product = session.get(Product, item.product_id) if item.product_id else None
        if not product or not product.track_inventory:
            continue
        holder = session.get(ProductVariant, item.variant_id) if item.variant_id else product
        if holder is None:
            continue
        holder.stock += item.quantity
        session.add(holder)


def cancel_order(session: Session, order: Order) -> Order:
    """
    Raises:
        HTTPException: 400 once the order left PENDING/CONFIRMED/PROCESSING
    """
    if order.status not in CANCELLABLE_ORDER_STATUSES:
        raise HTTPException(status_code=400, detail=f"Order cannot be cancelled in status {order.status.value}")

    _restock(session, get_order_items(session, order))
    order.status = OrderStatus.CANCELLED
    if order.payment_status == PaymentStatus.PENDING:
        order.payment_status = PaymentStatus.CANCELLED
    order.updated_at = utc_now()
    session.add(order)
    session.commit()
    session.refresh(order)
    logger.info(f"Order cancelled: id={order.id}")
    return order


def refund_order(session: Session, order: Order) -> Order:
    if order.status in {OrderStatus.CANCELLED, OrderStatus.REFUNDED}:
        raise HTTPException(status_code=400, detail=f"Order cannot be refunded in status {order.status.value}")

    order.status = OrderStatus.REFUNDED
    order.payment_status = PaymentStatus.REFUNDED
    order.updated_at = utc_now()
    session.add(order)
    session.commit()
    session.refresh(order)
    logger.info(f"Order refunded: id={order.id}")
    return order


def check_manual_update(
    order: Order,
    status: Optional[OrderStatus],
    payment_status: Optional[PaymentStatus],
) -> None:
    """
    Guard for the staff update: cancelling and refunding go through their own
    actions (restock, role check), and a cancelled or refunded order is closed.

    Raises:
        HTTPException: 400 when the change belongs to cancel/refund or the order is closed
    """
    if order.status in FINAL_ORDER_STATUSES and (status is not None or payment_status is not None):
        raise HTTPException(status_code=400, detail=f"Order cannot be changed in status {order.status.value}")
    if status in FINAL_ORDER_STATUSES or payment_status in FINAL_PAYMENT_STATUSES:
        raise HTTPException(status_code=400, detail="Use the cancel or refund action for this change")


def apply_status(order: Order, status: OrderStatus) -> None:
    """Set the status and stamp shipped_at / delivered_at the first time they are reached."""
    order.status = status
    now = utc_now()
    if status == OrderStatus.SHIPPED and order.shipped_at is None:
        order.shipped_at = now
    if status == OrderStatus.DELIVERED:
        if order.shipped_at is None:
            order.shipped_at = now
        if order.delivered_at is None:
            order.delivered_at = now


def _filtered(query, tenant_id: int, user_id: Optional[int], filters: OrderFilters):
    query = query.where(Order.tenant_id == tenant_id)
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    if filters.status is not None:
        query = query.where(Order.status == filters.status)
    if filters.payment_status is not None:
        query = query.where(Order.payment_status == filters.payment_status)
    if filters.date_from is not None:
        query = query.where(Order.created_at >= filters.date_from)
    if filters.date_to is not None:
        query = query.where(Order.created_at <= filters.date_to)
    if filters.customer_email:
        query = query.where(col(Order.customer_email).ilike(f"%{filters.customer_email.strip()}%"))
    if filters.order_number:
        query = query.where(col(Order.order_number).ilike(f"%{filters.order_number.strip()}%"))
    return query


def list_orders(
    session: Session,
    tenant_id: int,
    filters: OrderFilters,
    *,
    page: int,
    limit: int,
    user_id: Optional[int] = None,
) -> tuple[list[Order], int]:
    """Orders of a tenant (only `user_id`'s when given), filtered, sorted and paginated."""
    total = session.exec(_filtered(select(func.count(Order.id)), tenant_id, user_id, filters)).one()
    sort_col = getattr(Order, filters.sort_by if filters.sort_by in SORT_FIELDS else "created_at")
    order_by = sort_col.desc() if filters.sort_order == "desc" else sort_col.asc()
    query = _filtered(select(Order), tenant_id, user_id, filters).order_by(order_by, col(Order.id).desc())
    items = session.exec(query.offset((page - 1) * limit).limit(limit)).all()
    return list(items), int(total or 0)


def order_to_dict(order: Order, items: Optional[list[OrderItem]] = None) -> dict[str, Any]:
    data = dump(order)
    if items is not None:
        data["items"] = [dump(i) for i in items]
        data["item_count"] = sum(i.quantity for i in items)
    return data


def tracking_info(order: Order, tenant: Tenant) -> dict[str, Any]:
    estimated = calculate_estimated_delivery(order.created_at)
    data = dump(order)
    return {
        "order_number": order.order_number,
        "status": order.status.value,
        "tracking_number": order.tracking_number,
        "shipping_method": order.shipping_method,
        "ordered_at": data["created_at"],
        "shipped_at": data["shipped_at"],
        "delivered_at": data["delivered_at"],
        "estimated_delivery": estimated.date().isoformat(),
        "estimated_delivery_display": format_date_for_locale(estimated, tenant.locale),
    }
