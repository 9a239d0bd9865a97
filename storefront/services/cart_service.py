from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlmodel import Session, select

from storefront.constants import Messages
from storefront.lib.ecommerce import calculate_cart_total, calculate_final_total, qualifies_for_free_shipping
from storefront.model.base import utc_now
from storefront.model.cart import Cart, CartItem
from storefront.model.product import Product, ProductVariant
from storefront.model.tenant import Tenant
from storefront.services.tenant_service import get_settings

logger = logging.getLogger(__name__)


def get_or_create_cart(session: Session, tenant_id: int, user_id: int) -> Cart:
    cart = session.exec(select(Cart).where(Cart.tenant_id == tenant_id, Cart.user_id == user_id)).first()
    if cart:
        return cart
    cart = Cart(tenant_id=tenant_id, user_id=user_id)
    session.add(cart)
    session.commit()
    session.refresh(cart)
    return cart


def get_cart_items(session: Session, cart: Cart) -> list[CartItem]:
    return list(session.exec(select(CartItem).where(CartItem.cart_id == cart.id).order_by(CartItem.id)).all())


def available_stock(product: Product, variant: Optional[ProductVariant] = None) -> Optional[int]:
    """Units that can still be sold; None when inventory is not tracked."""
    if not product.track_inventory:
        return None
    if variant is not None:
        return variant.stock
    return product.stock


def check_stock(product: Product, variant: Optional[ProductVariant], quantity: int) -> None:
    """
    Raises:
        HTTPException: 400 when `quantity` exceeds what is in stock
    """
    available = available_stock(product, variant)
    if available is not None and quantity > available:
        raise HTTPException(status_code=400, detail=Messages.INVENTORY_UNAVAILABLE)


def load_purchasable(
    session: Session,
    tenant_id: int,
    product_id: int,
    variant_id: Optional[int] = None,
) -> tuple[Product, Optional[ProductVariant]]:
    product = session.get(Product, product_id)
    if not product or product.tenant_id != tenant_id or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    variant = None
    if variant_id is not None:
        variant = session.get(ProductVariant, variant_id)
        if not variant or variant.product_id != product.id:
            raise HTTPException(status_code=404, detail="Product variant not found")
    return product, variant


def add_item(session: Session, cart: Cart, product_id: int, variant_id: Optional[int], quantity: int) -> CartItem:
    """Add units to the cart, merging with an existing line for the same product and variant."""
    product, variant = load_purchasable(session, cart.tenant_id, product_id, variant_id)

    item = session.exec(
        select(CartItem).where(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product.id,
            CartItem.variant_id == variant_id,
        )
    ).first()
    new_quantity = quantity + (item.quantity if item else 0)
    check_stock(product, variant, new_quantity)

    price = variant.price if variant is not None and variant.price is not None else product.price
    if item:
        item.quantity = new_quantity
        item.price = price
        item.updated_at = utc_now()
    else:
        item = CartItem(cart_id=cart.id, product_id=product.id, variant_id=variant_id, quantity=quantity, price=price)
    session.add(item)
    session.commit()
    session.refresh(item)
    logger.info(f"Cart {cart.id}: product {product.id} x{new_quantity}")
    return item


def _get_item(session: Session, cart: Cart, item_id: int) -> CartItem:
    item = session.get(CartItem, item_id)
    if not item or item.cart_id != cart.id:
        raise HTTPException(status_code=404, detail="Cart item not found")
    return item


def update_item(session: Session, cart: Cart, item_id: int, quantity: int) -> None:
    """Set a line's quantity; 0 removes the line."""
    item = _get_item(session, cart, item_id)
    if quantity == 0:
        session.delete(item)
        session.commit()
        return

    product, variant = load_purchasable(session, cart.tenant_id, item.product_id, item.variant_id)
    check_stock(product, variant, quantity)
    item.quantity = quantity
    item.updated_at = utc_now()
    session.add(item)
    session.commit()


def remove_item(session: Session, cart: Cart, item_id: int) -> None:
    session.delete(_get_item(session, cart, item_id))
    session.commit()


def clear_cart(session: Session, cart: Cart, commit: bool = True) -> None:
    for item in get_cart_items(session, cart):
        session.delete(item)
    if commit:
        session.commit()


def shipping_for(subtotal: float, settings: dict[str, Any]) -> float:
    if subtotal <= 0:
        return 0.0
    if qualifies_for_free_shipping(subtotal, float(settings["free_shipping_threshold"])):
        return 0.0
    return float(settings["default_shipping_cost"])


def cart_summary(session: Session, cart: Cart, tenant: Tenant) -> dict[str, Any]:
    """
    Cart lines plus totals.

    Rules:
      - subtotal = sum(price x quantity)
      - tax = subtotal x tenant tax rate (percent)
      - shipping = 0 from the free-shipping threshold on, tenant default cost otherwise
    """
    items = get_cart_items(session, cart)
    settings = get_settings(tenant)

    lines = []
    for item in items:
        product = session.get(Product, item.product_id)
        lines.append({
            "id": item.id,
            "product_id": item.product_id,
            "variant_id": item.variant_id,
            "name": product.name if product else None,
            "image": (product.images or [None])[0] if product else None,
            "quantity": item.quantity,
            "price": item.price,
            "line_total": round(item.price * item.quantity, 2),
        })

    subtotal = calculate_cart_total(items)
    totals = calculate_final_total(subtotal, float(settings["tax_rate"]), shipping_for(subtotal, settings)).rounded()
    return {
        "id": cart.id,
        "tenant_id": cart.tenant_id,
        "items": lines,
        "item_count": sum(item.quantity for item in items),
        "subtotal": totals.subtotal,
        "tax": totals.tax,
        "shipping": totals.shipping,
        "total": totals.total,
        "currency": settings["currency"],
    }
