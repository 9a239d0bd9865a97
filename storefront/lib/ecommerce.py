"""
Pricing, stock and order helpers. Pure functions, no database access.
"""
from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from storefront.constants import (
    FREE_SHIPPING_THRESHOLD,
    ORDER_NUMBER_PREFIX,
    ORDER_PROCESSING_DAYS,
    ORDER_SHIPPING_DAYS,
    PRODUCT_DESCRIPTION_MIN_LENGTH,
    PRODUCT_NAME_MIN_LENGTH,
    PRODUCT_SKU_PREFIX,
    ValidationMessages,
)

_ALPHABET = string.ascii_uppercase + string.digits


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_order_number() -> str:
    """`ORD-<last 6 digits of epoch ms>-<6 random chars>`"""
    timestamp = str(int(time.time() * 1000))
    return f"{ORDER_NUMBER_PREFIX}-{timestamp[-6:]}-{_random_code(6)}"


def generate_product_sku(prefix: str = PRODUCT_SKU_PREFIX) -> str:
    timestamp = str(int(time.time() * 1000))
    return f"{prefix}-{timestamp[-4:]}-{_random_code(4)}"


def round_money(value: float) -> float:
    return round(value, 2)


def calculate_cart_total(items: Iterable) -> float:
    """Sum of price x quantity; accepts mappings or objects with those attributes."""
    total = 0.0
    for item in items:
        if isinstance(item, dict):
            total += item["price"] * item["quantity"]
        else:
            total += item.price * item.quantity
    return total


def calculate_tax(subtotal: float, tax_rate: float) -> float:
    """`tax_rate` is a percentage (10 means 10%)."""
    return subtotal * (tax_rate / 100)


def calculate_shipping_cost(
    weight: float,
    distance: float,
    base_rate: float = 5.99,
    weight_rate: float = 0.5,
    distance_rate: float = 0.1,
) -> float:
    return base_rate + weight * weight_rate + distance * distance_rate


def calculate_discount(subtotal: float, discount_percentage: float) -> float:
    return subtotal * (discount_percentage / 100)


@dataclass
class OrderTotals:
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float

    def rounded(self) -> "OrderTotals":
        return OrderTotals(
            subtotal=round_money(self.subtotal),
            tax=round_money(self.tax),
            shipping=round_money(self.shipping),
            discount=round_money(self.discount),
            total=round_money(self.total),
        )


def calculate_final_total(
    subtotal: float,
    tax_rate: float,
    shipping_cost: float,
    discount_percentage: float = 0,
) -> OrderTotals:
    """Discount applies before tax; shipping is added untaxed."""
    discount = calculate_discount(subtotal, discount_percentage)
    discounted_subtotal = subtotal - discount
    tax = calculate_tax(discounted_subtotal, tax_rate)
    total = discounted_subtotal + tax + shipping_cost
    return OrderTotals(subtotal=subtotal, tax=tax, shipping=shipping_cost, discount=discount, total=total)


def is_in_stock(quantity: int, reserved_quantity: int = 0) -> bool:
    return quantity - reserved_quantity > 0


def get_stock_status(quantity: int, reserved_quantity: int = 0) -> str:
    available = quantity - reserved_quantity
    if available <= 0:
        return "Out of Stock"
    if available <= 5:
        return "Low Stock"
    if available <= 20:
        return "Limited Stock"
    return "In Stock"


def calculate_average_rating(ratings: list[float]) -> float:
    if not ratings:
        return 0
    return round(sum(ratings) / len(ratings), 1)


def format_rating(rating: float) -> str:
    return f"{rating:.1f}/5.0"


def calculate_profit_margin(cost: float, selling_price: float) -> float:
    if selling_price == 0:
        return 0
    return (selling_price - cost) / selling_price * 100


def calculate_markup(cost: float, selling_price: float) -> float:
    if cost == 0:
        return 0
    return (selling_price - cost) / cost * 100


def validate_product_data(name: str | None, price: float, description: str | None, category: str | None) -> list[str]:
    """Catalog import check; returns the error messages, empty when valid."""
    errors: list[str] = []
    if not name or len(name.strip()) < PRODUCT_NAME_MIN_LENGTH:
        errors.append(ValidationMessages.PRODUCT_NAME_TOO_SHORT)
    if price <= 0:
        errors.append(ValidationMessages.PRODUCT_PRICE_INVALID)
    if not description or len(description.strip()) < PRODUCT_DESCRIPTION_MIN_LENGTH:
        errors.append(ValidationMessages.PRODUCT_DESCRIPTION_TOO_SHORT)
    if not category or not category.strip():
        errors.append(ValidationMessages.PRODUCT_CATEGORY_REQUIRED)
    return errors


def calculate_estimated_delivery(
    order_date: datetime,
    processing_days: int = ORDER_PROCESSING_DAYS,
    shipping_days: int = ORDER_SHIPPING_DAYS,
) -> datetime:
    return order_date + timedelta(days=processing_days + shipping_days)


def qualifies_for_free_shipping(subtotal: float, threshold: float = FREE_SHIPPING_THRESHOLD) -> bool:
    return subtotal >= threshold
