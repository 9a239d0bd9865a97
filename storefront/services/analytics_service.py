"""
Tenant analytics computed from orders, carts and customers.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.constants import OrderStatus, Role
from storefront.lib.analytics import (
    calculate_average_order_value,
    calculate_cart_abandonment_rate,
    calculate_revenue_growth_rate,
    format_analytics_metric,
    generate_analytics_report,
    generate_time_series_data,
    get_trend_indicator,
)
from storefront.model.base import utc_now
from storefront.model.cart import Cart, CartItem
from storefront.model.order import Order, OrderItem
from storefront.model.user import User

logger = logging.getLogger(__name__)

# cancelled and refunded orders do not count as sales
EXCLUDED_STATUSES = [OrderStatus.CANCELLED, OrderStatus.REFUNDED]


def _sales_window(session: Session, tenant_id: int, start, end) -> tuple[float, int]:
    revenue, orders = session.exec(
        select(func.coalesce(func.sum(Order.total), 0), func.count(Order.id)).where(
            Order.tenant_id == tenant_id,
            col(Order.status).not_in(EXCLUDED_STATUSES),
            Order.created_at >= start,
            Order.created_at < end,
        )
    ).one()
    return float(revenue or 0), int(orders or 0)


def dashboard_metrics(session: Session, tenant_id: int, days: int, currency: str) -> dict[str, Any]:
    """
    Headline metrics for the last `days` days compared with the `days` before.

    Returns:
        revenue, orders, customers, average order value, growth and trend per metric,
        cart abandonment, plus display strings under `formatted`
    """
    now = utc_now()
    start = now - timedelta(days=days)
    previous_start = start - timedelta(days=days)

    revenue, orders = _sales_window(session, tenant_id, start, now)
    previous_revenue, previous_orders = _sales_window(session, tenant_id, previous_start, start)

    total_customers = session.exec(
        select(func.count(User.id)).where(User.tenant_id == tenant_id, User.role == Role.CUSTOMER)
    ).one()
    new_customers = session.exec(
        select(func.count(User.id)).where(
            User.tenant_id == tenant_id,
            User.role == Role.CUSTOMER,
            User.created_at >= start,
        )
    ).one()
    buyers = session.exec(
        select(func.count(func.distinct(Order.user_id))).where(
            Order.tenant_id == tenant_id,
            Order.created_at >= start,
        )
    ).one()
    open_carts = session.exec(
        select(func.count(func.distinct(Cart.id)))
        .join(CartItem, CartItem.cart_id == Cart.id)
        .where(Cart.tenant_id == tenant_id, CartItem.updated_at >= start)
    ).one()

    report = generate_analytics_report(
        total_revenue=revenue,
        total_orders=orders,
        total_visitors=int(buyers or 0) + int(open_carts or 0),
        conversions=int(buyers or 0),
        previous_period_revenue=previous_revenue,
        previous_period_orders=previous_orders,
    )
    average_order_value = report["average_order_value"]
    abandonment = calculate_cart_abandonment_rate(int(open_carts or 0), int(open_carts or 0) + int(buyers or 0))

    return {
        "period_days": days,
        "revenue": round(revenue, 2),
        "orders": orders,
        "customers": int(total_customers or 0),
        "new_customers": int(new_customers or 0),
        "average_order_value": round(average_order_value, 2),
        "conversion_rate": round(report["conversion_rate"], 2),
        "cart_abandonment_rate": round(abandonment, 2),
        "revenue_growth": round(report["revenue_growth"], 2),
        "order_growth": round(report["order_growth"], 2),
        "previous_period": {
            "revenue": round(previous_revenue, 2),
            "orders": previous_orders,
            "average_order_value": round(calculate_average_order_value(previous_revenue, previous_orders), 2),
        },
        "trends": {
            "revenue": get_trend_indicator(revenue, previous_revenue),
            "orders": get_trend_indicator(orders, previous_orders),
        },
        "formatted": {
            "revenue": format_analytics_metric(revenue, "currency", currency),
            "average_order_value": format_analytics_metric(average_order_value, "currency", currency),
            "revenue_growth": format_analytics_metric(report["revenue_growth"], "percentage"),
            "orders": format_analytics_metric(orders, "number"),
        },
    }


def sales_series(session: Session, tenant_id: int, days: int, period: str) -> dict[str, Any]:
    """Revenue and order count per day/week/month bucket over the last `days` days."""
    start = utc_now() - timedelta(days=days)
    rows = session.exec(
        select(Order.created_at, Order.total).where(
            Order.tenant_id == tenant_id,
            col(Order.status).not_in(EXCLUDED_STATUSES),
            Order.created_at >= start,
        )
    ).all()

    revenue = generate_time_series_data(
        [{"date": created_at, "value": total} for created_at, total in rows],
        period=period,
        aggregate="sum",
    )
    orders = generate_time_series_data(
        [{"date": created_at, "value": 1} for created_at, _ in rows],
        period=period,
        aggregate="sum",
    )
    return {
        "period": period,
        "days": days,
        "revenue": [{"date": p["date"], "value": round(p["value"], 2)} for p in revenue],
        "orders": [{"date": p["date"], "value": int(p["value"])} for p in orders],
        "total_revenue": round(sum(total for _, total in rows), 2),
        "growth": round(
            calculate_revenue_growth_rate(revenue[-1]["value"], revenue[-2]["value"]) if len(revenue) > 1 else 0,
            2,
        ),
    }


def top_products(session: Session, tenant_id: int, days: int, limit: int) -> list[dict[str, Any]]:
    """Best sellers by units sold in the window."""
    start = utc_now() - timedelta(days=days)
    units = func.sum(OrderItem.quantity).label("units")
    rows = session.exec(
        select(
            OrderItem.product_id,
            OrderItem.product_name,
            units,
            func.sum(OrderItem.price * OrderItem.quantity).label("revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.tenant_id == tenant_id,
            col(Order.status).not_in(EXCLUDED_STATUSES),
            Order.created_at >= start,
        )
        .group_by(OrderItem.product_id, OrderItem.product_name)
        .order_by(units.desc())
        .limit(limit)
    ).all()
    return [
        {"product_id": product_id, "name": name, "units_sold": int(sold or 0), "revenue": round(float(rev or 0), 2)}
        for product_id, name, sold, rev in rows
    ]
