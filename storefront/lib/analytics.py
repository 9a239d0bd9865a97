"""
Store metrics: rates, growth, trends and time-series bucketing.

Every ratio returns 0 when its denominator is 0 so empty stores report zeros
instead of failing.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable

from storefront.lib.formatting import format_number, format_percentage, format_price


def calculate_conversion_rate(conversions: int, total_visitors: int) -> float:
    if total_visitors == 0:
        return 0
    return conversions / total_visitors * 100


def calculate_average_order_value(total_revenue: float, total_orders: int) -> float:
    if total_orders == 0:
        return 0
    return total_revenue / total_orders


def calculate_customer_lifetime_value(
    average_order_value: float,
    average_orders_per_customer: float,
    average_customer_lifespan: float,
) -> float:
    return average_order_value * average_orders_per_customer * average_customer_lifespan


def calculate_revenue_growth_rate(current_revenue: float, previous_revenue: float) -> float:
    if previous_revenue == 0:
        return 0
    return (current_revenue - previous_revenue) / previous_revenue * 100


def calculate_customer_retention_rate(retained_customers: int, total_customers: int) -> float:
    if total_customers == 0:
        return 0
    return retained_customers / total_customers * 100


def calculate_cart_abandonment_rate(abandoned_carts: int, total_carts: int) -> float:
    if total_carts == 0:
        return 0
    return abandoned_carts / total_carts * 100


def generate_analytics_report(
    *,
    total_revenue: float,
    total_orders: int,
    total_visitors: int,
    conversions: int,
    previous_period_revenue: float,
    previous_period_orders: int,
) -> dict[str, float]:
    return {
        "average_order_value": calculate_average_order_value(total_revenue, total_orders),
        "conversion_rate": calculate_conversion_rate(conversions, total_visitors),
        "revenue_growth": calculate_revenue_growth_rate(total_revenue, previous_period_revenue),
        "order_growth": calculate_revenue_growth_rate(total_orders, previous_period_orders),
    }


def format_analytics_metric(value: float, metric_type: str = "number", currency: str = "USD") -> str:
    """metric_type: currency | percentage | decimal | number"""
    if metric_type == "currency":
        return format_price(value, currency)
    if metric_type == "percentage":
        return format_percentage(value)
    if metric_type == "decimal":
        return f"{value:.2f}"
    return format_number(round(value))


def get_trend_indicator(current: float, previous: float) -> dict:
    """Direction of change (up/down/stable) and its absolute size in percent."""
    if previous == 0:
        return {"direction": "stable", "percentage": 0}

    percentage = (current - previous) / previous * 100
    if percentage > 0:
        return {"direction": "up", "percentage": abs(percentage)}
    if percentage < 0:
        return {"direction": "down", "percentage": abs(percentage)}
    return {"direction": "stable", "percentage": 0}


def calculate_moving_average(values: list[float], period: int) -> list[float]:
    if period <= 0 or len(values) < period:
        return []
    return [sum(values[i - period + 1:i + 1]) / period for i in range(period - 1, len(values))]


def _bucket_key(value: date | datetime | str, period: str) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    d = value.date() if isinstance(value, datetime) else value

    if period == "week":
        # weeks start on Sunday
        week_start = d - timedelta(days=(d.weekday() + 1) % 7)
        return week_start.isoformat()
    if period == "month":
        return f"{d.year}-{d.month:02d}"
    return d.isoformat()


def generate_time_series_data(
    data: Iterable[dict],
    period: str = "day",
    aggregate: str = "avg",
) -> list[dict]:
    """
    Group `{"date", "value"}` points into day/week/month buckets.

    Args:
        data: points with a date (date, datetime or ISO string) and a numeric value
        period: "day", "week" (Sunday start) or "month"
        aggregate: "avg" averages the bucket, "sum" adds it up

    Returns:
        Points sorted by bucket key.
    """
    grouped: dict[str, list[float]] = defaultdict(list)
    for point in data:
        grouped[_bucket_key(point["date"], period)].append(point["value"])

    series = []
    for key, values in grouped.items():
        value = sum(values) if aggregate == "sum" else sum(values) / len(values)
        series.append({"date": key, "value": value})
    return sorted(series, key=lambda p: p["date"])
