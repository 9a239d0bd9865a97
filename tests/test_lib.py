from datetime import date, datetime, timezone

import pytest

from storefront.constants import ValidationMessages
from storefront.lib.analytics import (
    calculate_cart_abandonment_rate,
    calculate_conversion_rate,
    calculate_moving_average,
    calculate_revenue_growth_rate,
    format_analytics_metric,
    generate_time_series_data,
    get_trend_indicator,
)
from storefront.lib.ecommerce import (
    calculate_final_total,
    calculate_tax,
    generate_order_number,
    generate_product_sku,
    get_stock_status,
    qualifies_for_free_shipping,
    validate_product_data,
)
from storefront.lib.formatting import (
    format_date_for_locale,
    format_file_size,
    format_phone_number,
    format_price,
    format_relative_time,
    generate_slug,
    truncate_text,
)
from storefront.lib.validation import (
    is_valid_credit_card,
    is_valid_email,
    is_valid_phone_number,
    is_valid_url,
    sanitize_input,
    validate_password,
)


class TestValidation:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last@shop.example.com"])
    def test_valid_emails(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["", None, "no-at.example.com", "a@b", "a b@c.com"])
    def test_invalid_emails(self, email):
        assert not is_valid_email(email)

    def test_strong_password_has_no_errors(self):
        assert validate_password("Secret123!") == []

    def test_password_errors_are_reported_in_order(self):
        assert validate_password("abc") == [
            ValidationMessages.PASSWORD_TOO_SHORT,
            ValidationMessages.PASSWORD_MISSING_UPPERCASE,
            ValidationMessages.PASSWORD_MISSING_NUMBER,
            ValidationMessages.PASSWORD_MISSING_SPECIAL,
        ]

    def test_password_too_long(self):
        errors = validate_password("Aa1!" * 40)
        assert errors == [ValidationMessages.PASSWORD_TOO_LONG]

    def test_luhn(self):
        assert is_valid_credit_card("4111 1111 1111 1111")
        assert not is_valid_credit_card("4111 1111 1111 1112")
        assert not is_valid_credit_card("411111")

    def test_phone_and_url(self):
        assert is_valid_phone_number("(555) 123-4567")
        assert not is_valid_phone_number("12345")
        assert is_valid_url("https://example.com/path")
        assert not is_valid_url("not a url")

    def test_sanitize_input_strips_markup(self):
        assert sanitize_input(" <b onclick=x>javascript:hi</b> ") == "b xhi/b"


class TestFormatting:
    def test_format_price(self):
        assert format_price(1234.5) == "$1,234.50"
        assert format_price(-3, "EUR") == "-€3.00"
        assert format_price(1500, "JPY") == "¥1,500"
        assert format_price(10, "CHF") == "CHF 10.00"

    def test_generate_slug(self):
        assert generate_slug("  Hello, World! Store_2 ") == "hello-world-store-2"

    def test_format_date_for_locale(self):
        d = date(2026, 1, 5)
        assert format_date_for_locale(d, "en-US") == "01/05/2026"
        assert format_date_for_locale(d, "de-AT") == "05.01.2026"
        assert format_date_for_locale(d, "xx") == "2026-01-05"

    def test_relative_time(self):
        now = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
        assert format_relative_time(datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc), now) == "about 2 hours ago"
        assert format_relative_time(datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc), now) == "in 3 days"

    def test_misc(self):
        assert format_file_size(0) == "0 Bytes"
        assert format_file_size(1536) == "1.5 KB"
        assert format_file_size(-1) == "0 Bytes"
        assert format_phone_number("555.123.4567") == "(555) 123-4567"
        assert truncate_text("abcdef", 3) == "abc..."


class TestEcommerce:
    def test_final_total_applies_discount_before_tax(self):
        totals = calculate_final_total(100, tax_rate=10, shipping_cost=5, discount_percentage=20)
        assert totals.discount == 20
        assert totals.tax == pytest.approx(8)
        assert totals.total == pytest.approx(93)

    def test_rounded_totals(self):
        totals = calculate_final_total(19.99, tax_rate=8.25, shipping_cost=0).rounded()
        assert totals.tax == 1.65
        assert totals.total == 21.64

    def test_tax_is_a_percentage(self):
        assert calculate_tax(200, 10) == pytest.approx(20)

    @pytest.mark.parametrize(
        "quantity,status",
        [(0, "Out of Stock"), (5, "Low Stock"), (20, "Limited Stock"), (21, "In Stock")],
    )
    def test_stock_status(self, quantity, status):
        assert get_stock_status(quantity) == status

    def test_free_shipping_threshold(self):
        assert qualifies_for_free_shipping(50)
        assert not qualifies_for_free_shipping(49.99)

    def test_generated_identifiers(self):
        number = generate_order_number()
        assert number.startswith("ORD-")
        assert len(number.split("-")[1]) == 6
        assert generate_product_sku().startswith("PROD-")

    def test_validate_product_data(self):
        assert validate_product_data("Mug", 5, "A large ceramic mug", "kitchen") == []
        assert validate_product_data("", 0, None, None) == [
            ValidationMessages.PRODUCT_NAME_TOO_SHORT,
            ValidationMessages.PRODUCT_PRICE_INVALID,
            ValidationMessages.PRODUCT_DESCRIPTION_TOO_SHORT,
            ValidationMessages.PRODUCT_CATEGORY_REQUIRED,
        ]


class TestAnalytics:
    def test_zero_denominators(self):
        assert calculate_conversion_rate(3, 0) == 0
        assert calculate_revenue_growth_rate(10, 0) == 0
        assert calculate_cart_abandonment_rate(1, 0) == 0

    def test_trend_indicator(self):
        assert get_trend_indicator(150, 100) == {"direction": "up", "percentage": 50}
        assert get_trend_indicator(50, 100) == {"direction": "down", "percentage": 50}
        assert get_trend_indicator(5, 0) == {"direction": "stable", "percentage": 0}

    def test_moving_average(self):
        assert calculate_moving_average([1, 2, 3, 4], 2) == [1.5, 2.5, 3.5]
        assert calculate_moving_average([1], 2) == []

    def test_weekly_buckets_start_on_sunday(self):
        data = [
            {"date": "2026-01-04", "value": 1},  # Sunday
            {"date": "2026-01-10", "value": 2},  # Saturday, same week
            {"date": "2026-01-11", "value": 4},  # next Sunday
        ]
        assert generate_time_series_data(data, period="week", aggregate="sum") == [
            {"date": "2026-01-04", "value": 3},
            {"date": "2026-01-11", "value": 4},
        ]

    def test_monthly_average(self):
        data = [{"date": "2026-02-01", "value": 2}, {"date": "2026-02-20", "value": 4}]
        assert generate_time_series_data(data, period="month") == [{"date": "2026-02", "value": 3}]

    def test_format_metric(self):
        assert format_analytics_metric(1234.5, "currency") == "$1,234.50"
        assert format_analytics_metric(12.5, "percentage") == "12.50%"
        assert format_analytics_metric(1234.4) == "1,234"
