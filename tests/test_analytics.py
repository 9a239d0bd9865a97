from datetime import timedelta

from storefront.constants import OrderStatus
from storefront.model.base import utc_now
from storefront.model.cart import Cart, CartItem
from storefront.model.order import Order, OrderItem

from conftest import auth_headers


def _order(session, tenant, user, total, *, days_ago=0, status=OrderStatus.PENDING, items=()):
    order = Order(
        tenant_id=tenant.id,
        user_id=user.id,
        order_number=f"ORD-{total}-{days_ago}-{status.value}",
        customer_email=user.email,
        status=status,
        subtotal=total,
        total=total,
        created_at=utc_now() - timedelta(days=days_ago),
    )
    session.add(order)
    session.flush()
    for product_id, name, quantity, price in items:
        session.add(
            OrderItem(order_id=order.id, product_id=product_id, product_name=name, quantity=quantity, price=price)
        )
    session.commit()
    return order


def test_dashboard_compares_with_previous_window(client, session, staff, customer, tenant):
    _order(session, tenant, customer, 100, days_ago=1)
    _order(session, tenant, customer, 50, days_ago=2)
    _order(session, tenant, customer, 999, days_ago=3, status=OrderStatus.CANCELLED)
    _order(session, tenant, customer, 100, days_ago=10)

    response = client.get("/api/analytics/dashboard", headers=auth_headers(staff), params={"days": 7})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["revenue"] == 150
    assert data["orders"] == 2
    assert data["average_order_value"] == 75
    assert data["revenue_growth"] == 50
    assert data["order_growth"] == 100
    assert data["previous_period"] == {"revenue": 100, "orders": 1, "average_order_value": 100}
    assert data["trends"]["revenue"] == {"direction": "up", "percentage": 50}
    assert data["customers"] == 1
    assert data["formatted"]["revenue"] == "$150.00"


def test_cart_abandonment(client, session, staff, customer, make_user, tenant, make_product):
    _order(session, tenant, customer, 10)
    browser = make_user("browser@example.com", tenant=tenant)
    product = make_product(tenant, "Vase")
    cart = Cart(tenant_id=tenant.id, user_id=browser.id)
    session.add(cart)
    session.flush()
    session.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=1, price=10))
    session.commit()

    data = client.get("/api/analytics/dashboard", headers=auth_headers(staff)).json()["data"]
    assert data["cart_abandonment_rate"] == 50
    assert data["conversion_rate"] == 50


def test_empty_store_reports_zeros(client, staff):
    data = client.get("/api/analytics/dashboard", headers=auth_headers(staff)).json()["data"]
    assert data["revenue"] == 0
    assert data["average_order_value"] == 0
    assert data["revenue_growth"] == 0
    assert data["trends"]["orders"] == {"direction": "stable", "percentage": 0}


def test_sales_series_by_day(client, session, staff, customer, tenant):
    _order(session, tenant, customer, 30, days_ago=2)
    _order(session, tenant, customer, 20, days_ago=2)
    _order(session, tenant, customer, 10, days_ago=0)
    _order(session, tenant, customer, 500, days_ago=0, status=OrderStatus.REFUNDED)

    data = client.get("/api/analytics/sales", headers=auth_headers(staff), params={"days": 7}).json()["data"]
    assert [p["value"] for p in data["revenue"]] == [50, 10]
    assert [p["value"] for p in data["orders"]] == [2, 1]
    assert data["total_revenue"] == 60
    assert data["growth"] == -80


def test_top_products(client, session, staff, customer, tenant, make_product):
    mug = make_product(tenant, "Mug")
    pen = make_product(tenant, "Pen")
    _order(session, tenant, customer, 40, items=[(mug.id, "Mug", 2, 10), (pen.id, "Pen", 5, 4)])
    _order(session, tenant, customer, 8, days_ago=1, items=[(pen.id, "Pen", 2, 4)])

    data = client.get("/api/analytics/products", headers=auth_headers(staff)).json()["data"]
    assert data == [
        {"product_id": pen.id, "name": "Pen", "units_sold": 7, "revenue": 28},
        {"product_id": mug.id, "name": "Mug", "units_sold": 2, "revenue": 20},
    ]


def test_popularity_sort_uses_units_sold(client, session, customer, tenant, make_product):
    mug = make_product(tenant, "Mug")
    pen = make_product(tenant, "Pen")
    make_product(tenant, "Cup")
    _order(session, tenant, customer, 40, items=[(pen.id, "Pen", 5, 4), (mug.id, "Mug", 1, 10)])

    response = client.get(
        "/api/products", params={"tenant_id": tenant.id, "sort_by": "popularity", "sort_order": "desc"}
    )
    assert [p["name"] for p in response.json()["data"]] == ["Pen", "Mug", "Cup"]


def test_requires_staff(client, customer):
    assert client.get("/api/analytics/dashboard", headers=auth_headers(customer)).status_code == 403


def test_tenant_analytics_endpoint(client, session, tenant_admin, customer, tenant):
    _order(session, tenant, customer, 42)
    data = client.get(f"/api/tenants/{tenant.id}/analytics", headers=auth_headers(tenant_admin)).json()["data"]
    assert data["revenue"] == 42
