import pytest
from sqlmodel import select

from storefront.constants import Messages, OrderStatus, PaymentStatus, Role
from storefront.model.audit_log import AuditLog
from storefront.model.cart import CartItem
from storefront.model.order import Order
from storefront.model.product import Product, ProductVariant

from conftest import auth_headers

ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address1": "1 Analytical Way",
    "city": "London",
    "state": "LDN",
    "postal_code": "N1 1AA",
    "country": "GB",
}


def _add(client, user, product_id, quantity=1, **extra):
    return client.post(
        "/api/cart/add",
        headers=auth_headers(user),
        json={"product_id": product_id, "quantity": quantity, **extra},
    )


def _checkout(client, user, **extra):
    return client.post("/api/orders", headers=auth_headers(user), json={"shipping_address": ADDRESS, **extra})


class TestCart:
    def test_empty_cart(self, client, customer):
        data = client.get("/api/cart", headers=auth_headers(customer)).json()["data"]
        assert data["items"] == []
        assert data["total"] == 0
        assert data["shipping"] == 0

    def test_add_merges_lines_and_totals(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Pen", price=2.5, stock=10)
        _add(client, customer, product.id, 2)
        response = _add(client, customer, product.id, 3)
        assert response.status_code == 200
        assert response.json()["message"] == Messages.CART_UPDATED

        data = response.json()["data"]
        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 5
        assert data["item_count"] == 5
        assert data["subtotal"] == 12.5
        assert data["tax"] == 1.25
        assert data["total"] == 13.75

    def test_tenant_tax_and_shipping_settings(self, client, session, customer, tenant, make_product):
        tenant.settings = {"tax_rate": 20, "default_shipping_cost": 4, "free_shipping_threshold": 100}
        session.add(tenant)
        session.commit()
        product = make_product(tenant, "Book", price=10)

        data = _add(client, customer, product.id, 2).json()["data"]
        assert data["tax"] == 4
        assert data["shipping"] == 4
        assert data["total"] == 28

    def test_free_shipping_from_threshold(self, client, session, customer, tenant, make_product):
        tenant.settings = {"default_shipping_cost": 4}
        session.add(tenant)
        session.commit()
        product = make_product(tenant, "Chair", price=50)
        assert _add(client, customer, product.id).json()["data"]["shipping"] == 0

    def test_stock_is_enforced(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Rare", stock=2)
        _add(client, customer, product.id, 2)
        response = _add(client, customer, product.id, 1)
        assert response.status_code == 400
        assert response.json()["error"] == Messages.INVENTORY_UNAVAILABLE

    def test_untracked_inventory_is_unlimited(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Download", stock=0, track_inventory=False)
        assert _add(client, customer, product.id, 50).status_code == 200

    def test_variant_price_and_stock(self, client, session, customer, tenant, make_product):
        product = make_product(tenant, "Tee", price=15)
        variant = ProductVariant(product_id=product.id, name="XL", price=18, stock=1)
        session.add(variant)
        session.commit()

        data = _add(client, customer, product.id, 1, variant_id=variant.id).json()["data"]
        assert data["items"][0]["price"] == 18
        assert _add(client, customer, product.id, 1, variant_id=variant.id).status_code == 400

    def test_inactive_or_foreign_product(self, client, customer, tenant, make_tenant, make_product):
        hidden = make_product(tenant, "Hidden", is_active=False)
        foreign = make_product(make_tenant("Other"), "Foreign")
        assert _add(client, customer, hidden.id).status_code == 404
        assert _add(client, customer, foreign.id).status_code == 404

    def test_quantity_bounds(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Pen")
        assert _add(client, customer, product.id, 0).status_code == 400
        assert _add(client, customer, product.id, 1000).status_code == 400

    def test_update_remove_clear(self, client, customer, tenant, make_product):
        pen = make_product(tenant, "Pen", price=1)
        ink = make_product(tenant, "Ink", price=3)
        _add(client, customer, pen.id)
        items = _add(client, customer, ink.id).json()["data"]["items"]
        pen_line, ink_line = items[0]["id"], items[1]["id"]
        headers = auth_headers(customer)

        data = client.put("/api/cart/update", headers=headers, json={"item_id": pen_line, "quantity": 4}).json()["data"]
        assert data["subtotal"] == 7

        data = client.put("/api/cart/update", headers=headers, json={"item_id": pen_line, "quantity": 0}).json()["data"]
        assert [i["id"] for i in data["items"]] == [ink_line]

        data = client.delete(f"/api/cart/remove/{ink_line}", headers=headers).json()["data"]
        assert data["items"] == []

        _add(client, customer, pen.id)
        assert client.post("/api/cart/clear", headers=headers).json()["data"]["item_count"] == 0

    def test_line_of_another_cart(self, client, customer, make_user, tenant, make_product):
        other = make_user("other@example.com", tenant=tenant)
        product = make_product(tenant, "Pen")
        line = _add(client, other, product.id).json()["data"]["items"][0]["id"]
        response = client.delete(f"/api/cart/remove/{line}", headers=auth_headers(customer))
        assert response.status_code == 404

    def test_requires_login(self, client, tenant):
        assert client.get("/api/cart", params={"tenant_id": tenant.id}).status_code == 401


class TestCheckout:
    def test_checkout_creates_order(self, client, session, customer, tenant, make_product):
        lamp = make_product(tenant, "Lamp", price=20, stock=5)
        _add(client, customer, lamp.id, 2)

        response = _checkout(client, customer, customer_notes="<b>Leave at door</b>")
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == Messages.ORDER_CREATED
        order = body["data"]
        assert order["order_number"].startswith("ORD-")
        assert order["status"] == OrderStatus.PENDING.value
        assert order["payment_status"] == PaymentStatus.PENDING.value
        assert order["subtotal"] == 40
        assert order["tax_amount"] == 4
        assert order["shipping_amount"] == 0
        assert order["total"] == 44
        assert order["customer_email"] == customer.email
        assert order["customer_first_name"] == "Ada"
        assert order["billing_address"] == order["shipping_address"]
        assert order["customer_notes"] == "bLeave at door/b"
        assert order["item_count"] == 2
        assert order["items"][0]["product_name"] == "Lamp"

        session.expire_all()
        assert session.get(Product, lamp.id).stock == 3
        assert session.exec(select(CartItem)).all() == []

    def test_shipping_method_price(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Pen", price=10)
        _add(client, customer, product.id)
        order = _checkout(client, customer, shipping_method="express").json()["data"]
        assert order["shipping_amount"] == 14.99
        assert order["total"] == 25.99

    def test_unknown_shipping_method(self, client, customer, tenant, make_product):
        product = make_product(tenant, "Pen", price=10)
        _add(client, customer, product.id)
        response = _checkout(client, customer, shipping_method="teleport")
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid shipping method"

    def test_empty_cart(self, client, customer):
        response = _checkout(client, customer)
        assert response.status_code == 400
        assert response.json()["error"] == "Cart is empty"

    def test_stock_changed_since_added(self, client, session, customer, tenant, make_product):
        product = make_product(tenant, "Limited", stock=3)
        _add(client, customer, product.id, 3)
        product.stock = 1
        session.add(product)
        session.commit()

        response = _checkout(client, customer)
        assert response.status_code == 400
        assert response.json()["error"] == Messages.INVENTORY_UNAVAILABLE
        session.expire_all()
        assert session.exec(select(Order)).all() == []
        assert len(session.exec(select(CartItem)).all()) == 1

    def test_variant_stock_is_decremented(self, client, session, customer, tenant, make_product):
        product = make_product(tenant, "Tee", price=15, stock=9)
        variant = ProductVariant(product_id=product.id, name="M", stock=4)
        session.add(variant)
        session.commit()
        _add(client, customer, product.id, 3, variant_id=variant.id)

        order = _checkout(client, customer).json()["data"]
        assert order["items"][0]["product_name"] == "Tee - M"
        session.expire_all()
        assert session.get(ProductVariant, variant.id).stock == 1
        assert session.get(Product, product.id).stock == 9

    def test_invalid_address(self, client, customer):
        response = client.post(
            "/api/orders",
            headers=auth_headers(customer),
            json={"shipping_address": {**ADDRESS, "city": "  "}},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Address fields cannot be empty"


@pytest.fixture
def place_order(client, tenant, make_product):
    def _place(user, price=20.0, quantity=1, stock=10):
        product = make_product(tenant, f"Item {price} {quantity} {user.id}", price=price, stock=stock)
        _add(client, user, product.id, quantity)
        return _checkout(client, user).json()["data"], product

    return _place


class TestOrderAccess:
    def test_customer_sees_own_orders_only(self, client, customer, make_user, tenant, place_order):
        other = make_user("other@example.com", tenant=tenant)
        mine, _ = place_order(customer)
        theirs, _ = place_order(other)

        listing = client.get("/api/orders", headers=auth_headers(customer)).json()
        assert [o["id"] for o in listing["data"]] == [mine["id"]]
        assert client.get(f"/api/orders/{theirs['id']}", headers=auth_headers(customer)).status_code == 404

    def test_staff_sees_tenant_orders(self, client, staff, customer, make_user, tenant, place_order):
        other = make_user("other@example.com", tenant=tenant)
        place_order(customer, price=10)
        place_order(other, price=30)

        listing = client.get(
            "/api/orders", headers=auth_headers(staff), params={"sort_by": "total", "sort_order": "asc"}
        ).json()
        assert [o["total"] for o in listing["data"]] == [11, 33]
        assert listing["pagination"]["total"] == 2

        filtered = client.get(
            "/api/orders", headers=auth_headers(staff), params={"customer_email": "other@"}
        ).json()
        assert [o["customer_email"] for o in filtered["data"]] == ["other@example.com"]

    def test_staff_of_other_store(self, client, customer, make_tenant, make_user, place_order):
        order, _ = place_order(customer)
        outsider = make_user("outsider@example.com", role=Role.STAFF, tenant=make_tenant("Other"))
        assert client.get(f"/api/orders/{order['id']}", headers=auth_headers(outsider)).status_code == 403


class TestOrderLifecycle:
    def test_staff_updates_status(self, client, session, staff, customer, place_order):
        order, _ = place_order(customer)
        response = client.put(
            f"/api/orders/{order['id']}",
            headers=auth_headers(staff),
            json={"status": "SHIPPED", "tracking_number": "1Z999"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "SHIPPED"
        assert data["shipped_at"] is not None
        assert data["tracking_number"] == "1Z999"

        event = session.exec(select(AuditLog).where(AuditLog.event_type == "order_status_changed")).one()
        assert event.data == {"order_id": order["id"], "from": "PENDING", "to": "SHIPPED"}

    def test_customer_cannot_update(self, client, customer, place_order):
        order, _ = place_order(customer)
        response = client.put(f"/api/orders/{order['id']}", headers=auth_headers(customer), json={"status": "SHIPPED"})
        assert response.status_code == 403

    def test_cancel_restocks(self, client, session, customer, place_order):
        order, product = place_order(customer, quantity=3, stock=5)
        response = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == order["id"]
        assert data["order_number"] == order["order_number"]
        assert data["total"] == order["total"]
        assert data["status"] == "CANCELLED"
        assert data["payment_status"] == "CANCELLED"

        session.expire_all()
        assert session.get(Product, product.id).stock == 5

        again = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))
        assert again.status_code == 400

    def test_shipped_order_cannot_be_cancelled(self, client, staff, customer, place_order):
        order, _ = place_order(customer)
        client.put(f"/api/orders/{order['id']}", headers=auth_headers(staff), json={"status": "SHIPPED"})
        response = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))
        assert response.status_code == 400
        assert response.json()["error"] == "Order cannot be cancelled in status SHIPPED"

    def test_refund(self, client, tenant_admin, staff, customer, place_order):
        order, _ = place_order(customer)
        assert client.post(f"/api/orders/{order['id']}/refund", headers=auth_headers(staff)).status_code == 403

        response = client.post(f"/api/orders/{order['id']}/refund", headers=auth_headers(tenant_admin))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == order["id"]
        assert data["order_number"] == order["order_number"]
        assert data["status"] == "REFUNDED"
        assert data["payment_status"] == "REFUNDED"

        again = client.post(f"/api/orders/{order['id']}/refund", headers=auth_headers(tenant_admin))
        assert again.status_code == 400

    @pytest.mark.parametrize(
        "changes",
        [
            {"status": "REFUNDED", "payment_status": "REFUNDED"},
            {"status": "PARTIALLY_REFUNDED"},
            {"payment_status": "REFUNDED"},
            {"status": "CANCELLED"},
        ],
    )
    def test_update_cannot_cancel_or_refund(self, client, session, staff, customer, place_order, changes):
        order, product = place_order(customer, quantity=3, stock=5)
        response = client.put(f"/api/orders/{order['id']}", headers=auth_headers(staff), json=changes)
        assert response.status_code == 400
        assert response.json()["error"] == "Use the cancel or refund action for this change"

        session.expire_all()
        stored = session.get(Order, order["id"])
        assert stored.status == OrderStatus.PENDING
        assert stored.payment_status == PaymentStatus.PENDING
        assert session.get(Product, product.id).stock == 2

    def test_update_sets_payment_status(self, client, staff, customer, place_order):
        order, _ = place_order(customer)
        response = client.put(f"/api/orders/{order['id']}", headers=auth_headers(staff), json={"payment_status": "PAID"})
        assert response.status_code == 200
        assert response.json()["data"]["payment_status"] == "PAID"
        assert response.json()["data"]["status"] == "PENDING"

    def test_cancelled_order_cannot_be_reopened(self, client, session, staff, customer, place_order):
        order, product = place_order(customer, quantity=3, stock=5)
        client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(customer))

        response = client.put(f"/api/orders/{order['id']}", headers=auth_headers(staff), json={"status": "PENDING"})
        assert response.status_code == 400
        assert response.json()["error"] == "Order cannot be changed in status CANCELLED"

        # notes and tracking stay editable on a closed order
        notes = client.put(f"/api/orders/{order['id']}", headers=auth_headers(staff), json={"admin_notes": "called"})
        assert notes.status_code == 200
        assert notes.json()["data"]["admin_notes"] == "called"
        assert notes.json()["data"]["status"] == "CANCELLED"

        session.expire_all()
        assert session.get(Order, order["id"]).status == OrderStatus.CANCELLED
        assert session.get(Product, product.id).stock == 5

    def test_tracking(self, client, customer, place_order):
        order, _ = place_order(customer)
        data = client.get(f"/api/orders/{order['id']}/tracking", headers=auth_headers(customer)).json()["data"]
        assert data["order_number"] == order["order_number"]
        assert data["status"] == "PENDING"
        assert data["shipped_at"] is None
        month, day, year = data["estimated_delivery_display"].split("/")
        assert data["estimated_delivery"] == f"{year}-{month}-{day}"
