from sqlmodel import select

from storefront.constants import Role
from storefront.model.audit_log import AuditLog

from conftest import PASSWORD, auth_headers


def _add_and_checkout(client, user, product_id, quantity=1):
    headers = auth_headers(user)
    client.post("/api/cart/add", headers=headers, json={"product_id": product_id, "quantity": quantity})
    address = {
        "first_name": "A",
        "last_name": "B",
        "address1": "Street 1",
        "city": "Town",
        "state": "ST",
        "postal_code": "12345",
        "country": "US",
    }
    return client.post("/api/orders", headers=headers, json={"shipping_address": address}).json()["data"]


class TestUsers:
    def test_tenant_admin_lists_own_tenant(self, client, tenant_admin, staff, customer, make_tenant, make_user):
        make_user("elsewhere@example.com", tenant=make_tenant("Other"))
        body = client.get("/api/users", headers=auth_headers(tenant_admin)).json()
        assert {u["email"] for u in body["data"]} == {tenant_admin.email, staff.email, customer.email}
        assert all("password" not in u for u in body["data"])

    def test_filters(self, client, tenant_admin, staff, customer):
        headers = auth_headers(tenant_admin)
        by_role = client.get("/api/users", headers=headers, params={"role": "STAFF"}).json()["data"]
        assert [u["email"] for u in by_role] == [staff.email]
        by_search = client.get("/api/users", headers=headers, params={"search": "shop"}).json()["data"]
        assert [u["email"] for u in by_search] == [customer.email]

    def test_super_admin_sees_everyone(self, client, super_admin, tenant_admin, make_tenant, make_user):
        make_user("elsewhere@example.com", tenant=make_tenant("Other"))
        body = client.get("/api/users", headers=auth_headers(super_admin)).json()
        assert body["pagination"]["total"] == 3

    def test_staff_cannot_list(self, client, staff):
        assert client.get("/api/users", headers=auth_headers(staff)).status_code == 403

    def test_create_staff_in_own_tenant(self, client, session, tenant_admin, tenant):
        response = client.post(
            "/api/users",
            headers=auth_headers(tenant_admin),
            json={"email": "clerk@example.com", "password": PASSWORD, "role": "STAFF"},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["tenant_id"] == tenant.id
        assert data["email"] == "clerk@example.com"
        assert data["role"] == Role.STAFF.value
        assert "password" not in data
        assert session.exec(select(AuditLog).where(AuditLog.event_type == "user_created")).first() is not None

    def test_cannot_grant_higher_role(self, client, tenant_admin):
        response = client.post(
            "/api/users",
            headers=auth_headers(tenant_admin),
            json={"email": "boss@example.com", "password": PASSWORD, "role": "SUPER_ADMIN"},
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Cannot grant a role above your own"

    def test_super_admin_must_name_tenant(self, client, super_admin, tenant):
        payload = {"email": "clerk@example.com", "password": PASSWORD, "role": "STAFF"}
        assert client.post("/api/users", headers=auth_headers(super_admin), json=payload).status_code == 400

        response = client.post(
            "/api/users", headers=auth_headers(super_admin), json={**payload, "tenant_id": tenant.id}
        )
        assert response.status_code == 201

    def test_role_change_is_audited(self, client, session, tenant_admin, staff):
        response = client.put(f"/api/users/{staff.id}", headers=auth_headers(tenant_admin), json={"role": "CUSTOMER"})
        assert response.status_code == 200
        assert response.json()["data"]["role"] == Role.CUSTOMER.value

        event = session.exec(select(AuditLog).where(AuditLog.event_type == "user_role_changed")).one()
        assert event.data == {"user_id": staff.id, "from": "STAFF", "to": "CUSTOMER"}

    def test_cannot_demote_self(self, client, tenant_admin):
        response = client.put(
            f"/api/users/{tenant_admin.id}", headers=auth_headers(tenant_admin), json={"is_active": False}
        )
        assert response.status_code == 400

    def test_cannot_touch_other_tenant(self, client, tenant_admin, make_tenant, make_user):
        outsider = make_user("outsider@example.com", tenant=make_tenant("Other"))
        response = client.put(f"/api/users/{outsider.id}", headers=auth_headers(tenant_admin), json={"name": "X"})
        assert response.status_code == 403


class TestCustomers:
    def test_list_with_order_stats(self, client, staff, customer, make_user, tenant, make_product):
        make_user("quiet@example.com", tenant=tenant)
        product = make_product(tenant, "Kettle", price=25, stock=10)
        _add_and_checkout(client, customer, product.id, 2)

        body = client.get("/api/customers", headers=auth_headers(staff)).json()
        stats = {c["email"]: c for c in body["data"]}
        assert set(stats) == {"shopper@example.com", "quiet@example.com"}
        assert stats["shopper@example.com"]["order_count"] == 1
        assert stats["shopper@example.com"]["total_spent"] == 55
        assert stats["quiet@example.com"]["last_order_at"] is None

    def test_customer_detail_and_orders(self, client, staff, customer, tenant, make_product):
        product = make_product(tenant, "Kettle", price=25, stock=10)
        order = _add_and_checkout(client, customer, product.id)

        detail = client.get(f"/api/customers/{customer.id}", headers=auth_headers(staff)).json()["data"]
        assert detail["order_count"] == 1
        orders = client.get(f"/api/customers/{customer.id}/orders", headers=auth_headers(staff)).json()
        assert [o["id"] for o in orders["data"]] == [order["id"]]

    def test_staff_is_not_a_customer(self, client, staff, tenant_admin):
        response = client.get(f"/api/customers/{tenant_admin.id}", headers=auth_headers(staff))
        assert response.status_code == 404

    def test_customers_cannot_browse_customers(self, client, customer):
        assert client.get("/api/customers", headers=auth_headers(customer)).status_code == 403
