from sqlmodel import select

from storefront.constants import Messages
from storefront.model.audit_log import AuditLog
from storefront.model.tenant import Tenant

from conftest import auth_headers


def test_public_list_shows_active_stores(client, make_tenant):
    make_tenant("Zeta")
    make_tenant("Alpha")
    make_tenant("Closed", subscription_status="cancelled")

    response = client.get("/api/tenants")
    assert response.status_code == 200
    assert [t["name"] for t in response.json()["data"]] == ["Alpha", "Zeta"]
    assert set(response.json()["data"][0]) == {"id", "name", "slug"}


class TestCreateTenant:
    def test_super_admin_creates_store(self, client, session, super_admin):
        response = client.post(
            "/api/tenants",
            headers=auth_headers(super_admin),
            json={"name": "Coffee Corner", "plan": "starter", "currency": "eur"},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["slug"] == "coffee-corner"
        assert data["currency"] == "EUR"
        assert data["subscription_tier"] == "starter"
        assert data["max_products"] == 100

        events = session.exec(select(AuditLog).where(AuditLog.event_type == "tenant_created")).all()
        assert len(events) == 1
        assert events[0].actor_user_id == super_admin.id

    def test_duplicate_slug(self, client, super_admin, tenant):
        response = client.post("/api/tenants", headers=auth_headers(super_admin), json={"name": tenant.slug})
        assert response.status_code == 409

    def test_requires_super_admin(self, client, tenant_admin):
        response = client.post("/api/tenants", headers=auth_headers(tenant_admin), json={"name": "Mine"})
        assert response.status_code == 403
        assert response.json()["error"] == "Requires role: SUPER_ADMIN"

    def test_invalid_timezone(self, client, super_admin):
        response = client.post(
            "/api/tenants",
            headers=auth_headers(super_admin),
            json={"name": "Clocks", "timezone": "Mars/Olympus"},
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid timezone")


class TestTenantAccess:
    def test_staff_reads_own_store(self, client, staff, tenant):
        response = client.get(f"/api/tenants/{tenant.id}", headers=auth_headers(staff))
        assert response.status_code == 200
        assert response.json()["data"]["id"] == tenant.id

    def test_other_store_is_denied(self, client, staff, make_tenant):
        other = make_tenant("Elsewhere")
        response = client.get(f"/api/tenants/{other.id}", headers=auth_headers(staff))
        assert response.status_code == 403
        assert response.json()["error"] == Messages.ACCESS_DENIED

    def test_customer_is_denied(self, client, customer, tenant):
        response = client.get(f"/api/tenants/{tenant.id}", headers=auth_headers(customer))
        assert response.status_code == 403

    def test_update_keeps_slug_unique(self, client, tenant_admin, tenant, make_tenant):
        make_tenant("Taken", slug="taken")
        response = client.put(f"/api/tenants/{tenant.id}", headers=auth_headers(tenant_admin), json={"slug": "Taken"})
        assert response.status_code == 409

        response = client.put(
            f"/api/tenants/{tenant.id}",
            headers=auth_headers(tenant_admin),
            json={"name": "Renamed", "locale": "de-DE"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Renamed"

    def test_update_rejects_empty_slug(self, client, tenant_admin, tenant):
        response = client.put(f"/api/tenants/{tenant.id}", headers=auth_headers(tenant_admin), json={"slug": "???"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid store slug"


class TestSettings:
    def test_defaults(self, client, staff, tenant):
        data = client.get(f"/api/tenants/{tenant.id}/settings", headers=auth_headers(staff)).json()["data"]
        assert data["store_name"] == tenant.name
        assert data["tax_rate"] == 10
        assert data["free_shipping_threshold"] == 50
        assert [m["id"] for m in data["shipping_methods"]] == ["standard", "express"]

    def test_update_merges(self, client, session, tenant_admin, tenant):
        response = client.put(
            f"/api/tenants/{tenant.id}/settings",
            headers=auth_headers(tenant_admin),
            json={"tax_rate": 8.5, "store_name": "Main Street"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tax_rate"] == 8.5
        assert data["store_name"] == "Main Street"
        assert data["currency"] == "USD"

        session.expire_all()
        assert session.get(Tenant, tenant.id).settings == {"tax_rate": 8.5, "store_name": "Main Street"}

    def test_staff_cannot_update(self, client, staff, tenant):
        response = client.put(f"/api/tenants/{tenant.id}/settings", headers=auth_headers(staff), json={"tax_rate": 5})
        assert response.status_code == 403

    def test_tax_rate_bounds(self, client, tenant_admin, tenant):
        response = client.put(
            f"/api/tenants/{tenant.id}/settings", headers=auth_headers(tenant_admin), json={"tax_rate": 150}
        )
        assert response.status_code == 400


class TestSubscription:
    def test_read_usage(self, client, tenant_admin, tenant, customer, make_product):
        make_product(tenant, "Lamp")
        data = client.get(f"/api/tenants/{tenant.id}/subscription", headers=auth_headers(tenant_admin)).json()["data"]
        assert data["plan"]["id"] == "starter"
        assert data["limits"]["products"] == 100
        assert data["usage"] == {"products": 1, "customers": 1}

    def test_change_plan(self, client, super_admin, tenant):
        response = client.put(
            f"/api/tenants/{tenant.id}/subscription",
            headers=auth_headers(super_admin),
            json={"plan": "Professional"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["plan"]["id"] == "professional"
        assert data["limits"]["products"] == -1
        assert data["current_period_end"] is not None

    def test_unknown_plan(self, client, super_admin, tenant):
        response = client.put(
            f"/api/tenants/{tenant.id}/subscription", headers=auth_headers(super_admin), json={"plan": "gold"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Unknown plan: gold"

    def test_tenant_admin_cannot_change_plan(self, client, tenant_admin, tenant):
        response = client.put(
            f"/api/tenants/{tenant.id}/subscription", headers=auth_headers(tenant_admin), json={"plan": "free"}
        )
        assert response.status_code == 403
