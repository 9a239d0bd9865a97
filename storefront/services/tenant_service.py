from __future__ import annotations

import copy
import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from storefront.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_PLAN_ID,
    DEFAULT_SHIPPING_COST,
    DEFAULT_TAX_RATE,
    FREE_SHIPPING_THRESHOLD,
    SUBSCRIPTION_PLANS,
    UNLIMITED,
    Messages,
)
from storefront.model.base import utc_now
from storefront.model.product import Product
from storefront.model.tenant import Tenant

logger = logging.getLogger(__name__)

# Store settings; values saved on the tenant override these key by key.
DEFAULT_SETTINGS: dict[str, Any] = {
    "store_name": None,
    "store_description": None,
    "contact_email": None,
    "contact_phone": None,
    "contact_address": None,
    "currency": DEFAULT_CURRENCY,
    "tax_rate": round(DEFAULT_TAX_RATE * 100, 2),  # percent
    "default_shipping_cost": DEFAULT_SHIPPING_COST,
    "free_shipping_threshold": FREE_SHIPPING_THRESHOLD,
    "shipping_methods": [
        {"id": "standard", "name": "Standard Shipping", "price": 5.99, "is_active": True, "description": "3-5 business days"},
        {"id": "express", "name": "Express Shipping", "price": 14.99, "is_active": True, "description": "1-2 business days"},
    ],
    "social_media": {},
    "seo_settings": {},
    "theme_settings": {"primary_color": "#000000", "secondary_color": "#ffffff", "font_family": "Inter"},
}


def get_tenant_by_id(session: Session, tenant_id: int) -> Tenant | None:
    return session.exec(select(Tenant).where(Tenant.id == int(tenant_id))).first()


def get_tenant_or_404(session: Session, tenant_id: int) -> Tenant:
    tenant = get_tenant_by_id(session, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail=Messages.TENANT_NOT_FOUND)
    return tenant


def get_settings(tenant: Tenant) -> dict[str, Any]:
    """Tenant settings merged over DEFAULT_SETTINGS; `store_name` falls back to the tenant name."""
    merged = copy.deepcopy(DEFAULT_SETTINGS)
    merged.update(tenant.settings or {})
    if not merged.get("store_name"):
        merged["store_name"] = tenant.name
    return merged


def update_settings(session: Session, tenant: Tenant, changes: dict[str, Any]) -> dict[str, Any]:
    # JSON columns are not mutation-tracked: assign a new dict
    tenant.settings = {**(tenant.settings or {}), **changes}
    tenant.updated_at = utc_now()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    logger.info(f"Settings updated for tenant {tenant.id}: keys={sorted(changes)}")
    return get_settings(tenant)


def get_plan(plan_id: str | None) -> dict:
    plan = SUBSCRIPTION_PLANS.get((plan_id or "").lower())
    if plan is None:
        raise HTTPException(status_code=400, detail=f"Unknown plan: {plan_id}")
    return plan


def apply_plan(tenant: Tenant, plan_id: str) -> Tenant:
    """Switch the tenant's tier and copy the plan limits onto it (caller commits)."""
    plan = get_plan(plan_id)
    limits = plan["limits"]
    tenant.subscription_tier = plan["id"]
    tenant.max_products = limits["products"]
    tenant.max_customers = limits["customers"]
    tenant.max_storage = limits["storage"]
    tenant.updated_at = utc_now()
    return tenant


def create_tenant(
    session: Session,
    *,
    name: str,
    slug: str,
    plan_id: str = DEFAULT_PLAN_ID,
    **fields: Any,
) -> Tenant:
    tenant = Tenant(name=name, slug=slug, **fields)
    apply_plan(tenant, plan_id)
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    logger.info(f"Tenant created: id={tenant.id}, slug={tenant.slug}, plan={tenant.subscription_tier}")
    return tenant


def ensure_product_capacity(session: Session, tenant: Tenant) -> None:
    """
    Raises:
        HTTPException: 403 when the tenant already has max_products products
    """
    if tenant.max_products == UNLIMITED:
        return
    count = session.exec(select(func.count(Product.id)).where(Product.tenant_id == tenant.id)).one()
    if int(count or 0) >= tenant.max_products:
        raise HTTPException(status_code=403, detail=Messages.PLAN_LIMIT_REACHED)


def tenant_summary(tenant: Tenant | None) -> dict | None:
    if tenant is None:
        return None
    return {"id": tenant.id, "name": tenant.name, "slug": tenant.slug}
