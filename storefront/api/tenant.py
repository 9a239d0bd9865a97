import logging
from datetime import timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func
from sqlmodel import Session, select

from storefront.api.response import dump, success
from storefront.auth.dependencies import require_role, require_tenant_access
from storefront.constants import (
    ANALYTICS_DEFAULT_DAYS,
    ANALYTICS_MAX_DAYS,
    CURRENCIES,
    SUBSCRIPTION_PLANS,
    TENANT_STATUS_ACTIVE,
    Messages,
    Role,
)
from storefront.db.session import get_session
from storefront.lib.formatting import generate_slug
from storefront.lib.validation import is_valid_email
from storefront.model.base import utc_now
from storefront.model.product import Product
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services import tenant_service
from storefront.services.analytics_service import dashboard_metrics
from storefront.services.audit import try_write_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants", tags=["Tenant"])

SUBSCRIPTION_PERIOD_DAYS = 30


def _validate_timezone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    try:
        ZoneInfo(v)
    except Exception as e:
        raise ValueError("Invalid timezone (expected IANA, e.g. America/New_York)") from e
    return v


def _validate_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    code = v.strip().upper()
    if code not in CURRENCIES:
        raise ValueError(f"Unsupported currency: {v}")
    return code


class TenantCreate(BaseModel):
    name: str
    slug: Optional[str] = None
    domain: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    plan: str = "free"
    timezone: str = "UTC"
    locale: str = "en-US"
    currency: str = "USD"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Store name is required")
        return v.strip()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        return _validate_timezone(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        return _validate_currency(v)


class TenantUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    domain: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    timezone: Optional[str] = None
    locale: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("name", "slug", "locale")
    @classmethod
    def validate_string_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        return _validate_timezone(v)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _validate_currency(v)


class ShippingMethod(BaseModel):
    id: str
    name: str
    price: float = Field(ge=0)
    is_active: bool = True
    description: Optional[str] = None


class SettingsUpdate(BaseModel):
    store_name: Optional[str] = None
    store_description: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_address: Optional[str] = None
    currency: Optional[str] = None
    tax_rate: Optional[float] = Field(default=None, ge=0, le=100)
    default_shipping_cost: Optional[float] = Field(default=None, ge=0)
    free_shipping_threshold: Optional[float] = Field(default=None, ge=0)
    shipping_methods: Optional[list[ShippingMethod]] = None
    social_media: Optional[dict[str, Any]] = None
    seo_settings: Optional[dict[str, Any]] = None
    theme_settings: Optional[dict[str, Any]] = None

    @field_validator("contact_email")
    @classmethod
    def validate_contact_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not is_valid_email(v):
            raise ValueError(Messages.INVALID_EMAIL)
        return v.strip().lower()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _validate_currency(v)


class SubscriptionUpdate(BaseModel):
    plan: str
    status: Optional[str] = None
    cancel_at_period_end: Optional[bool] = None

    @field_validator("plan")
    @classmethod
    def validate_plan(cls, v: str) -> str:
        plan = v.strip().lower()
        if plan not in SUBSCRIPTION_PLANS:
            raise ValueError(f"Unknown plan: {v}")
        return plan


def _tenant_for(session: Session, user: User, tenant_id: int) -> Tenant:
    require_tenant_access(user, tenant_id)
    return tenant_service.get_tenant_or_404(session, tenant_id)


@router.get("")
def list_active_tenants(session: Session = Depends(get_session)):
    """Public list of active stores (id, name, slug) ordered by name."""
    rows = session.exec(
        select(Tenant.id, Tenant.name, Tenant.slug)
        .where(Tenant.subscription_status == TENANT_STATUS_ACTIVE)
        .order_by(Tenant.name)
    ).all()
    return success([{"id": id_, "name": name, "slug": slug} for id_, name, slug in rows])


@router.post("", status_code=201)
def create_tenant(
    body: TenantCreate,
    user: User = Depends(require_role(Role.SUPER_ADMIN)),
    session: Session = Depends(get_session),
):
    slug = generate_slug(body.slug or body.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Invalid store slug")
    if session.exec(select(Tenant.id).where(Tenant.slug == slug)).first() is not None:
        raise HTTPException(status_code=409, detail="A store with this slug already exists")

    try:
        tenant = tenant_service.create_tenant(
            session,
            name=body.name,
            slug=slug,
            plan_id=body.plan,
            domain=body.domain,
            description=body.description,
            logo=body.logo,
            timezone=body.timezone,
            locale=body.locale,
            currency=body.currency,
        )
    except HTTPException:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create tenant: {e}", exc_info=True)
        raise

    try_write_audit_log(
        session,
        event_type="tenant_created",
        tenant_id=tenant.id,
        actor_user_id=user.id,
        data={"slug": tenant.slug, "plan": tenant.subscription_tier},
    )
    session.refresh(tenant)
    return success(dump(tenant), "Store created successfully")


@router.get("/{tenant_id}")
def get_tenant(
    tenant_id: int,
    user: User = Depends(require_role(Role.STAFF)),
    session: Session = Depends(get_session),
):
    return success(dump(_tenant_for(session, user, tenant_id)))


@router.put("/{tenant_id}")
def update_tenant(
    tenant_id: int,
    body: TenantUpdate,
    user: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    tenant = _tenant_for(session, user, tenant_id)
    changes = body.model_dump(exclude_unset=True)

    if changes.get("slug") is not None:
        changes["slug"] = generate_slug(changes["slug"])
        if not changes["slug"]:
            raise HTTPException(status_code=400, detail="Invalid store slug")
        if changes["slug"] != tenant.slug:
            taken = session.exec(
                select(Tenant.id).where(Tenant.slug == changes["slug"], Tenant.id != tenant.id)
            ).first()
            if taken is not None:
                raise HTTPException(status_code=409, detail="A store with this slug already exists")

    for field, value in changes.items():
        setattr(tenant, field, value)
    tenant.updated_at = utc_now()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    logger.info(f"Tenant updated: id={tenant.id}, fields={sorted(changes)}")
    return success(dump(tenant), "Store updated successfully")


@router.get("/{tenant_id}/settings")
def get_tenant_settings(
    tenant_id: int,
    user: User = Depends(require_role(Role.STAFF)),
    session: Session = Depends(get_session),
):
    return success(tenant_service.get_settings(_tenant_for(session, user, tenant_id)))


@router.put("/{tenant_id}/settings")
def update_tenant_settings(
    tenant_id: int,
    body: SettingsUpdate,
    user: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    tenant = _tenant_for(session, user, tenant_id)
    settings = tenant_service.update_settings(session, tenant, body.model_dump(exclude_unset=True))
    return success(settings, Messages.SETTINGS_SAVED)


def _subscription_payload(session: Session, tenant: Tenant) -> dict[str, Any]:
    products = session.exec(select(func.count(Product.id)).where(Product.tenant_id == tenant.id)).one()
    customers = session.exec(
        select(func.count(User.id)).where(User.tenant_id == tenant.id, User.role == Role.CUSTOMER)
    ).one()
    data = dump(tenant)
    return {
        "plan": SUBSCRIPTION_PLANS.get(tenant.subscription_tier),
        "status": tenant.subscription_status,
        "current_period_start": data["current_period_start"],
        "current_period_end": data["current_period_end"],
        "cancel_at_period_end": tenant.cancel_at_period_end,
        "limits": {
            "products": tenant.max_products,
            "customers": tenant.max_customers,
            "storage": tenant.max_storage,
        },
        "usage": {"products": int(products or 0), "customers": int(customers or 0)},
    }


@router.get("/{tenant_id}/subscription")
def get_subscription(
    tenant_id: int,
    user: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    return success(_subscription_payload(session, _tenant_for(session, user, tenant_id)))


@router.put("/{tenant_id}/subscription")
def update_subscription(
    tenant_id: int,
    body: SubscriptionUpdate,
    user: User = Depends(require_role(Role.SUPER_ADMIN)),
    session: Session = Depends(get_session),
):
    """Switch plan (limits copied from the plan) and start a new billing period."""
    tenant = tenant_service.get_tenant_or_404(session, tenant_id)
    previous_plan = tenant.subscription_tier

    tenant_service.apply_plan(tenant, body.plan)
    now = utc_now()
    tenant.current_period_start = now
    tenant.current_period_end = now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS)
    if body.status is not None:
        tenant.subscription_status = body.status.strip().lower()
    if body.cancel_at_period_end is not None:
        tenant.cancel_at_period_end = body.cancel_at_period_end
    session.add(tenant)
    session.commit()
    session.refresh(tenant)

    try_write_audit_log(
        session,
        event_type="subscription_changed",
        tenant_id=tenant.id,
        actor_user_id=user.id,
        data={"from": previous_plan, "to": tenant.subscription_tier},
    )
    session.refresh(tenant)
    return success(_subscription_payload(session, tenant), "Subscription updated successfully")


@router.get("/{tenant_id}/analytics")
def get_tenant_analytics(
    tenant_id: int,
    days: int = Query(ANALYTICS_DEFAULT_DAYS, ge=1, le=ANALYTICS_MAX_DAYS, description="Window in days"),
    user: User = Depends(require_role(Role.STAFF)),
    session: Session = Depends(get_session),
):
    tenant = _tenant_for(session, user, tenant_id)
    return success(dashboard_metrics(session, tenant.id, days, tenant.currency))
