"""
Back-office endpoints.

/api/dashboard/* is limited to TENANT_ADMIN and SUPER_ADMIN and /api/admin/* to
SUPER_ADMIN by the access middleware; the role dependencies repeat the check
against the database role.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlmodel import Session, col, select

from storefront.api.response import dump, dump_user, paginated, success
from storefront.auth.dependencies import require_role
from storefront.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, TENANT_STATUS_ACTIVE, OrderStatus, Role
from storefront.db.session import get_session
from storefront.model.category import Category
from storefront.model.order import Order
from storefront.model.product import Product
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services.tenant_service import get_tenant_or_404, tenant_summary

dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])
admin_router = APIRouter(prefix="/admin", tags=["Admin"])


def _count(session: Session, query) -> int:
    return int(session.exec(query).one() or 0)


@dashboard_router.get("/overview")
def dashboard_overview(
    user: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
    tenant_id: int | None = Query(None, description="Tenant (super admin only)"),
):
    """Session user, its store and the store's headline counts."""
    target = tenant_id if user.role == Role.SUPER_ADMIN and tenant_id is not None else user.tenant_id
    if target is None:
        raise HTTPException(status_code=400, detail="tenant_id is required")
    tenant = get_tenant_or_404(session, target)

    pending = [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING]
    counts = {
        "products": _count(session, select(func.count(Product.id)).where(Product.tenant_id == tenant.id)),
        "active_products": _count(
            session,
            select(func.count(Product.id)).where(Product.tenant_id == tenant.id, Product.is_active == True),  # noqa: E712
        ),
        "low_stock_products": _count(
            session,
            select(func.count(Product.id)).where(
                Product.tenant_id == tenant.id,
                Product.track_inventory == True,  # noqa: E712
                Product.stock <= Product.low_stock_threshold,
            ),
        ),
        "categories": _count(session, select(func.count(Category.id)).where(Category.tenant_id == tenant.id)),
        "customers": _count(
            session,
            select(func.count(User.id)).where(User.tenant_id == tenant.id, User.role == Role.CUSTOMER),
        ),
        "orders": _count(session, select(func.count(Order.id)).where(Order.tenant_id == tenant.id)),
        "open_orders": _count(
            session,
            select(func.count(Order.id)).where(Order.tenant_id == tenant.id, col(Order.status).in_(pending)),
        ),
    }
    return success({"user": dump_user(user), "tenant": tenant_summary(tenant), "counts": counts})


@admin_router.get("/stats")
def platform_stats(
    user: User = Depends(require_role(Role.SUPER_ADMIN)),
    session: Session = Depends(get_session),
):
    revenue = session.exec(
        select(func.coalesce(func.sum(Order.total), 0)).where(
            col(Order.status).not_in([OrderStatus.CANCELLED, OrderStatus.REFUNDED])
        )
    ).one()
    users_by_role = {
        role.value: count
        for role, count in session.exec(select(User.role, func.count(User.id)).group_by(User.role)).all()
    }
    return success({
        "tenants": _count(session, select(func.count(Tenant.id))),
        "active_tenants": _count(
            session, select(func.count(Tenant.id)).where(Tenant.subscription_status == TENANT_STATUS_ACTIVE)
        ),
        "users": _count(session, select(func.count(User.id))),
        "users_by_role": users_by_role,
        "products": _count(session, select(func.count(Product.id))),
        "orders": _count(session, select(func.count(Order.id))),
        "revenue": round(float(revenue or 0), 2),
    })


@admin_router.get("/tenants")
def list_all_tenants(
    user: User = Depends(require_role(Role.SUPER_ADMIN)),
    session: Session = Depends(get_session),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """Every tenant, whatever its subscription status, ordered by name."""
    total = _count(session, select(func.count(Tenant.id)))
    tenants = session.exec(
        select(Tenant).order_by(Tenant.name, Tenant.id).offset((page - 1) * limit).limit(limit)
    ).all()
    return paginated([dump(t) for t in tenants], page=page, limit=limit, total=total)
