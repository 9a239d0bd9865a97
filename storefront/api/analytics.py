from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from storefront.api.response import success
from storefront.auth.dependencies import require_role, resolve_tenant_id
from storefront.constants import ANALYTICS_DEFAULT_DAYS, ANALYTICS_MAX_DAYS, Role
from storefront.db.session import get_session
from storefront.model.user import User
from storefront.services import analytics_service
from storefront.services.tenant_service import get_tenant_or_404

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/dashboard")
def dashboard(
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    days: int = Query(ANALYTICS_DEFAULT_DAYS, ge=1, le=ANALYTICS_MAX_DAYS, description="Window in days"),
):
    """Revenue, orders, customers and average order value against the previous window."""
    tenant = get_tenant_or_404(session, tenant_id)
    return success(analytics_service.dashboard_metrics(session, tenant.id, days, tenant.currency))


@router.get("/sales")
def sales(
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    period: Literal["day", "week", "month"] = Query("day"),
    days: int = Query(ANALYTICS_DEFAULT_DAYS, ge=1, le=ANALYTICS_MAX_DAYS),
):
    tenant = get_tenant_or_404(session, tenant_id)
    return success(analytics_service.sales_series(session, tenant.id, days, period))


@router.get("/products")
def top_products(
    user: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    days: int = Query(ANALYTICS_DEFAULT_DAYS, ge=1, le=ANALYTICS_MAX_DAYS),
    limit: int = Query(10, ge=1, le=50),
):
    tenant = get_tenant_or_404(session, tenant_id)
    return success(analytics_service.top_products(session, tenant.id, days, limit))
