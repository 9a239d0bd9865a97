from fastapi import APIRouter, Depends
from sqlmodel import Session

from storefront import __version__
from storefront.api.admin import admin_router, dashboard_router
from storefront.api.analytics import router as analytics_router
from storefront.api.auth import router as auth_router
from storefront.api.cart import router as cart_router
from storefront.api.category import router as category_router
from storefront.api.order import router as order_router
from storefront.api.product import router as product_router
from storefront.api.response import dump_user, success
from storefront.api.tenant import router as tenant_router
from storefront.api.user import router as user_router
from storefront.auth.dependencies import get_current_user
from storefront.db.session import get_session
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services.tenant_service import tenant_summary

router = APIRouter(prefix="/api")
router.include_router(auth_router)
router.include_router(tenant_router)
router.include_router(user_router)
# before the product router so /products/categories is not read as a product id
router.include_router(category_router)
router.include_router(product_router)
router.include_router(cart_router)
router.include_router(order_router)
router.include_router(analytics_router)
router.include_router(dashboard_router)
router.include_router(admin_router)


@router.get("/health", tags=["System"])
def health():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/me", tags=["Auth"])
def get_me(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Session user with a summary of its store."""
    tenant = session.get(Tenant, user.tenant_id) if user.tenant_id is not None else None
    return success({**dump_user(user), "tenant": tenant_summary(tenant)})
