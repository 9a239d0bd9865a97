from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from storefront.api.response import success
from storefront.auth.dependencies import get_current_user, resolve_tenant_id
from storefront.constants import Messages
from storefront.db.session import get_session
from storefront.model.user import User
from storefront.services import cart_service
from storefront.services.tenant_service import get_tenant_or_404

router = APIRouter(prefix="/cart", tags=["Cart"])


class CartAdd(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1, le=999)


class CartUpdate(BaseModel):
    item_id: int
    quantity: int = Field(ge=0, le=999)


def _load_cart(session: Session, tenant_id: int, user: User) -> tuple:
    tenant = get_tenant_or_404(session, tenant_id)
    cart = cart_service.get_or_create_cart(session, tenant.id, user.id)
    return tenant, cart


@router.get("")
def get_cart(
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    tenant, cart = _load_cart(session, tenant_id, user)
    return success(cart_service.cart_summary(session, cart, tenant))


@router.post("/add")
def add_to_cart(
    body: CartAdd,
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    tenant, cart = _load_cart(session, tenant_id, user)
    cart_service.add_item(session, cart, body.product_id, body.variant_id, body.quantity)
    return success(cart_service.cart_summary(session, cart, tenant), Messages.CART_UPDATED)


@router.put("/update")
def update_cart_item(
    body: CartUpdate,
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    """Set a line's quantity; 0 removes it."""
    tenant, cart = _load_cart(session, tenant_id, user)
    cart_service.update_item(session, cart, body.item_id, body.quantity)
    return success(cart_service.cart_summary(session, cart, tenant), Messages.CART_UPDATED)


@router.delete("/remove/{item_id}")
def remove_cart_item(
    item_id: int,
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    tenant, cart = _load_cart(session, tenant_id, user)
    cart_service.remove_item(session, cart, item_id)
    return success(cart_service.cart_summary(session, cart, tenant), Messages.CART_UPDATED)


@router.post("/clear")
def clear_cart(
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    tenant, cart = _load_cart(session, tenant_id, user)
    cart_service.clear_cart(session, cart)
    return success(cart_service.cart_summary(session, cart, tenant), Messages.CART_UPDATED)
