import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlmodel import Session

from storefront.api.response import paginated, success
from storefront.auth.dependencies import get_current_user, require_role, require_tenant_access, resolve_tenant_id
from storefront.auth.roles import has_role
from storefront.constants import (
    MAX_PAGE_SIZE,
    ORDER_NOTES_MAX_LENGTH,
    ORDERS_PAGE_SIZE,
    Messages,
    OrderStatus,
    PaymentStatus,
    Role,
)
from storefront.db.session import get_session
from storefront.lib.validation import is_valid_email, sanitize_input
from storefront.model.base import utc_now
from storefront.model.order import Order
from storefront.model.user import User
from storefront.services import order_service
from storefront.services.audit import try_write_audit_log
from storefront.services.order_service import CheckoutData, OrderFilters
from storefront.services.tenant_service import get_tenant_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])


class Address(BaseModel):
    first_name: str
    last_name: str
    company: Optional[str] = None
    address1: str
    address2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: Optional[str] = None

    @field_validator("first_name", "last_name", "address1", "city", "state", "postal_code", "country")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Address fields cannot be empty")
        return v.strip()


class CheckoutRequest(BaseModel):
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: Optional[str] = None
    shipping_method: Optional[str] = None
    customer_notes: Optional[str] = Field(default=None, max_length=ORDER_NOTES_MAX_LENGTH)
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not is_valid_email(v):
            raise ValueError(Messages.INVALID_EMAIL)
        return v.strip().lower()

    @field_validator("customer_notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return sanitize_input(v) or None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    admin_notes: Optional[str] = Field(default=None, max_length=ORDER_NOTES_MAX_LENGTH)
    tracking_number: Optional[str] = Field(default=None, max_length=100)
    shipping_method: Optional[str] = None


def _is_staff(user: User) -> bool:
    return has_role(user.role, Role.STAFF)


def _get_order_for(session: Session, user: User, order_id: int) -> Order:
    """Staff reach the orders of their tenant, everybody else only their own."""
    order = session.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if _is_staff(user):
        require_tenant_access(user, order.tenant_id)
    elif order.user_id != user.id:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", status_code=201)
def place_order(
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    """Checkout: the caller's cart in the tenant becomes an order."""
    tenant = get_tenant_or_404(session, tenant_id)
    data = CheckoutData(
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        payment_method=body.payment_method,
        shipping_method=body.shipping_method,
        customer_notes=body.customer_notes,
        email=body.email,
        first_name=body.first_name or body.shipping_address.first_name,
        last_name=body.last_name or body.shipping_address.last_name,
        phone=body.phone or body.shipping_address.phone,
    )
    try:
        order, items = order_service.checkout(session, user=user, tenant=tenant, data=data)
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Checkout failed for user {user.id} in tenant {tenant_id}: {e}", exc_info=True)
        raise
    return success(order_service.order_to_dict(order, items), Messages.ORDER_CREATED)


@router.get("")
def list_orders(
    user: User = Depends(get_current_user),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    status: Optional[OrderStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    customer_email: Optional[str] = Query(None, max_length=254),
    order_number: Optional[str] = Query(None, max_length=50),
    sort_by: Literal["created_at", "total", "order_number"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    limit: int = Query(ORDERS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """Staff list the tenant's orders; customers list their own."""
    filters = OrderFilters(
        status=status,
        payment_status=payment_status,
        date_from=date_from,
        date_to=date_to,
        customer_email=customer_email,
        order_number=order_number,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    orders, total = order_service.list_orders(
        session,
        tenant_id,
        filters,
        page=page,
        limit=limit,
        user_id=None if _is_staff(user) else user.id,
    )
    return paginated([order_service.order_to_dict(o) for o in orders], page=page, limit=limit, total=total)


@router.get("/{order_id}")
def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    order = _get_order_for(session, user, order_id)
    return success(order_service.order_to_dict(order, order_service.get_order_items(session, order)))


@router.put("/{order_id}")
def update_order(
    order_id: int,
    body: OrderUpdate,
    user: User = Depends(require_role(Role.STAFF)),
    session: Session = Depends(get_session),
):
    order = _get_order_for(session, user, order_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    order_service.check_manual_update(order, changes.get("status"), changes.get("payment_status"))
    previous_status = order.status

    if "status" in changes:
        order_service.apply_status(order, changes.pop("status"))
    for field, value in changes.items():
        setattr(order, field, value)
    order.updated_at = utc_now()
    session.add(order)
    session.commit()
    session.refresh(order)

    if order.status != previous_status:
        logger.info(f"Order {order.id} status {previous_status.value} -> {order.status.value}")
        try_write_audit_log(
            session,
            event_type="order_status_changed",
            tenant_id=order.tenant_id,
            actor_user_id=user.id,
            data={"order_id": order.id, "from": previous_status.value, "to": order.status.value},
        )
        session.refresh(order)
    return success(order_service.order_to_dict(order), Messages.ORDER_UPDATED)


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    order = _get_order_for(session, user, order_id)
    previous_status = order.status
    order = order_service.cancel_order(session, order)
    try_write_audit_log(
        session,
        event_type="order_status_changed",
        tenant_id=order.tenant_id,
        actor_user_id=user.id,
        data={"order_id": order.id, "from": previous_status.value, "to": order.status.value},
    )
    session.refresh(order)
    return success(order_service.order_to_dict(order), Messages.ORDER_CANCELLED)


@router.post("/{order_id}/refund")
def refund_order(
    order_id: int,
    user: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    """Marks the order and its payment as refunded; no money is moved."""
    order = _get_order_for(session, user, order_id)
    previous_status = order.status
    order = order_service.refund_order(session, order)
    try_write_audit_log(
        session,
        event_type="order_status_changed",
        tenant_id=order.tenant_id,
        actor_user_id=user.id,
        data={"order_id": order.id, "from": previous_status.value, "to": order.status.value},
    )
    session.refresh(order)
    return success(order_service.order_to_dict(order), Messages.ORDER_REFUNDED)


@router.get("/{order_id}/tracking")
def get_tracking(
    order_id: int,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    order = _get_order_for(session, user, order_id)
    tenant = get_tenant_or_404(session, order.tenant_id)
    return success(order_service.tracking_info(order, tenant))
