import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from storefront.api.response import dump, dump_user, paginated, success
from storefront.auth.credentials import create_user
from storefront.auth.dependencies import require_role, require_tenant_access, resolve_tenant_id
from storefront.auth.roles import role_level
from storefront.constants import (
    CUSTOMERS_PAGE_SIZE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    ORDERS_PAGE_SIZE,
    Messages,
    OrderStatus,
    Role,
)
from storefront.db.session import get_session
from storefront.model.base import utc_now
from storefront.model.order import Order
from storefront.model.user import User
from storefront.services.audit import try_write_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Users"])


class UserCreate(BaseModel):
    email: str
    password: str
    name: Optional[str] = None
    role: Role = Role.CUSTOMER
    tenant_id: Optional[int] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


def _ensure_can_grant(actor: User, role: Role) -> None:
    if role_level(role) > role_level(actor.role):
        raise HTTPException(status_code=403, detail="Cannot grant a role above your own")


def _search_users(query, search: Optional[str]):
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(col(User.email).ilike(pattern), col(User.name).ilike(pattern)))
    return query


@router.get("/users")
def list_users(
    actor: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
    tenant_id: Optional[int] = Query(None, description="Tenant filter (super admin only)"),
    role: Optional[Role] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    """
    Users of the caller's tenant, newest first.

    A super admin sees every user, or one tenant's with `tenant_id`.
    """
    if actor.role == Role.SUPER_ADMIN:
        scope_tenant = tenant_id
    else:
        scope_tenant = actor.tenant_id
        if tenant_id is not None:
            require_tenant_access(actor, tenant_id)

    def scoped(query):
        if scope_tenant is not None:
            query = query.where(User.tenant_id == scope_tenant)
        if role is not None:
            query = query.where(User.role == role)
        return _search_users(query, search)

    total = session.exec(scoped(select(func.count(User.id)))).one()
    users = session.exec(
        scoped(select(User)).order_by(col(User.created_at).desc(), col(User.id).desc())
        .offset((page - 1) * limit).limit(limit)
    ).all()
    return paginated([dump_user(u) for u in users], page=page, limit=limit, total=int(total or 0))


@router.post("/users", status_code=201)
def create_user_endpoint(
    body: UserCreate,
    actor: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    """
    Rules:
      - a tenant admin creates users in its own tenant only
      - nobody grants a role above their own
      - a super admin must name the tenant unless creating another super admin
    """
    _ensure_can_grant(actor, body.role)

    if actor.role == Role.SUPER_ADMIN:
        tenant_id = body.tenant_id
        if tenant_id is None and body.role != Role.SUPER_ADMIN:
            raise HTTPException(status_code=400, detail="tenant_id is required")
    else:
        if body.tenant_id is not None:
            require_tenant_access(actor, body.tenant_id)
        tenant_id = actor.tenant_id

    user = create_user(
        session,
        email=body.email,
        password=body.password,
        name=body.name,
        tenant_id=tenant_id,
        role=body.role,
    )
    try_write_audit_log(
        session,
        event_type="user_created",
        tenant_id=tenant_id,
        actor_user_id=actor.id,
        data={"user_id": user.id, "role": user.role.value},
    )
    session.refresh(user)
    return success(dump_user(user), "User created successfully")


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    actor: User = Depends(require_role(Role.TENANT_ADMIN)),
    session: Session = Depends(get_session),
):
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=Messages.USER_NOT_FOUND)
    if actor.role != Role.SUPER_ADMIN:
        require_tenant_access(actor, user.tenant_id)
    if role_level(user.role) > role_level(actor.role):
        raise HTTPException(status_code=403, detail=Messages.INSUFFICIENT_PERMISSIONS)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    previous_role = user.role
    if "role" in changes:
        _ensure_can_grant(actor, changes["role"])
    if user.id == actor.id and (changes.get("is_active") is False or changes.get("role", actor.role) != actor.role):
        raise HTTPException(status_code=400, detail="You cannot deactivate or demote yourself")

    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User updated: id={user.id}, fields={sorted(changes)}")

    if user.role != previous_role:
        try_write_audit_log(
            session,
            event_type="user_role_changed",
            tenant_id=user.tenant_id,
            actor_user_id=actor.id,
            data={"user_id": user.id, "from": previous_role.value, "to": user.role.value},
        )
        session.refresh(user)
    return success(dump_user(user), "User updated successfully")


def _customer_stats(session: Session, customer: User, tenant_id: int) -> dict:
    count, spent, last = session.exec(
        select(func.count(Order.id), func.coalesce(func.sum(Order.total), 0), func.max(Order.created_at)).where(
            Order.tenant_id == tenant_id,
            Order.user_id == customer.id,
            col(Order.status).not_in([OrderStatus.CANCELLED, OrderStatus.REFUNDED]),
        )
    ).one()
    return {
        "order_count": int(count or 0),
        "total_spent": round(float(spent or 0), 2),
        "last_order_at": last.isoformat() if last else None,
    }


def _get_customer(session: Session, customer_id: int, tenant_id: int) -> User:
    customer = session.get(User, customer_id)
    if not customer or customer.tenant_id != tenant_id or customer.role != Role.CUSTOMER:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.get("/customers")
def list_customers(
    actor: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(CUSTOMERS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    def scoped(query):
        query = query.where(User.tenant_id == tenant_id, User.role == Role.CUSTOMER)
        return _search_users(query, search)

    total = session.exec(scoped(select(func.count(User.id)))).one()
    customers = session.exec(
        scoped(select(User)).order_by(col(User.created_at).desc(), col(User.id).desc())
        .offset((page - 1) * limit).limit(limit)
    ).all()
    items = [{**dump_user(c), **_customer_stats(session, c, tenant_id)} for c in customers]
    return paginated(items, page=page, limit=limit, total=int(total or 0))


@router.get("/customers/{customer_id}")
def get_customer(
    customer_id: int,
    actor: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
):
    customer = _get_customer(session, customer_id, tenant_id)
    return success({**dump_user(customer), **_customer_stats(session, customer, tenant_id)})


@router.get("/customers/{customer_id}/orders")
def get_customer_orders(
    customer_id: int,
    actor: User = Depends(require_role(Role.STAFF)),
    tenant_id: int = Depends(resolve_tenant_id),
    session: Session = Depends(get_session),
    page: int = Query(1, ge=1),
    limit: int = Query(ORDERS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
):
    customer = _get_customer(session, customer_id, tenant_id)
    base = select(Order).where(Order.tenant_id == tenant_id, Order.user_id == customer.id)
    total = session.exec(
        select(func.count(Order.id)).where(Order.tenant_id == tenant_id, Order.user_id == customer.id)
    ).one()
    orders = session.exec(
        base.order_by(col(Order.created_at).desc(), col(Order.id).desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    return paginated([dump(o) for o in orders], page=page, limit=limit, total=int(total or 0))
