"""
Credential verification and user account lifecycle.
"""
import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlmodel import Session, select

from storefront.auth.jwt import create_access_token
from storefront.auth.password import hash_password, verify_password
from storefront.constants import UNLIMITED, Messages, Role
from storefront.lib.validation import is_valid_email, validate_password
from storefront.model.base import utc_now
from storefront.model.tenant import Tenant
from storefront.model.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def get_user_by_email(session: Session, email: str, tenant_id: Optional[int] = None) -> User | None:
    query = select(User).where(User.email == normalize_email(email))
    if tenant_id is not None:
        query = query.where(User.tenant_id == tenant_id)
    return session.exec(query).first()


def get_user_by_id(session: Session, user_id: int) -> User | None:
    return session.get(User, user_id)


def issue_token_for_user(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role.value,
        tenant_id=user.tenant_id,
    )


def authenticate(
    session: Session,
    email: Optional[str],
    password: Optional[str],
    tenant_id: Optional[str | int] = None,
) -> User | None:
    """
    Verify credentials, optionally scoped to a tenant.

    Rules:
      - email and password are required
      - the user must exist, have a password (not a Google-only account) and be active
      - a non-blank tenant_id must match the user's tenant
      - the password must match its bcrypt hash

    Returns:
        The user, or None on any failure. Callers answer every failure the same way.
    """
    logger.info(f"Auth attempt: email={email}, tenant_id={tenant_id}")

    if not email or not password:
        logger.info("Auth rejected: missing credentials")
        return None

    user = get_user_by_email(session, email)
    if not user or not user.password:
        logger.info("Auth rejected: user not found or without password")
        return None

    if not user.is_active:
        logger.warning(f"Auth rejected: user {user.id} is inactive")
        return None

    requested_tenant = str(tenant_id).strip() if tenant_id is not None else ""
    if requested_tenant and str(user.tenant_id) != requested_tenant:
        logger.warning(f"Auth rejected: tenant mismatch (requested={requested_tenant}, user has={user.tenant_id})")
        return None

    if not verify_password(password, user.password):
        logger.info(f"Auth rejected: invalid password for user {user.id}")
        return None

    logger.info(f"Auth succeeded for user {user.id}")
    return user


def _ensure_customer_capacity(session: Session, tenant: Tenant) -> None:
    if tenant.max_customers == UNLIMITED:
        return
    customers = session.exec(
        select(func.count(User.id)).where(
            User.tenant_id == tenant.id,
            User.role == Role.CUSTOMER,
        )
    ).one()
    if int(customers or 0) >= tenant.max_customers:
        raise HTTPException(status_code=403, detail=Messages.PLAN_LIMIT_REACHED)


def create_user(
    session: Session,
    *,
    email: str,
    password: str,
    name: Optional[str] = None,
    tenant_id: Optional[int] = None,
    role: Role = Role.CUSTOMER,
) -> User:
    """
    Create a credentials user after validating email, password strength and uniqueness.

    Raises:
        HTTPException: 400 with the first validation message, 404 for an unknown tenant,
            403 when the tenant's customer limit is reached
    """
    email = normalize_email(email)
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail=Messages.INVALID_EMAIL)

    password_errors = validate_password(password)
    if password_errors:
        raise HTTPException(status_code=400, detail=password_errors[0])

    if get_user_by_email(session, email):
        raise HTTPException(status_code=400, detail=Messages.EMAIL_EXISTS)

    if tenant_id is not None:
        tenant = session.get(Tenant, tenant_id)
        if not tenant:
            raise HTTPException(status_code=404, detail=Messages.TENANT_NOT_FOUND)
        if role == Role.CUSTOMER:
            _ensure_customer_capacity(session, tenant)

    user = User(
        email=email,
        password=hash_password(password),
        name=name,
        tenant_id=tenant_id,
        role=role,
        auth_provider="credentials",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User created: id={user.id}, role={user.role.value}, tenant_id={user.tenant_id}")
    return user


def update_user_password(session: Session, user: User, new_password: str) -> None:
    """
    Replace the user's password.

    Raises:
        HTTPException: 400 when the new password is too weak
    """
    password_errors = validate_password(new_password)
    if password_errors:
        raise HTTPException(status_code=400, detail=password_errors[0])

    user.password = hash_password(new_password)
    user.updated_at = utc_now()
    session.add(user)
    session.commit()
    logger.info(f"Password updated for user {user.id}")


def get_or_create_google_user(session: Session, *, email: str, name: str, image: Optional[str]) -> User:
    """Google sign-in: unknown emails become verified CUSTOMER accounts without password."""
    user = get_user_by_email(session, email)
    if user:
        return user

    user = User(
        email=normalize_email(email),
        name=name or None,
        image=image,
        role=Role.CUSTOMER,
        email_verified=utc_now(),
        auth_provider="google",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"Google user created: id={user.id}")
    return user
