from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sqlmodel import Session

from storefront.auth.jwt import verify_token
from storefront.auth.roles import can_access_tenant, has_role
from storefront.config import SESSION_COOKIE_NAME
from storefront.constants import Messages, Role
from storefront.db.session import get_session
from storefront.model.user import User

bearer = HTTPBearer(auto_error=False)


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[str]:
    """Bearer header first, then the session cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME) or None


def get_token_payload(token: Optional[str] = Depends(get_session_token)) -> dict[str, Any]:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_token(token)


def _load_user(session: Session, payload: dict[str, Any]) -> User:
    user_id_raw = payload.get("sub")
    if not user_id_raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = session.get(User, int(user_id_raw))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User is inactive")
    return user


def get_current_user(
    payload: dict[str, Any] = Depends(get_token_payload),
    session: Session = Depends(get_session),
) -> User:
    """
    Dependency returning the authenticated user.

    Role and tenant are read from the database row, not from the token, so a
    role change or deactivation applies to sessions already issued.
    """
    return _load_user(session, payload)


def get_optional_user(
    token: Optional[str] = Depends(get_session_token),
    session: Session = Depends(get_session),
) -> Optional[User]:
    """Like get_current_user, but anonymous (None) when the session is missing or unusable."""
    if not token:
        return None
    try:
        return _load_user(session, verify_token(token))
    except HTTPException:
        return None


def require_role(required_role: Role):
    """
    Dependency factory checking the hierarchy level of the current user.

    Args:
        required_role: minimum role (e.g. Role.STAFF also admits TENANT_ADMIN and SUPER_ADMIN)

    Returns:
        Dependency function returning the user
    """
    def role_checker(user: User = Depends(get_current_user)) -> User:
        if not has_role(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {required_role.value}",
            )
        return user

    return role_checker


def require_tenant_access(user: User, tenant_id: Optional[int]) -> None:
    """
    Raises:
        HTTPException: 403 when the user cannot act on the tenant
    """
    if not can_access_tenant(user.tenant_id, tenant_id, user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=Messages.ACCESS_DENIED)


def resolve_tenant_id(
    user: Optional[User] = Depends(get_optional_user),
    tenant_id: Optional[int] = Query(None, description="Tenant (store) id"),
    x_tenant_id: Optional[int] = Header(None, alias="X-Tenant-ID"),
) -> int:
    """
    Tenant the request works on: `tenant_id` query param, then `X-Tenant-ID`,
    then the session's own tenant.

    Staff sessions (STAFF and above, except SUPER_ADMIN) may only name their own tenant.
    """
    requested = tenant_id if tenant_id is not None else x_tenant_id
    if requested is None and user is not None:
        requested = user.tenant_id
    if requested is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="tenant_id is required")

    if user is not None and has_role(user.role, Role.STAFF):
        require_tenant_access(user, requested)
    return int(requested)
