from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.auth.jwt import verify_token
from storefront.config import SESSION_COOKIE_NAME
from storefront.constants import Messages, Role

logger = logging.getLogger(__name__)

# (path prefix, roles allowed); first match wins
PROTECTED_PREFIXES: list[tuple[str, set[str]]] = [
    ("/api/admin", {Role.SUPER_ADMIN.value}),
    ("/api/dashboard", {Role.TENANT_ADMIN.value, Role.SUPER_ADMIN.value}),
]


def _read_token(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth.startswith("Bearer "):
        token = auth.removeprefix("Bearer ").strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE_NAME) or None


def _decode(token: str | None) -> dict | None:
    if not token:
        return None
    try:
        return verify_token(token)
    except HTTPException:
        return None


def _required_roles(path: str) -> set[str] | None:
    for prefix, roles in PROTECTED_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return roles
    return None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


async def tenant_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Any]],
):
    """
    Session context plus path-level access control.

    - decodes the session JWT (Bearer header or session cookie) into
      request.state.{user_id, tenant_id, role} without querying the database
    - an invalid token is treated as no session
    - /api/admin/* needs SUPER_ADMIN, /api/dashboard/* needs TENANT_ADMIN or SUPER_ADMIN:
      no session answers 401, another role answers 403
    - every other path passes through; endpoint dependencies do the real enforcement
    """
    payload = _decode(_read_token(request))

    if payload:
        try:
            if payload.get("sub") is not None:
                request.state.user_id = int(payload["sub"])
            if payload.get("tenant_id") is not None:
                request.state.tenant_id = int(payload["tenant_id"])
            if payload.get("role") is not None:
                request.state.role = str(payload["role"])
        except (TypeError, ValueError):
            logger.warning("Session token with unexpected claim format ignored")
            payload = None

    allowed_roles = _required_roles(request.url.path)
    if allowed_roles is not None:
        if not payload:
            return _error(401, "Authentication required")
        if str(payload.get("role")) not in allowed_roles:
            logger.warning(f"Access denied to {request.url.path} for role={payload.get('role')}")
            return _error(403, Messages.ACCESS_DENIED)

    return await call_next(request)
