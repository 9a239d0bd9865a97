from storefront.auth.jwt import create_access_token, verify_token
from storefront.auth.dependencies import get_current_user, get_optional_user, require_role, require_tenant_access
from storefront.auth.oauth import verify_google_token
from storefront.auth.roles import can_access_tenant, has_role

__all__ = [
    "create_access_token",
    "verify_token",
    "get_current_user",
    "get_optional_user",
    "require_role",
    "require_tenant_access",
    "verify_google_token",
    "can_access_tenant",
    "has_role",
]
