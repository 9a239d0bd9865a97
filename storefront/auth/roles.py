from typing import Optional

from storefront.constants import ROLE_HIERARCHY, Role


def role_level(role) -> int:
    """Hierarchy level of a role (Role member or raw string); unknown roles are 0."""
    value = role.value if isinstance(role, Role) else str(role or "")
    return ROLE_HIERARCHY.get(value, 0)


def has_role(user_role, required_role) -> bool:
    """SUPER_ADMIN >= TENANT_ADMIN >= STAFF >= CUSTOMER."""
    return role_level(user_role) >= role_level(required_role)


def can_access_tenant(user_tenant_id: Optional[int], target_tenant_id: Optional[int], user_role) -> bool:
    """Super admins reach every tenant; everybody else only their own."""
    if role_level(user_role) == ROLE_HIERARCHY[Role.SUPER_ADMIN.value]:
        return True
    if user_tenant_id is None or target_tenant_id is None:
        return False
    return int(user_tenant_id) == int(target_tenant_id)
