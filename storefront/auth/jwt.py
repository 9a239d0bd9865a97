from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException
from jose import jwt, JWTError

from storefront.config import JWT_ALGORITHM, JWT_EXPIRATION_DAYS, JWT_ISSUER, JWT_SECRET


def create_access_token(
    user_id: int,
    email: str,
    name: Optional[str],
    role: str,
    tenant_id: Optional[int],
) -> str:
    """
    Create the session JWT carrying the role and tenant claims.

    Args:
        user_id: user primary key (stored in `sub`)
        email: user email
        name: display name
        role: one of SUPER_ADMIN, TENANT_ADMIN, STAFF, CUSTOMER
        tenant_id: tenant the user belongs to (None for platform users)

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "role": role,
        "tenant_id": tenant_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=JWT_EXPIRATION_DAYS)).timestamp()),
        "iss": JWT_ISSUER,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a session JWT.

    Raises:
        HTTPException: 401 when the token is invalid, expired or from another issuer
    """
    try:
        return jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            issuer=JWT_ISSUER,
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
