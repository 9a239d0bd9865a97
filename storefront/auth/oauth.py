from typing import Dict

from fastapi import HTTPException
from google.oauth2 import id_token
from google.auth.transport import requests as google_requests

from storefront import config


def verify_google_token(token: str) -> Dict[str, str]:
    """
    Verify a Google ID token and return the user info.

    Returns:
        Dict with email, name and picture

    Raises:
        HTTPException: 500 when Google sign-in is not configured, 401 when the token is invalid
    """
    if not config.GOOGLE_CLIENT_ID:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_ID not configured")

    try:
        # tolerate small clock differences with Google
        idinfo = id_token.verify_oauth2_token(
            token,
            google_requests.Request(),
            config.GOOGLE_CLIENT_ID,
            clock_skew_in_seconds=60,
        )
    except ValueError:
        # provider details are not exposed
        raise HTTPException(status_code=401, detail="Invalid Google ID token")

    email = str(idinfo.get("email", "")).lower()
    if not email:
        raise HTTPException(status_code=401, detail="Google token missing email")

    return {
        "email": email,
        "name": str(idinfo.get("name", "")),
        "picture": idinfo.get("picture"),
    }
