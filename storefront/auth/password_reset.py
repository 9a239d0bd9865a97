"""
Password reset token lifecycle: generate -> verify -> consume (single use, 1 hour TTL).
"""
import logging
import secrets
from datetime import timedelta

from fastapi import HTTPException
from sqlmodel import Session, select

from storefront.auth.credentials import get_user_by_email, normalize_email, update_user_password
from storefront.config import PASSWORD_RESET_TOKEN_TTL_MINUTES
from storefront.constants import Messages
from storefront.model.base import utc_now
from storefront.model.user import User
from storefront.model.verification_token import VerificationToken

logger = logging.getLogger(__name__)


def _delete_tokens(session: Session, query) -> None:
    for row in session.exec(query).all():
        session.delete(row)


def generate_password_reset_token(session: Session, email: str) -> str:
    """
    Store a new reset token for the user's email.

    Raises:
        HTTPException: 400 when no user has this email
    """
    email = normalize_email(email)
    user = get_user_by_email(session, email)
    if not user:
        raise HTTPException(status_code=400, detail=Messages.USER_NOT_FOUND)

    _delete_tokens(
        session,
        select(VerificationToken).where(
            VerificationToken.identifier == email,
            VerificationToken.expires <= utc_now(),
        ),
    )

    token = secrets.token_urlsafe(32)
    session.add(
        VerificationToken(
            identifier=email,
            token=token,
            expires=utc_now() + timedelta(minutes=PASSWORD_RESET_TOKEN_TTL_MINUTES),
        )
    )
    session.commit()
    logger.info(f"Password reset token generated for user {user.id}")
    return token


def verify_password_reset_token(session: Session, email: str, token: str) -> VerificationToken:
    """
    Return the matching, unexpired token row.

    Raises:
        HTTPException: 400 when the token is unknown, belongs to another email or has expired
    """
    row = session.exec(
        select(VerificationToken).where(
            VerificationToken.identifier == normalize_email(email),
            VerificationToken.token == token,
            VerificationToken.expires > utc_now(),
        )
    ).first()
    if not row:
        raise HTTPException(status_code=400, detail=Messages.INVALID_TOKEN)
    return row


def reset_password(session: Session, email: str, token: str, new_password: str) -> User:
    """
    Consume a reset token and set the new password.

    Raises:
        HTTPException: 400 invalid/expired token or weak password, 404 unknown user
    """
    email = normalize_email(email)
    verify_password_reset_token(session, email, token)

    user = get_user_by_email(session, email)
    if not user:
        raise HTTPException(status_code=404, detail=Messages.USER_NOT_FOUND)

    update_user_password(session, user, new_password)

    # the token is single use
    _delete_tokens(
        session,
        select(VerificationToken).where(
            VerificationToken.identifier == email,
            VerificationToken.token == token,
        ),
    )
    session.commit()
    logger.info(f"Password reset completed for user {user.id}")
    return user

