import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from storefront import config
from storefront.api.response import dump_user, success
from storefront.auth.credentials import (
    authenticate,
    create_user,
    get_or_create_google_user,
    get_user_by_email,
    issue_token_for_user,
    update_user_password,
)
from storefront.auth.dependencies import get_current_user
from storefront.auth.oauth import verify_google_token
from storefront.auth.password import verify_password
from storefront.auth.password_reset import generate_password_reset_token, reset_password
from storefront.constants import PASSWORD_MIN_LENGTH, Messages, Role
from storefront.db.session import get_session
from storefront.lib.validation import is_valid_email
from storefront.middleware.rate_limit import rate_limit
from storefront.model.tenant import Tenant
from storefront.model.user import User
from storefront.services.audit import try_write_audit_log
from storefront.services.email_service import send_password_reset_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    email: str
    password: str
    name: Optional[str] = None
    tenant_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    tenant_id: Optional[str | int] = None


class GoogleTokenRequest(BaseModel):
    id_token: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    email: Optional[str] = None
    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=token,
        max_age=config.JWT_EXPIRATION_DAYS * 24 * 60 * 60,
        httponly=True,
        samesite="lax",
        secure=config.SESSION_COOKIE_SECURE,
        path="/",
    )


def _session_payload(user: User, response: Response) -> dict:
    token = issue_token_for_user(user)
    _set_session_cookie(response, token)
    return {"access_token": token, "token_type": "bearer", "user": dump_user(user)}


@router.post(
    "/register",
    status_code=201,
    dependencies=[Depends(rate_limit("register"))],
)
def register(body: RegisterRequest, session: Session = Depends(get_session)):
    """
    Create a customer account.

    Self-registration always creates CUSTOMER; staff and admin accounts are created
    through /api/users by an administrator.
    """
    user = create_user(
        session,
        email=body.email,
        password=body.password,
        name=body.name,
        tenant_id=body.tenant_id,
        role=Role.CUSTOMER,
    )
    return success(dump_user(user), Messages.REGISTER_SUCCESS)


@router.post("/login", dependencies=[Depends(rate_limit("login"))])
def login(body: LoginRequest, response: Response, session: Session = Depends(get_session)):
    user = authenticate(session, body.email, body.password, body.tenant_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=Messages.INVALID_CREDENTIALS)
    return success(_session_payload(user, response), Messages.LOGIN_SUCCESS)


@router.post("/google")
def google_login(body: GoogleTokenRequest, response: Response, session: Session = Depends(get_session)):
    """Google sign-in; an email seen for the first time becomes a verified customer."""
    info = verify_google_token(body.id_token)
    user = get_or_create_google_user(session, email=info["email"], name=info["name"], image=info.get("picture"))
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=Messages.INVALID_CREDENTIALS)
    return success(_session_payload(user, response), Messages.LOGIN_SUCCESS)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(config.SESSION_COOKIE_NAME, path="/")
    return success(None, Messages.LOGOUT_SUCCESS)


@router.post("/refresh")
def refresh(response: Response, user: User = Depends(get_current_user)):
    """New token carrying the current role and tenant of the user."""
    return success(_session_payload(user, response))


@router.post("/change-password")
def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not verify_password(body.current_password, user.password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    update_user_password(session, user, body.new_password)
    try_write_audit_log(
        session,
        event_type="password_changed",
        tenant_id=user.tenant_id,
        actor_user_id=user.id,
        data={"user_id": user.id},
    )
    return success(None, Messages.PASSWORD_CHANGED)


def _require_valid_email(email: Optional[str]) -> str:
    if not email or not is_valid_email(email):
        raise HTTPException(status_code=400, detail=Messages.INVALID_EMAIL)
    return email


@router.post("/reset-password", dependencies=[Depends(rate_limit("reset_password"))])
def reset_password_endpoint(body: ResetPasswordRequest, session: Session = Depends(get_session)):
    """
    Password reset in two steps, selected by `action`.

    - request: {email} -> a token is generated and emailed
      (also returned in the body when APP_ENV=dev)
    - reset: {email, token, newPassword} -> the password is replaced and the token consumed
    """
    if body.action == "request":
        email = _require_valid_email(body.email)
        token = generate_password_reset_token(session, email)

        user = get_user_by_email(session, email)
        tenant = session.get(Tenant, user.tenant_id) if user and user.tenant_id is not None else None
        send_password_reset_email(email, token, store_name=tenant.name if tenant else None)

        data = {"token": token} if config.is_dev() else None
        return success(data, Messages.PASSWORD_RESET_SENT)

    if body.action == "reset":
        email = _require_valid_email(body.email)
        if not body.token:
            raise HTTPException(status_code=400, detail="Token is required")
        if not body.new_password or len(body.new_password) < PASSWORD_MIN_LENGTH:
            raise HTTPException(status_code=400, detail="Password must be at least 8 characters")

        user = reset_password(session, email, body.token, body.new_password)
        try_write_audit_log(
            session,
            event_type="password_reset",
            tenant_id=user.tenant_id,
            actor_user_id=user.id,
            data={"user_id": user.id},
        )
        return success(None, Messages.PASSWORD_RESET_SUCCESS)

    raise HTTPException(status_code=400, detail="Invalid action")
