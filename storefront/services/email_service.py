"""
Outgoing email.
For now messages are only logged; a real transport (SMTP, SES...) plugs in here.
"""
import logging
from typing import Optional

from storefront import config

logger = logging.getLogger(__name__)


def send_password_reset_email(
    to_email: str,
    token: str,
    store_name: Optional[str] = None,
    app_url: Optional[str] = None,
) -> bool:
    """
    Send the password reset link.

    Args:
        to_email: recipient
        token: reset token generated for the recipient
        store_name: tenant name shown in the subject (optional)
        app_url: frontend base URL (defaults to APP_URL)

    Returns:
        True when the email was handed off, False otherwise
    """
    try:
        app_url = (app_url or config.APP_URL).rstrip("/")
        subject = f"Reset your {store_name} password" if store_name else "Reset your password"
        link = f"{app_url}/auth/reset-password?email={to_email}&token={token}"

        body = f"""
Hello,

We received a request to reset the password of your account.
Open the link below to choose a new password. It expires in {config.PASSWORD_RESET_TOKEN_TTL_MINUTES} minutes.

{link}

If you did not ask for this, you can ignore this email.
        """.strip()

        logger.info(f"Password reset email sent to {to_email}")
        logger.info(f"Subject: {subject}")
        logger.debug(f"Body:\n{body}")
        return True
    except Exception as e:
        logger.error(f"Failed to send password reset email to {to_email}: {e}", exc_info=True)
        return False


def send_order_confirmation_email(to_email: str, order_number: str, total: str) -> bool:
    """Order receipt; same logging transport as the reset email."""
    try:
        subject = f"Order {order_number} confirmed"
        logger.info(f"Order confirmation email sent to {to_email}")
        logger.info(f"Subject: {subject} (total {total})")
        return True
    except Exception as e:
        logger.error(f"Failed to send order confirmation to {to_email}: {e}", exc_info=True)
        return False
