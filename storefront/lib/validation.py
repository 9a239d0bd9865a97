"""
Input validation helpers shared by the request schemas and services.
"""
import re

from pydantic import AnyUrl, TypeAdapter, ValidationError

from storefront.constants import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH, ValidationMessages

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_REGEX = re.compile(r"^\+?1?\s*\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}$")
_SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

_url_adapter = TypeAdapter(AnyUrl)


def is_valid_email(email: str | None) -> bool:
    if not email:
        return False
    return bool(EMAIL_REGEX.match(email))


def validate_password(password: str | None) -> list[str]:
    """
    Check password strength.

    Returns:
        List of error messages, empty when the password is acceptable.
    """
    password = password or ""
    errors: list[str] = []

    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(ValidationMessages.PASSWORD_TOO_SHORT)
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append(ValidationMessages.PASSWORD_TOO_LONG)
    if not re.search(r"[A-Z]", password):
        errors.append(ValidationMessages.PASSWORD_MISSING_UPPERCASE)
    if not re.search(r"[a-z]", password):
        errors.append(ValidationMessages.PASSWORD_MISSING_LOWERCASE)
    if not re.search(r"\d", password):
        errors.append(ValidationMessages.PASSWORD_MISSING_NUMBER)
    if not _SPECIAL_CHARS.search(password):
        errors.append(ValidationMessages.PASSWORD_MISSING_SPECIAL)

    return errors


def is_valid_phone_number(phone: str) -> bool:
    """Basic US phone format check; inner whitespace is ignored."""
    return bool(PHONE_REGEX.match(re.sub(r"\s", "", phone or "")))


def is_valid_url(url: str) -> bool:
    try:
        _url_adapter.validate_python(url)
    except ValidationError:
        return False
    return True


def is_valid_credit_card(card_number: str) -> bool:
    """Luhn checksum over 13 to 19 digits."""
    clean = re.sub(r"\s", "", card_number or "")
    if not re.fullmatch(r"\d{13,19}", clean):
        return False

    total = 0
    for index, char in enumerate(reversed(clean)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def sanitize_input(value: str) -> str:
    """Strip markup brackets, `javascript:` and inline event handlers."""
    value = re.sub(r"[<>]", "", value)
    value = re.sub(r"javascript:", "", value, flags=re.IGNORECASE)
    value = re.sub(r"on\w+=", "", value, flags=re.IGNORECASE)
    return value.strip()


def is_valid_file_type(content_type: str, allowed_types: list[str]) -> bool:
    return content_type in allowed_types


def is_valid_file_size(size: int, max_size_in_bytes: int) -> bool:
    return size <= max_size_in_bytes
