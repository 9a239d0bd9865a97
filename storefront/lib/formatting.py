"""
Display formatting for prices, numbers, dates and text.

Reuse these whenever a value leaves the API already formatted (analytics
metrics, tracking dates, generated slugs) so every tenant sees the same style.
"""
from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone

from storefront.constants import CURRENCIES, DEFAULT_CURRENCY

# BCP 47 locale -> strftime for a short date. Fallback: ISO %Y-%m-%d.
_DATE_FORMAT_BY_LOCALE: dict[str, str] = {
    "en-US": "%m/%d/%Y",
    "en-GB": "%d/%m/%Y",
    "en": "%m/%d/%Y",
    "pt-BR": "%d/%m/%Y",
    "pt": "%d/%m/%Y",
    "es": "%d/%m/%Y",
    "fr": "%d/%m/%Y",
    "it": "%d/%m/%Y",
    "de": "%d.%m.%Y",
    "nl": "%d-%m-%Y",
    "ja": "%Y/%m/%d",
}

_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _to_datetime(value: date | datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return value


def _as_aware(value: datetime) -> datetime:
    # naive values coming back from SQLite are stored in UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _group_thousands(value: float, decimals: int) -> str:
    return f"{value:,.{decimals}f}"


def format_price(price: float | str, currency: str = DEFAULT_CURRENCY) -> str:
    """Format an amount with the currency symbol, e.g. `$1,234.50` or `-€3.00`."""
    amount = float(price)
    sign = "-" if amount < 0 else ""
    info = CURRENCIES.get(currency.upper())
    if info is None:
        # unknown currencies are prefixed with their code
        return f"{sign}{currency.upper()} {_group_thousands(abs(amount), 2)}"
    return f"{sign}{info['symbol']}{_group_thousands(abs(amount), info['decimal_places'])}"


def format_price_range(min_price: float, max_price: float, currency: str = DEFAULT_CURRENCY) -> str:
    if min_price == max_price:
        return format_price(min_price, currency)
    return f"{format_price(min_price, currency)} - {format_price(max_price, currency)}"


def format_percentage(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}%"


def format_file_size(size_in_bytes: int) -> str:
    if size_in_bytes <= 0:
        return "0 Bytes"
    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB", "TB"]
    i = max(0, min(int(math.floor(math.log(size_in_bytes) / math.log(k))), len(sizes) - 1))
    value = f"{size_in_bytes / (k ** i):.2f}".rstrip("0").rstrip(".")
    return f"{value} {sizes[i]}"


def format_date(value: date | datetime | str, fmt: str = "%b %d, %Y") -> str:
    """Format a date, by default as `Jan 05, 2026`."""
    return _to_datetime(value).strftime(fmt)


def _format_time_12h(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_datetime(value: date | datetime | str) -> str:
    """`Jan 05, 2026 at 3:07 PM`"""
    dt = _to_datetime(value)
    return f"{dt.strftime('%b %d, %Y')} at {_format_time_12h(dt)}"


def format_date_for_locale(value: date | datetime, locale: str | None) -> str:
    """
    Format a date the way the tenant's region writes it (en-US → MM/DD/YYYY, de → DD.MM.YYYY).

    Unknown locales fall back to the language part, then to ISO.
    """
    d = value.date() if isinstance(value, datetime) else value
    locale = (locale or "").strip()
    fmt = _DATE_FORMAT_BY_LOCALE.get(locale)
    if not fmt and locale:
        fmt = _DATE_FORMAT_BY_LOCALE.get(locale.split("-")[0].lower())
    return d.strftime(fmt or "%Y-%m-%d")


def _distance_words(seconds: float) -> str:
    minutes = round(seconds / 60)
    if seconds < 30:
        return "less than a minute"
    if minutes < 2:
        return "1 minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if minutes < 90:
        return "about 1 hour"
    hours = round(minutes / 60)
    if minutes < 24 * 60:
        return f"about {hours} hours"
    if minutes < 42 * 60:
        return "1 day"
    days = round(minutes / (24 * 60))
    if days < 30:
        return f"{days} days"
    if days < 45:
        return "about 1 month"
    if days < 60:
        return "about 2 months"
    months = round(days / 30)
    if days < 365:
        return f"{months} months"
    years = days // 365
    return "about 1 year" if years == 1 else f"about {years} years"


def format_relative_time(value: datetime | str, now: datetime | None = None) -> str:
    """Distance to now with a suffix, e.g. `about 2 hours ago` or `in 3 days`."""
    dt = _as_aware(_to_datetime(value))
    now = _as_aware(now or datetime.now(timezone.utc))
    delta = (dt - now).total_seconds()
    words = _distance_words(abs(delta))
    return f"in {words}" if delta > 0 else f"{words} ago"


def format_relative_date(value: datetime | str, now: datetime | None = None) -> str:
    """Calendar-relative wording, e.g. `yesterday at 2:30 PM`, `last Monday at 9:00 AM`."""
    dt = _as_aware(_to_datetime(value))
    now = _as_aware(now or datetime.now(timezone.utc))
    days = (dt.date() - now.date()).days
    time_str = _format_time_12h(dt)
    if days == 0:
        return f"today at {time_str}"
    if days == -1:
        return f"yesterday at {time_str}"
    if days == 1:
        return f"tomorrow at {time_str}"
    if -6 <= days < 0:
        return f"last {_WEEKDAYS[dt.weekday()]} at {time_str}"
    if 0 < days <= 6:
        return f"{_WEEKDAYS[dt.weekday()]} at {time_str}"
    return dt.strftime("%m/%d/%Y")


def format_number(num: float) -> str:
    if float(num).is_integer():
        return f"{int(num):,}"
    return f"{num:,.3f}".rstrip("0").rstrip(".")


def format_number_abbreviation(num: float) -> str:
    if num >= 1_000_000:
        return f"{num / 1_000_000:.1f}M"
    if num >= 1_000:
        return f"{num / 1_000:.1f}K"
    return str(int(num)) if float(num).is_integer() else str(num)


def format_phone_number(phone: str) -> str:
    """US numbers become `(555) 123-4567`; anything else is returned unchanged."""
    cleaned = re.sub(r"\D", "", phone)
    match = re.fullmatch(r"(\d{3})(\d{3})(\d{4})", cleaned)
    if match:
        return f"({match.group(1)}) {match.group(2)}-{match.group(3)}"
    return phone


def format_credit_card(card_number: str) -> str:
    cleaned = re.sub(r"\s", "", card_number)
    return "*" * max(len(cleaned) - 4, 0) + cleaned[-4:]


def generate_slug(text: str) -> str:
    slug = text.lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def capitalize_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
