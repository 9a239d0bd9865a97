"""
In-memory sliding-window rate limiting for the sensitive auth endpoints.

Counters live in the process, so each worker limits independently.
"""
import logging
import time
from collections import defaultdict

from fastapi import HTTPException, Request, status

from storefront import config
from storefront.constants import RATE_LIMITS, Messages

logger = logging.getLogger(__name__)

# {(action, client): [timestamp1, timestamp2, ...]}
_timestamps: dict[tuple[str, str], list[float]] = defaultdict(list)


def _cleanup(key: tuple[str, str], window_seconds: int, now: float) -> None:
    """Remove expired timestamps for a key."""
    cutoff = now - window_seconds
    remaining = [t for t in _timestamps.get(key, []) if t > cutoff]
    if remaining:
        _timestamps[key] = remaining
    else:
        _timestamps.pop(key, None)


def client_key(request: Request) -> str:
    """The peer address; X-Forwarded-For only counts when TRUST_PROXY_HEADERS is on."""
    if config.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def hit(action: str, client: str) -> bool:
    """
    Record one attempt and tell whether it is allowed.

    Returns:
        False when the action's limit for the window is already used up
    """
    max_requests, window_seconds = RATE_LIMITS[action]
    key = (action, client)
    now = time.time()
    _cleanup(key, window_seconds, now)

    if len(_timestamps.get(key, [])) >= max_requests:
        logger.warning(f"Rate limit hit: action={action}, client={client}")
        return False

    _timestamps[key].append(now)
    return True


def reset() -> None:
    _timestamps.clear()


def rate_limit(action: str):
    """
    Dependency factory enforcing the limit configured for `action` in RATE_LIMITS.

    Raises:
        HTTPException: 429 when the client exceeded the limit
    """
    if action not in RATE_LIMITS:
        raise ValueError(f"Unknown rate limit action: {action}")

    def checker(request: Request) -> None:
        if not config.RATE_LIMIT_ENABLED:
            return
        if not hit(action, client_key(request)):
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=Messages.RATE_LIMIT_EXCEEDED)

    return checker
