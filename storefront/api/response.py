"""
JSON envelope shared by every endpoint.

success: {"success": true, "data": ..., "message"?: ...}
lists:   same, plus "pagination": {page, limit, total, total_pages, has_next, has_prev}
errors:  {"success": false, "error": "..."} (built by the exception handlers in main.py)
"""
from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from sqlmodel import SQLModel


def dump(obj: SQLModel, exclude: Optional[set[str]] = None) -> dict[str, Any]:
    return obj.model_dump(mode="json", exclude=exclude)


def dump_user(user) -> dict[str, Any]:
    # the password hash never leaves the server
    return dump(user, exclude={"password"})


def success(data: Any = None, message: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def build_pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def paginated(items: Iterable[Any], *, page: int, limit: int, total: int) -> dict[str, Any]:
    return {
        "success": True,
        "data": list(items),
        "pagination": build_pagination(page, limit, total),
    }


def error(message: str) -> dict[str, Any]:
    return {"success": False, "error": message}
