"""Standard response envelope shared by every endpoint."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginationMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ApiResponse(CamelModel, Generic[DataT]):
    success: bool = True
    data: DataT | None = None
    message: str | None = None
    meta: PaginationMeta | None = None


def pagination_meta(total: int, page: int, limit: int) -> PaginationMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    return PaginationMeta(
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def error_response(
    code: Any,
    message: str,
    details: Any = None,
    path: str = "",
) -> dict[str, Any]:
    """Build the JSON body for a failed request."""
    error: dict[str, Any] = {"code": getattr(code, "value", code), "message": message}
    if details:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": path,
    }
