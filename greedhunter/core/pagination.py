"""Pagination helpers."""

import math
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, Any]:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total": self.total,
            "has_next": self.page * self.limit < self.total,
            "has_prev": self.page > 1,
        }


def paginate(page: int, limit: int, max_limit: int = 200) -> tuple[int, int]:
    """Clamp page/limit; return (page, limit)."""
    limit = max(1, min(limit, max_limit))
    page = max(1, page)
    return page, limit


def slice_page(items: list[T], page: int, limit: int) -> Page[T]:
    """Cut one page out of an already ordered list."""
    page, limit = paginate(page, limit)
    start = (page - 1) * limit
    return Page(items=items[start:start + limit], page=page, limit=limit, total=len(items))
