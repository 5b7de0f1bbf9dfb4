"""Offset pagination shared by list endpoints."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

T = TypeVar("T")

MAX_LIMIT = 100


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def clamp(page: int, limit: int) -> tuple[int, int]:
    return max(1, page), min(MAX_LIMIT, max(1, limit))


def paginate(session: Session, statement: Select, page: int, limit: int) -> Page:
    """Run ``statement`` with a total count and an offset window."""
    page, limit = clamp(page, limit)
    total = session.scalar(select(func.count()).select_from(statement.order_by(None).subquery())) or 0
    items = list(session.scalars(statement.limit(limit).offset((page - 1) * limit)))
    return Page(items=items, total=total, page=page, limit=limit)
