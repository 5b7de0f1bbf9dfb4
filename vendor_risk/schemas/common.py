"""Shared response envelopes and the camelCase base model."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class DataResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    success: bool = True
    data: T
    message: str | None = None


class MessageResponse(BaseModel):
    success: bool = True
    data: None = None
    message: str


class PageMeta(CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PageResponse(BaseModel, Generic[T]):
    """Paginated list: ``{"data": [...], "meta": {...}}``."""

    data: list[T]
    meta: PageMeta

    @classmethod
    def from_page(cls, page, item_model: type[BaseModel]) -> "PageResponse":
        return cls(
            data=[item_model.model_validate(item) for item in page.items],
            meta=PageMeta(total=page.total, page=page.page, limit=page.limit, total_pages=page.total_pages),
        )
