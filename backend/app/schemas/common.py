"""Shared schema building blocks."""

from datetime import datetime
from math import ceil
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from app.core.clock import as_utc

UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]


class Pagination(BaseModel):
    """Paging metadata returned next to list payloads."""

    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_count: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)

    @classmethod
    def build(cls, page: int, page_size: int, total_count: int) -> "Pagination":
        return cls(
            page=page,
            page_size=page_size,
            total_count=total_count,
            total_pages=ceil(total_count / page_size) if total_count else 0,
        )
