"""
Offset pagination for the task list views.
`Page` is the query-parameter dependency; `PaginatedResponse` the envelope.
"""
import math
from typing import Annotated, Generic, TypeVar

from fastapi import Depends, Query
from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PageParams:
    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        size: int = Query(default=20, ge=1, le=100),
    ) -> None:
        self.page = page
        self.size = size

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.size


Page = Annotated[PageParams, Depends()]


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int

    @computed_field  # type: ignore[misc]
    @property
    def pages(self) -> int:
        if self.size == 0:
            return 0
        return math.ceil(self.total / self.size)

    @classmethod
    def from_page(cls, items: list[T], total: int, params: PageParams) -> "PaginatedResponse[T]":
        return cls(items=items, total=total, page=params.page, size=params.size)
