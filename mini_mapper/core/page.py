"""Page of query results with 1-based page numbering."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class PageResult(Generic[T]):
    """One page of results plus the total row count of the unpaged query."""

    content: List[T] = field(default_factory=list)
    page: int = 1
    size: int = 20
    total_elements: int = 0

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1.")
        if self.size < 1:
            raise ValueError("size must be >= 1.")

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def is_first(self) -> bool:
        return self.page == 1

    @property
    def is_last(self) -> bool:
        return self.page >= self.total_pages

    def map(self, fn: Callable[[T], R]) -> PageResult[R]:
        """Return a page with `fn` applied to each item."""

        return PageResult([fn(item) for item in self.content], self.page, self.size, self.total_elements)

    def __len__(self) -> int:
        return len(self.content)

    def __iter__(self):
        return iter(self.content)
