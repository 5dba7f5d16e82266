"""
Pagination math for listing pages.

An empty result set still has one (empty) page, so a category without any
listings renders its first page instead of a not-found page.
"""

import math
from dataclasses import dataclass
from typing import List


def offset_for(page: int, page_size: int) -> int:
    return (max(page, 1) - 1) * page_size


def total_pages_for(total_count: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return max(1, math.ceil(max(total_count, 0) / page_size))


@dataclass(frozen=True)
class Pagination:
    current_page: int
    page_size: int
    total_count: int
    total_pages: int

    @classmethod
    def compute(cls, total_count: int, page_size: int, page: int) -> "Pagination":
        return cls(
            current_page=max(page, 1),
            page_size=page_size,
            total_count=max(total_count, 0),
            total_pages=total_pages_for(total_count, page_size),
        )

    @property
    def offset(self) -> int:
        return offset_for(self.current_page, self.page_size)

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def is_out_of_range(self) -> bool:
        return self.current_page > self.total_pages

    @property
    def pages(self) -> List[int]:
        return list(range(1, self.total_pages + 1))
