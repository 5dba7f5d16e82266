"""
Predicate AST for listing queries.

The query builder composes these; the repository translates them into
SQLAlchemy expressions. Predicates in a descriptor are AND-combined.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from listings.search.filters import SortOrder


@dataclass(frozen=True)
class Equals:
    field: str
    value: object


@dataclass(frozen=True)
class Range:
    """Inclusive range; an unset bound is not applied"""
    field: str
    min: Optional[int] = None
    max: Optional[int] = None


@dataclass(frozen=True)
class OneOf:
    field: str
    values: Tuple[object, ...]


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match against any of ``fields``"""
    fields: Tuple[str, ...]
    query: str


Predicate = Union[Equals, Range, OneOf, TextMatch]


@dataclass(frozen=True)
class QueryDescriptor:
    predicates: Tuple[Predicate, ...]
    sort: SortOrder
    limit: int
    offset: int = 0

    def with_page(self, limit: int, offset: int) -> "QueryDescriptor":
        return QueryDescriptor(predicates=self.predicates, sort=self.sort, limit=limit, offset=offset)
