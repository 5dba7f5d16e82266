"""
Builds query descriptors from normalized filters and route context
"""

from dataclasses import dataclass
from typing import List, Optional

from listings.search.filters import FilterCriteria
from listings.search.pagination import offset_for
from listings.search.predicates import Equals, OneOf, Predicate, QueryDescriptor, Range, TextMatch

TEXT_SEARCH_FIELDS = ("title", "description", "name", "community")


@dataclass(frozen=True)
class RouteContext:
    """Filters fixed by the route rather than chosen by the user"""
    offering_type: Optional[str] = None
    property_type: Optional[str] = None

    def cache_fields(self) -> dict:
        return {"offering_type": self.offering_type, "property_type": self.property_type}


def _range(field: str, low: Optional[int], high: Optional[int]) -> Optional[Range]:
    if low is None and high is None:
        return None
    return Range(field=field, min=low, max=high)


def build_predicates(criteria: FilterCriteria, context: RouteContext) -> List[Predicate]:
    predicates: List[Predicate] = []

    if context.offering_type:
        predicates.append(Equals("offering_type", context.offering_type))

    property_type = context.property_type or criteria.property_type
    if property_type:
        predicates.append(Equals("property_type", property_type))

    if criteria.communities:
        predicates.append(OneOf("community", tuple(criteria.communities)))

    for predicate in (
        _range("price", criteria.min_price, criteria.max_price),
        _range("size", criteria.min_size, criteria.max_size),
    ):
        if predicate is not None:
            predicates.append(predicate)

    if criteria.bedrooms is not None:
        predicates.append(Equals("bedrooms", criteria.bedrooms))

    if criteria.bathrooms is not None:
        predicates.append(Equals("bathrooms", criteria.bathrooms))

    if criteria.furnishing is not None:
        predicates.append(Equals("furnishing", criteria.furnishing))

    if criteria.status is not None:
        predicates.append(Equals("status", criteria.status))

    if criteria.query:
        predicates.append(TextMatch(fields=TEXT_SEARCH_FIELDS, query=criteria.query))

    return predicates


def build_query(criteria: FilterCriteria, context: RouteContext, page_size: int) -> QueryDescriptor:
    """Compose the descriptor for one page of results"""
    return QueryDescriptor(
        predicates=tuple(build_predicates(criteria, context)),
        sort=criteria.sort,
        limit=page_size,
        offset=offset_for(criteria.page, page_size),
    )
