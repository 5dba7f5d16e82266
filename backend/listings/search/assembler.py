"""
Shapes property rows into view models and listing pages.

Every search ends in exactly one of three results:

* ``Ok`` - the page was built from clean filters
* ``Degraded`` - the page was built, but some filters were ignored
* ``Failed`` - storage failed; only a generic message is exposed
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from listings.db.models import Property
from listings.schemas import (
    NO_RESULTS_MESSAGE, SEARCH_FAILED_MESSAGE, AgentView, ImageView, ListingPage,
    LookupView, MetaLinks, PropertyView,
)
from listings.search.pagination import Pagination


@dataclass(frozen=True)
class Ok:
    data: ListingPage


@dataclass(frozen=True)
class Degraded:
    data: ListingPage
    warnings: Tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class Failed:
    error: str = SEARCH_FAILED_MESSAGE


SearchResult = Union[Ok, Degraded, Failed]


def _enum_value(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def _lookup(row) -> Optional[LookupView]:
    if row is None:
        return None
    return LookupView(name=row.name, slug=row.slug)


def _name(row) -> Optional[str]:
    return row.name if row is not None else None


def to_images(images) -> List[ImageView]:
    """Drop images without a usable URL and sort by display order, then id"""
    usable = [image for image in images or [] if image.url and image.url.strip()]
    usable.sort(key=lambda image: (image.order or 0, image.id or 0))
    return [ImageView(id=image.id, url=image.url, order=image.order or 0) for image in usable]


def to_property_view(prop: Property) -> PropertyView:
    images = to_images(prop.images)
    agent = None
    if prop.agent is not None:
        agent = AgentView(
            id=prop.agent.id,
            name=prop.agent.name,
            slug=prop.agent.slug,
            email=prop.agent.email,
            phone=prop.agent.phone,
            photoUrl=prop.agent.photo_url,
        )

    return PropertyView(
        id=prop.id,
        slug=prop.slug,
        title=prop.title,
        name=prop.name,
        description=prop.description,
        price=prop.price,
        size=prop.size,
        bedrooms=prop.bedrooms,
        bathrooms=prop.bathrooms,
        referenceNumber=prop.reference_number,
        permitNumber=prop.permit_number,
        availability=_enum_value(prop.availability),
        status=_enum_value(prop.status),
        furnishing=_enum_value(prop.furnishing),
        isLuxe=bool(prop.is_luxe),
        isFeatured=bool(prop.is_featured),
        isExclusive=bool(prop.is_exclusive),
        offeringType=_lookup(prop.offering_type),
        propertyType=_lookup(prop.property_type),
        community=_lookup(prop.community),
        subCommunity=_name(prop.sub_community),
        city=_name(prop.city),
        developer=_name(prop.developer),
        agent=agent,
        images=images,
        hasImages=bool(images),
        createdAt=prop.created_at,
    )


def build_listing_page(
    rows: Sequence[Property],
    pagination: Pagination,
    warnings: Sequence[str] = (),
) -> ListingPage:
    properties = [to_property_view(row) for row in rows]
    return ListingPage(
        properties=properties,
        pages=pagination.pages,
        totalCount=pagination.total_count,
        metaLinks=MetaLinks(
            currentPage=pagination.current_page,
            totalPages=pagination.total_pages,
            hasNext=pagination.has_next,
            hasPrev=pagination.has_previous,
        ),
        warnings=list(warnings),
        message=None if properties else NO_RESULTS_MESSAGE,
    )


def assemble(rows: Sequence[Property], pagination: Pagination, warnings: Sequence[str] = ()) -> SearchResult:
    page = build_listing_page(rows, pagination, warnings)
    if warnings:
        return Degraded(data=page, warnings=tuple(warnings))
    return Ok(data=page)


def failed_page(result: Failed) -> ListingPage:
    """Response body for a failed search"""
    return ListingPage(error=result.error)


def to_listing_page(result: SearchResult) -> ListingPage:
    if isinstance(result, Failed):
        return failed_page(result)
    return result.data
