"""
Listing search pipeline.

normalize filters -> drop unknown lookups -> build query -> count ->
paginate -> fetch -> assemble, with cached reads keyed on the normalized
criteria and route context.
"""

import hashlib
import json
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from listings.core.config import Settings
from listings.core.exceptions import PageNotFoundError, StorageError
from listings.core.logging import get_logger
from listings.db.repository import PropertyRepository
from listings.schemas import CommunitySummary, ListingPage, PropertyDetail, PropertyView
from listings.search.assembler import Degraded, Failed, Ok, SearchResult, assemble, to_property_view
from listings.search.filters import FilterCriteria, normalize_filters
from listings.search.pagination import Pagination
from listings.search.query_builder import RouteContext, build_query
from listings.search.revalidation import (
    ALL_OFFERINGS_TAG, COMMUNITIES_TAG, LISTINGS_TAG, listings_tag, property_tag,
)

logger = get_logger(__name__)

SIMILAR_PROPERTIES_LIMIT = 3


def cache_key(prefix: str, payload: Dict[str, Any]) -> str:
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


def listing_tags(offering_type: Optional[str]) -> List[str]:
    """Tags for a cached read scoped to one offering type, or to all of them"""
    return [LISTINGS_TAG, listings_tag(offering_type) if offering_type else ALL_OFFERINGS_TAG]


class ListingSearchService:
    """Entry point for listing reads"""

    def __init__(self, repository: PropertyRepository, cache, settings: Settings):
        self.repository = repository
        self.cache = cache
        self.settings = settings

    @property
    def cache_enabled(self) -> bool:
        return self.cache is not None and self.settings.ENABLE_CACHE

    async def _cached(self, key: str) -> Optional[Any]:
        if not self.cache_enabled:
            return None
        return await self.cache.get(key)

    async def _store(self, key: str, value: Any, tags: List[str]) -> None:
        if self.cache_enabled:
            await self.cache.set(key, value, ttl=self.settings.CACHE_TTL_SECONDS, tags=tags)

    async def _drop_unknown_lookups(
        self, criteria: FilterCriteria, context: RouteContext
    ) -> Tuple[FilterCriteria, List[str]]:
        """
        Remove user-chosen community and property-type slugs that name nothing.

        Route-context lookups are left alone and still match strictly.
        """
        dropped: List[str] = []

        communities = criteria.communities
        if communities:
            known = await self.repository.existing_slugs("community", communities)
            dropped.extend(f"Ignored unknown community: {slug!r}" for slug in communities if slug not in known)
            communities = tuple(slug for slug in communities if slug in known)

        property_type = criteria.property_type
        if property_type and not context.property_type:
            if property_type not in await self.repository.existing_slugs("property_type", [property_type]):
                dropped.append(f"Ignored unknown property type: {property_type!r}")
                property_type = None

        if not dropped:
            return criteria, dropped
        return replace(criteria, communities=communities, property_type=property_type), dropped

    async def search(
        self,
        raw_params: Optional[Mapping[str, Any]] = None,
        context: Optional[RouteContext] = None,
        path: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> SearchResult:
        """
        Run one listing search.

        The cached page keeps the warnings about unknown lookups, since they
        depend on stored data; parse warnings are recomputed on every call.

        Raises:
            PageNotFoundError: the requested page lies beyond the last page
        """
        context = context or RouteContext()
        page_size = page_size or self.settings.LISTING_PAGE_SIZE
        criteria = normalize_filters(raw_params, path=path)

        key = cache_key("listings", {
            "criteria": criteria.cache_fields(),
            "context": context.cache_fields(),
            "page_size": page_size,
        })
        cached = await self._cached(key)
        if cached is not None:
            page = ListingPage.model_validate(cached)
            warnings = list(criteria.warnings) + page.warnings
            page = page.model_copy(update={"warnings": warnings})
            logger.debug("Search cache hit", key=key)
            return Degraded(data=page, warnings=tuple(warnings)) if warnings else Ok(data=page)

        try:
            criteria, dropped = await self._drop_unknown_lookups(criteria, context)
            descriptor = build_query(criteria, context, page_size)
            total_count = await self.repository.count(descriptor)
            pagination = Pagination.compute(total_count, page_size, criteria.page)
            if pagination.is_out_of_range:
                raise PageNotFoundError(criteria.page, pagination.total_pages)
            rows = await self.repository.fetch_page(descriptor.with_page(page_size, pagination.offset))
        except StorageError as e:
            logger.error("Search failed", error=e.message, error_code=e.error_code, context=context.cache_fields())
            return Failed()

        warnings = list(criteria.warnings) + dropped
        result = assemble(rows, pagination, warnings)
        logger.info(
            "Search completed",
            offering_type=context.offering_type,
            property_type=context.property_type or criteria.property_type,
            page=pagination.current_page,
            total=pagination.total_count,
            warnings=len(warnings),
        )

        body = result.data.model_dump(mode="json")
        body["warnings"] = dropped
        await self._store(key, body, listing_tags(context.offering_type))
        return result

    async def get_property(self, slug: str) -> Optional[PropertyDetail]:
        """
        Property detail by slug, with up to three listings from the same
        community; None when it does not exist.

        Raises:
            StorageError: the lookup failed
        """
        key = f"property:{slug}"
        cached = await self._cached(key)
        if cached is not None:
            return PropertyDetail.model_validate(cached)

        prop = await self.repository.get_by_slug(slug)
        if prop is None:
            return None

        similar = await self.repository.fetch_similar(prop, SIMILAR_PROPERTIES_LIMIT)
        detail = PropertyDetail(
            **to_property_view(prop).model_dump(),
            similarProperties=[to_property_view(row) for row in similar],
        )
        # Similar listings can be of any offering type
        tags = [LISTINGS_TAG, ALL_OFFERINGS_TAG, property_tag(slug)]
        if detail.offeringType is not None:
            tags.append(listings_tag(detail.offeringType.slug))
        await self._store(key, detail.model_dump(mode="json"), tags)
        return detail

    async def featured(self, offering_type: str, limit: int) -> List[PropertyView]:
        """
        Featured listings of one offering type.

        Raises:
            StorageError: the lookup failed
        """
        key = f"featured:{offering_type}:{limit}"
        cached = await self._cached(key)
        if cached is not None:
            return [PropertyView.model_validate(item) for item in cached]

        views = [to_property_view(row) for row in await self.repository.fetch_featured(offering_type, limit)]
        await self._store(key, [view.model_dump(mode="json") for view in views], listing_tags(offering_type))
        return views

    async def list_communities(self) -> List[CommunitySummary]:
        key = "communities:directory"
        cached = await self._cached(key)
        if cached is not None:
            return [CommunitySummary.model_validate(item) for item in cached]

        directory = [CommunitySummary(**entry) for entry in await self.repository.community_directory()]
        await self._store(key, [item.model_dump(mode="json") for item in directory], [COMMUNITIES_TAG])
        return directory
