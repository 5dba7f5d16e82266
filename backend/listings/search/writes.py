"""
Listing mutations followed by cache invalidation
"""

from typing import Any, Dict, Sequence

from listings.core.logging import get_logger
from listings.db.repository import PropertyRepository
from listings.schemas import PropertyView
from listings.search.assembler import to_property_view
from listings.search.revalidation import (
    ALL_OFFERINGS_TAG, COMMUNITIES_TAG, LISTINGS_TAG, Revalidator, listings_tag, property_tag,
)

logger = get_logger(__name__)


class ListingWriteService:
    """
    Write operations used by the admin endpoints.

    Invalidation only runs after the storage call succeeded; a failed
    invalidation is logged and does not undo the write.
    """

    def __init__(self, repository: PropertyRepository, revalidator: Revalidator):
        self.repository = repository
        self.revalidator = revalidator

    async def create_property(self, data: Dict[str, Any]) -> PropertyView:
        prop, offering_slug = await self.repository.create_property(data)
        logger.info("Property created", property_id=prop.id, slug=prop.slug, offering_type=offering_slug)
        await self.revalidator.invalidate_tags([listings_tag(offering_slug), ALL_OFFERINGS_TAG, COMMUNITIES_TAG])
        return to_property_view(prop)

    async def update_property(self, property_id: int, changes: Dict[str, Any]) -> PropertyView:
        prop, offering_slugs = await self.repository.update_property(property_id, changes)
        logger.info("Property updated", property_id=property_id, fields=sorted(changes))
        tags = [listings_tag(slug) for slug in sorted(offering_slugs)]
        tags += [ALL_OFFERINGS_TAG, property_tag(prop.slug)]
        if "community" in changes or "offering_type" in changes:
            tags.append(COMMUNITIES_TAG)
        await self.revalidator.invalidate_tags(tags)
        return to_property_view(prop)

    async def reorder_images(self, property_id: int, image_ids: Sequence[int]) -> PropertyView:
        prop = await self.repository.reorder_images(property_id, image_ids)
        logger.info("Property images reordered", property_id=property_id, image_ids=list(image_ids))
        await self.revalidator.invalidate_tags([
            listings_tag(prop.offering_type.slug),
            ALL_OFFERINGS_TAG,
            property_tag(prop.slug),
        ])
        return to_property_view(prop)

    async def update_community(self, community_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        community = await self.repository.update_community(community_id, changes)
        logger.info("Community updated", community_id=community_id, fields=sorted(changes))
        await self.revalidator.invalidate_tags([COMMUNITIES_TAG, LISTINGS_TAG])
        return {
            "id": community.id,
            "name": community.name,
            "slug": community.slug,
            "shortName": community.short_name,
        }
